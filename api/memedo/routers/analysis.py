# api/memedo/routers/analysis.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.access import check_usage_limit
from ..deps.current_user import current_user
from ..models import User
from ..responses import ok
from ..schemas import AnalysisOut, AnalysisSummaryOut
from ..services import analysis
from ..services.watchlist import validate_token

router = APIRouter(prefix="/analysis", tags=["analysis"])


def token_path(chain: str, token_address: str) -> tuple[str, str]:
    # runs before the quota dependency so a bad address costs nothing
    return validate_token(token_address, chain)


@router.get("/history")
def get_history(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    rows = analysis.history(db, user, limit=limit)
    return ok([AnalysisSummaryOut.model_validate(a).model_dump() for a in rows], count=len(rows))


@router.get("/{analysis_id}")
def get_analysis(
    analysis_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    a = analysis.get_for_user(db, user, analysis_id)
    return ok(AnalysisOut.model_validate(a).model_dump())


@router.post("/{chain}/{token_address}")
def analyze_token(
    token: tuple = Depends(token_path),
    user: User = Depends(check_usage_limit),
    db: Session = Depends(get_db),
):
    address, chain = token
    a = analysis.analyze(db, user, chain, address)
    return ok(
        AnalysisOut.model_validate(a).model_dump(),
        usage={"analyses_used": user.analyses_this_month, "reset_date": user.analyses_reset_date},
    )
