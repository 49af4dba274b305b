# api/memedo/routers/historical.py
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.access import require_premium
from ..deps.current_user import current_user
from ..models import User
from ..responses import ok
from ..services import historical

router = APIRouter(prefix="/historical", tags=["historical"])


def _naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


@router.get("/tokens")
def get_tokens_with_history(
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    tokens = historical.tokens_with_history(db, user)
    return ok(tokens, count=len(tokens))


@router.get("/activity")
def get_activity(
    days: int = Query(30, ge=1, le=365),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return ok(historical.activity(db, user, days=days))


@router.get("/{chain}/{token_address}")
def get_token_history(
    chain: str,
    token_address: str,
    days: Optional[int] = Query(None, ge=1, le=365),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    user: User = Depends(require_premium),
    db: Session = Depends(get_db),
):
    data = historical.token_history(
        db, user, chain, token_address,
        days=days, date_from=_naive_utc(date_from), date_to=_naive_utc(date_to),
    )
    return ok(data)
