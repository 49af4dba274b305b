# api/memedo/routers/analytics.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.current_user import current_user
from ..models import User
from ..responses import ok
from ..services import analytics

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard")
def get_dashboard(
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Watchlist overview: averages, risk/chain distribution, top and weakest tokens."""
    return ok(analytics.dashboard(db, user))
