# api/memedo/deps/access.py
from fastapi import Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import PremiumRequiredError
from ..models import User
from ..services import subscription
from .current_user import current_user


def require_premium(user: User = Depends(current_user)) -> User:
    """Guard for premium-only routes: active/trial and period not yet over."""
    if not subscription.is_premium(user):
        raise PremiumRequiredError()
    return user


def check_usage_limit(
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> User:
    """Consumes one analysis from the monthly quota, or 429s."""
    return subscription.consume_analysis(db, user)
