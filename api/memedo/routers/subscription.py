# api/memedo/routers/subscription.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.current_user import current_user
from ..models import User
from ..responses import ok
from ..schemas import CheckoutIn
from ..services import subscription

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("/status")
def get_subscription_status(user: User = Depends(current_user)):
    """Local subscription, overlaid with live Whop state when a membership is known."""
    return ok(subscription.get_status(user))


@router.post("/checkout")
def create_checkout(payload: CheckoutIn, user: User = Depends(current_user)):
    """
    Start a Whop checkout for `monthly` or `yearly`.
    Returns: { checkout_url: "https://..." }
    """
    url = subscription.checkout(user, payload.plan)
    return ok({"checkout_url": url})


@router.get("/portal")
def get_portal(user: User = Depends(current_user)):
    return ok({"portal_url": subscription.portal(user)})


@router.post("/verify")
def verify_subscription(
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Re-sync from Whop by account email (e.g. right after checkout, before the webhook lands)."""
    return ok(subscription.verify(db, user))


@router.get("/usage")
def get_usage(user: User = Depends(current_user)):
    return ok(subscription.usage(user))
