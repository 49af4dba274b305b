# api/memedo/services/subscription.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..errors import QuotaExceededError, ValidationError
from ..models import User
from ..settings import settings
from ..util import add_months, utcnow
from . import whop_client
from .membership import (
    CHECKOUT_PLANS, PLAN_FREE, PLAN_YEARLY,
    analyses_limit, apply_snapshot, is_premium_active, merge_remote,
    plan_benefits, snapshot_of,
)

logger = structlog.get_logger(__name__)


def _status_payload(user: User, snap, now: datetime) -> dict:
    return {
        "plan": snap.plan or PLAN_FREE,
        "status": snap.status,
        "is_premium": is_premium_active(snap, now),
        "current_period_start": snap.period_start,
        "current_period_end": snap.period_end,
        "cancel_at_period_end": snap.cancel_at_period_end,
        "membership_id": snap.membership_id,
        "billing_provider": user.billing_provider,
        "synced_at": user.subscription_synced_at,
        "benefits": plan_benefits(snap.plan),
    }


# ============================================================
# Status / verify
# ============================================================

def get_status(user: User, now: Optional[datetime] = None) -> dict:
    """
    Local row, overlaid with live Whop state when we know a Whop membership id.
    FastSpring subscribers are served from the row its webhooks keep current.
    The overlay is for display only; nothing is written back here.
    """
    now = now or utcnow()
    local = snapshot_of(user)
    if not user.membership_id or user.billing_provider not in (None, "whop"):
        return _status_payload(user, local, now)

    raw = whop_client.get_membership(user.membership_id)
    remote = whop_client.membership_from_payload(raw) if raw else None
    return _status_payload(user, merge_remote(local, remote), now)


def verify(db: Session, user: User, now: Optional[datetime] = None) -> dict:
    """
    Ask Whop for an active membership under the account email. If one exists
    the provider's view overwrites ours; if not, nothing changes.
    """
    now = now or utcnow()
    if not user.email:
        raise ValidationError("Account has no email to look up a subscription")

    raw = whop_client.find_active_membership(user.email)
    if raw is None:
        logger.info("verify found no membership", user_id=user.id)
        return {"verified": False, **_status_payload(user, snapshot_of(user), now)}

    remote = whop_client.membership_from_payload(raw)
    merged = merge_remote(snapshot_of(user), remote)
    apply_snapshot(user, merged, now)
    if remote.account_id:
        user.billing_account_id = remote.account_id
    user.billing_provider = "whop"
    db.commit()
    db.refresh(user)

    logger.info("subscription verified", user_id=user.id, status=user.subscription_status, plan=user.subscription_plan)
    return {"verified": True, **_status_payload(user, snapshot_of(user), now)}


# ============================================================
# Checkout / portal
# ============================================================

def checkout(user: User, plan: str) -> str:
    if plan not in CHECKOUT_PLANS:
        raise ValidationError("plan must be 'monthly' or 'yearly'")
    plan_id = (
        settings.WHOP_PLAN_ID_YEARLY if CHECKOUT_PLANS[plan] == PLAN_YEARLY
        else settings.WHOP_PLAN_ID_MONTHLY
    )
    return whop_client.create_checkout_session(user.id, user.email, plan_id)


def portal(user: User) -> str:
    return whop_client.portal_url()


# ============================================================
# Premium + usage
# ============================================================

def is_premium(user: User, now: Optional[datetime] = None) -> bool:
    return is_premium_active(snapshot_of(user), now or utcnow())


def consume_analysis(db: Session, user: User, now: Optional[datetime] = None) -> User:
    """
    Count one analysis against the monthly quota, atomically.

    1. inside the current window and under the limit -> +1
    2. window expired (or never started)             -> counter = 1, new window
    3. a concurrent request reset the window first   -> retry step 1 once
    4. nothing matched                               -> quota exceeded
    Each step is a single conditional UPDATE so concurrent requests cannot
    both take the last slot.
    """
    now = now or utcnow()
    limit = analyses_limit(user.subscription_plan)

    def increment() -> int:
        return (
            db.query(User)
            .filter(
                User.id == user.id,
                User.analyses_reset_date > now,
                User.analyses_this_month < limit,
            )
            .update({User.analyses_this_month: User.analyses_this_month + 1}, synchronize_session=False)
        )

    bumped = increment()
    if not bumped:
        bumped = (
            db.query(User)
            .filter(
                User.id == user.id,
                or_(User.analyses_reset_date.is_(None), User.analyses_reset_date <= now),
            )
            .update(
                {User.analyses_this_month: 1, User.analyses_reset_date: add_months(now)},
                synchronize_session=False,
            )
        )
    if not bumped:
        bumped = increment()
    db.commit()

    if not bumped:
        db.refresh(user)
        logger.info("analysis quota exceeded", user_id=user.id, used=user.analyses_this_month, limit=limit)
        raise QuotaExceededError(
            f"Monthly analysis limit reached ({limit}). Upgrade your plan or wait until "
            f"{user.analyses_reset_date.isoformat() if user.analyses_reset_date else 'next month'}."
        )

    db.refresh(user)
    return user


def usage(user: User, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    used = user.analyses_this_month or 0
    reset = user.analyses_reset_date
    if reset is None or reset <= now:
        # window lapsed; the next analysis starts a fresh one
        used = 0
    limit = analyses_limit(user.subscription_plan)
    return {
        "plan": user.subscription_plan or PLAN_FREE,
        "analyses_used": used,
        "analyses_limit": limit,
        "analyses_remaining": max(limit - used, 0),
        "reset_date": reset,
        "benefits": plan_benefits(user.subscription_plan),
    }
