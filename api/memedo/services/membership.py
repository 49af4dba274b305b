# api/memedo/services/membership.py
"""
Local mirror of the billing provider's membership record.

The provider is the source of truth. Everything here is pure (no DB, no
HTTP) so the reconciliation policy can be tested on its own:

    local' = merge_remote(local, remote)    # remote wins, field by field
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from ..models import User
from ..settings import settings

# ---- statuses ---------------------------------------------------------------

STATUS_ACTIVE = "active"
STATUS_TRIAL = "trial"
STATUS_OVERDUE = "overdue"
STATUS_CANCELED = "canceled"
STATUS_DEACTIVATED = "deactivated"

SUBSCRIPTION_STATUSES = (
    STATUS_ACTIVE, STATUS_TRIAL, STATUS_OVERDUE, STATUS_CANCELED, STATUS_DEACTIVATED,
)
PREMIUM_STATUSES = (STATUS_ACTIVE, STATUS_TRIAL)

# ---- plans ------------------------------------------------------------------

PLAN_FREE = "free"
PLAN_MONTHLY = "memedo-pro-monthly"
PLAN_YEARLY = "memedo-pro-yearly"

# what the client sends to /subscription/checkout
CHECKOUT_PLANS = {"monthly": PLAN_MONTHLY, "yearly": PLAN_YEARLY}


def plan_benefits(plan: Optional[str]) -> dict:
    if plan in (PLAN_MONTHLY, PLAN_YEARLY):
        return {
            "max_analyses_per_month": settings.PREMIUM_MONTHLY_ANALYSES,
            "max_watchlist_tokens": 50,
            "export_reports": True,
            "priority_support": True,
            "advanced_analytics": True,
        }
    return {
        "max_analyses_per_month": settings.FREE_MONTHLY_ANALYSES,
        "max_watchlist_tokens": 5,
        "export_reports": False,
        "priority_support": False,
        "advanced_analytics": False,
    }


def analyses_limit(plan: Optional[str]) -> int:
    return plan_benefits(plan)["max_analyses_per_month"]


# ---- snapshots --------------------------------------------------------------

@dataclass(frozen=True)
class RemoteMembership:
    """A provider membership, already mapped onto our status/plan vocabulary."""
    membership_id: Optional[str]
    status: Optional[str]
    plan: str = PLAN_FREE
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    email: Optional[str] = None
    account_id: Optional[str] = None
    user_ref: Optional[str] = None  # our user id, echoed back from checkout metadata


@dataclass(frozen=True)
class SubscriptionSnapshot:
    status: Optional[str]
    plan: str
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    cancel_at_period_end: bool
    membership_id: Optional[str]


def snapshot_of(user: User) -> SubscriptionSnapshot:
    return SubscriptionSnapshot(
        status=user.subscription_status,
        plan=user.subscription_plan or PLAN_FREE,
        period_start=user.subscription_period_start,
        period_end=user.subscription_period_end,
        cancel_at_period_end=bool(user.subscription_cancel_at_period_end),
        membership_id=user.membership_id,
    )


def merge_remote(local: SubscriptionSnapshot, remote: Optional[RemoteMembership]) -> SubscriptionSnapshot:
    """
    Remote-authoritative merge. No remote record -> local unchanged.
    Otherwise every mirrored field takes the provider's value, including
    None/False; there is no conflict resolution beyond "provider wins".
    """
    if remote is None:
        return local
    return replace(
        local,
        status=remote.status,
        plan=remote.plan,
        period_start=remote.period_start,
        period_end=remote.period_end,
        cancel_at_period_end=remote.cancel_at_period_end,
        membership_id=remote.membership_id,
    )


def role_for(current_role: Optional[str], status: Optional[str]) -> str:
    if current_role == "admin":
        return "admin"
    return "premium" if status in PREMIUM_STATUSES else "free"


def apply_snapshot(user: User, snap: SubscriptionSnapshot, now: datetime) -> None:
    """Write a snapshot onto the user row (caller commits)."""
    user.subscription_status = snap.status
    user.subscription_plan = snap.plan or PLAN_FREE
    user.subscription_period_start = snap.period_start
    user.subscription_period_end = snap.period_end
    user.subscription_cancel_at_period_end = bool(snap.cancel_at_period_end)
    user.membership_id = snap.membership_id
    user.role = role_for(user.role, snap.status)
    user.subscription_synced_at = now


def is_premium_active(snap: SubscriptionSnapshot, now: datetime) -> bool:
    if snap.status not in PREMIUM_STATUSES:
        return False
    if snap.period_end is not None and snap.period_end <= now:
        return False
    return True
