# api/memedo/services/webhooks.py
"""
Billing webhooks, normalized.

Both providers' events are turned into a `BillingEvent` and run through one
flat reducer (`apply_billing_event`). There are no transition checks: any
state can be overwritten by any event. Each (provider, event_id) is applied
at most once; the marker row is committed in the same transaction as the
user update.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud
from ..models import User, WebhookEvent
from ..util import utcnow
from . import fastspring, whop_client
from .membership import (
    PLAN_FREE, PREMIUM_STATUSES, role_for,
    STATUS_ACTIVE, STATUS_CANCELED, STATUS_DEACTIVATED, STATUS_OVERDUE,
)

logger = structlog.get_logger(__name__)

# ---- event kinds ------------------------------------------------------------

ACTIVATED = "activated"
UPDATED = "updated"
CHARGED = "charged"
CHARGE_FAILED = "charge_failed"
OVERDUE = "overdue"
CANCELED = "canceled"
DEACTIVATED = "deactivated"

_WHOP_KINDS = {
    "membership.created": ACTIVATED,
    "membership.went_valid": ACTIVATED,
    "membership.updated": UPDATED,
    "membership.deleted": DEACTIVATED,
    "membership.went_invalid": DEACTIVATED,
    "payment.succeeded": CHARGED,
    "payment.failed": CHARGE_FAILED,
}

_FASTSPRING_KINDS = {
    "subscription.activated": ACTIVATED,
    "subscription.charge.completed": CHARGED,
    "subscription.charge.failed": CHARGE_FAILED,
    "subscription.canceled": CANCELED,
    "subscription.deactivated": DEACTIVATED,
    "subscription.updated": UPDATED,
    "subscription.payment.overdue": OVERDUE,
}

# results of process_event_once
APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"


@dataclass
class BillingEvent:
    provider: str
    event_id: str
    event_type: str
    kind: Optional[str]
    membership_id: Optional[str] = None
    account_id: Optional[str] = None
    email: Optional[str] = None
    user_ref: Optional[str] = None
    # None means "not carried by this event"
    status: Optional[str] = None
    plan: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None


# ============================================================
# Reducer
# ============================================================

def apply_billing_event(user: User, ev: BillingEvent, now: datetime) -> None:
    """Mutate the user's subscription mirror for one event (caller commits)."""
    kind = ev.kind

    if kind == DEACTIVATED:
        user.subscription_status = STATUS_DEACTIVATED
    elif kind == CANCELED:
        user.subscription_status = STATUS_CANCELED
        user.subscription_cancel_at_period_end = True
        if ev.period_end is not None:
            user.subscription_period_end = ev.period_end
    elif kind in (CHARGE_FAILED, OVERDUE):
        user.subscription_status = STATUS_OVERDUE
    elif kind == CHARGED:
        user.subscription_status = STATUS_ACTIVE
        if ev.period_start is not None:
            user.subscription_period_start = ev.period_start
        if ev.period_end is not None:
            user.subscription_period_end = ev.period_end
    elif kind == ACTIVATED:
        user.subscription_status = ev.status if ev.status in PREMIUM_STATUSES else STATUS_ACTIVE
        if ev.plan:
            user.subscription_plan = ev.plan
        user.subscription_period_start = ev.period_start or now
        user.subscription_period_end = ev.period_end
        user.subscription_cancel_at_period_end = bool(ev.cancel_at_period_end)
    elif kind == UPDATED:
        if ev.status is not None:
            user.subscription_status = ev.status
        if ev.plan is not None:
            user.subscription_plan = ev.plan
        if ev.period_start is not None:
            user.subscription_period_start = ev.period_start
        if ev.period_end is not None:
            user.subscription_period_end = ev.period_end
        if ev.cancel_at_period_end is not None:
            user.subscription_cancel_at_period_end = ev.cancel_at_period_end

    # a dead membership never keeps a paid plan, whichever event got it there
    if user.subscription_status == STATUS_DEACTIVATED:
        user.subscription_plan = PLAN_FREE
        user.subscription_cancel_at_period_end = False

    if ev.membership_id:
        user.membership_id = ev.membership_id
    if ev.account_id:
        user.billing_account_id = ev.account_id
    user.billing_provider = ev.provider
    user.role = role_for(user.role, user.subscription_status)
    user.subscription_synced_at = now


# ============================================================
# Correlation + idempotency
# ============================================================

def resolve_user(db: Session, ev: BillingEvent) -> Optional[User]:
    """Checkout metadata user id, then stored membership id, then email."""
    if ev.user_ref and ev.user_ref.isdigit():
        user = crud.get_user(db, int(ev.user_ref))
        if user:
            return user
    if ev.membership_id:
        user = crud.get_user_by_membership(db, ev.membership_id)
        if user:
            return user
    if ev.email:
        return crud.get_user_by_email(db, ev.email)
    return None


def _already_processed(db: Session, ev: BillingEvent) -> bool:
    return (
        db.query(WebhookEvent.id)
        .filter(WebhookEvent.provider == ev.provider, WebhookEvent.event_id == ev.event_id)
        .first()
        is not None
    )


def process_event_once(db: Session, ev: BillingEvent, now: Optional[datetime] = None) -> str:
    log = logger.bind(provider=ev.provider, event_id=ev.event_id, event_type=ev.event_type)
    now = now or utcnow()

    if ev.kind is None:
        log.info("webhook event type not handled")
        return IGNORED

    if _already_processed(db, ev):
        log.info("webhook event already processed")
        return DUPLICATE

    user = resolve_user(db, ev)
    if user is None:
        log.warning("webhook event matches no user", membership_id=ev.membership_id, email=ev.email)
        return IGNORED

    apply_billing_event(user, ev, now)
    db.add(WebhookEvent(
        provider=ev.provider,
        event_id=ev.event_id,
        event_type=ev.event_type,
        user_id=user.id,
        processed_at=now,
    ))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent delivery of the same event won the insert
        db.rollback()
        log.info("webhook event already processed (concurrent)")
        return DUPLICATE

    log.info("webhook event applied", user_id=user.id, kind=ev.kind, status=user.subscription_status)
    return APPLIED


# ============================================================
# Provider payloads -> BillingEvent
# ============================================================

def whop_event(payload: dict, raw: bytes) -> BillingEvent:
    """
    Whop has shipped two envelope shapes:
      {"id", "data": {"action", "membership": {...}}}   and
      {"action", "data": {...membership...}}
    """
    data = payload.get("data") or {}
    action = payload.get("action") or data.get("action") or payload.get("type") or ""

    inline = data if action.startswith("membership.") and "status" in data else None
    membership = data.get("membership", inline)
    event_id = payload.get("id") or "sha256:" + hashlib.sha256(raw).hexdigest()
    ev = BillingEvent(provider="whop", event_id=str(event_id), event_type=action, kind=_WHOP_KINDS.get(action))

    if isinstance(membership, str):
        ev.membership_id = membership
    elif isinstance(membership, dict):
        remote = whop_client.membership_from_payload(membership)
        ev.membership_id = remote.membership_id
        ev.account_id = remote.account_id
        ev.email = remote.email
        ev.user_ref = remote.user_ref
        ev.status = remote.status
        ev.plan = remote.plan
        ev.period_start = remote.period_start
        ev.period_end = remote.period_end
        ev.cancel_at_period_end = remote.cancel_at_period_end

    if ev.membership_id is None:
        ev.membership_id = data.get("membership_id")

    # created-but-not-yet-valid memberships only update the mirror
    if ev.kind == ACTIVATED and ev.status is not None and ev.status not in PREMIUM_STATUSES:
        ev.kind = UPDATED

    return ev


def fastspring_events(payload: dict) -> List[Any]:
    """The raw event list of a batch; each entry is parsed on its own."""
    events = payload.get("events")
    return events if isinstance(events, list) else []


def fastspring_event(event: Any) -> BillingEvent:
    if not isinstance(event, dict):
        raise ValueError("fastspring event is not an object")
    data = event.get("data") or {}
    if not isinstance(data, dict):
        raise ValueError("fastspring event data is not an object")
    event_type = event.get("type") or ""
    account_id, email = fastspring.account_of(data)
    product = data.get("product")

    return BillingEvent(
        provider="fastspring",
        event_id=str(event.get("id") or ""),
        event_type=event_type,
        kind=_FASTSPRING_KINDS.get(event_type),
        membership_id=data.get("subscription") or data.get("id"),
        account_id=account_id,
        email=email,
        user_ref=fastspring.user_ref_of(data),
        status=fastspring.map_state(data.get("state")),
        plan=fastspring.map_product(product) if product else None,
        period_start=fastspring.timestamp(data, "begin"),
        period_end=fastspring.timestamp(data, "end") or fastspring.timestamp(data, "next"),
        cancel_at_period_end=None,
    )


def process_fastspring_batch(db: Session, events: Iterable[Any]) -> dict:
    """One bad event is logged and skipped; the rest still apply."""
    counts = {APPLIED: 0, DUPLICATE: 0, IGNORED: 0, "failed": 0}
    for raw in events:
        raw_id = raw.get("id") if isinstance(raw, dict) else None
        try:
            ev = fastspring_event(raw)
        except Exception:
            logger.exception("fastspring event malformed", event_id=raw_id)
            counts["failed"] += 1
            continue

        if not ev.event_id:
            logger.warning("fastspring event without id", event_type=ev.event_type)
            counts[IGNORED] += 1
            continue
        try:
            counts[process_event_once(db, ev)] += 1
        except Exception:
            db.rollback()
            logger.exception("fastspring event failed", event_id=ev.event_id, event_type=ev.event_type)
            counts["failed"] += 1
    return counts
