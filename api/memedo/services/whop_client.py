# api/memedo/services/whop_client.py
from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
import structlog
from dateutil import parser as dtparser

from ..errors import BillingProviderError
from ..settings import settings
from .membership import (
    PLAN_MONTHLY, PLAN_YEARLY, RemoteMembership,
    STATUS_ACTIVE, STATUS_TRIAL, STATUS_OVERDUE, STATUS_CANCELED, STATUS_DEACTIVATED,
)

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "x-whop-signature"

# Whop membership status -> ours. Anything else (expired, completed, drafted...) is over.
_STATUS_MAP = {
    "active": STATUS_ACTIVE,
    "trialing": STATUS_TRIAL,
    "past_due": STATUS_OVERDUE,
    "unresolved": STATUS_OVERDUE,
    "canceled": STATUS_CANCELED,
    "expired": STATUS_DEACTIVATED,
}


# ============================================================
# HTTP
# ============================================================

def _headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.WHOP_API_KEY}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def _request(method: str, path: str, **kwargs) -> requests.Response:
    if not settings.WHOP_API_KEY:
        raise BillingProviderError("Whop is not configured on server")

    url = f"{settings.WHOP_API_BASE.rstrip('/')}/{path.lstrip('/')}"
    try:
        r = requests.request(method, url, headers=_headers(), timeout=settings.WHOP_TIMEOUT, **kwargs)
    except requests.RequestException as e:
        logger.error("whop request failed", method=method, path=path, error=repr(e))
        raise BillingProviderError("Billing provider unavailable") from e
    return r


def _json_or_raise(r: requests.Response, what: str) -> Any:
    if r.status_code >= 400:
        logger.error("whop error response", what=what, status=r.status_code, body=r.text[:300])
        raise BillingProviderError(f"Billing provider error while trying to {what}")
    try:
        return r.json()
    except ValueError as e:
        raise BillingProviderError(f"Billing provider returned invalid JSON while trying to {what}") from e


# ============================================================
# Memberships
# ============================================================

def get_membership(membership_id: str) -> Optional[dict]:
    """Raw membership, or None when Whop no longer knows the id."""
    r = _request("GET", f"memberships/{membership_id}")
    if r.status_code == 404:
        logger.info("whop membership not found", membership_id=membership_id)
        return None
    return _json_or_raise(r, "fetch membership")


def list_memberships_by_email(email: str) -> List[dict]:
    params = {"email": email}
    r = _request("GET", "memberships", params=params)
    body = _json_or_raise(r, "list memberships")
    if isinstance(body, dict):
        return list(body.get("data") or [])
    return list(body or [])


def find_active_membership(email: str) -> Optional[dict]:
    """First valid active/trialing membership for this email, if any."""
    for m in list_memberships_by_email(email):
        if m.get("valid", True) and m.get("status") in ("active", "trialing"):
            return m
    return None


# ============================================================
# Checkout + portal
# ============================================================

def create_checkout_session(user_id: int, email: Optional[str], plan_id: str) -> str:
    """
    Dynamic checkout with our user id in metadata so webhooks can be
    reconciled back to the account. No fallback URL: without metadata the
    resulting membership could only be matched by email.
    """
    if not plan_id:
        raise BillingProviderError("Whop plan is not configured on server")

    base = settings.FRONTEND_BASE_URL.rstrip("/")
    payload = {
        "plan_id": plan_id,
        "email": email,
        "metadata": {"user_id": str(user_id), "source": "memedo_frontend"},
        "success_url": f"{base}/dashboard?checkout=success",
        "cancel_url": f"{base}/pricing?checkout=cancelled",
    }
    r = _request("POST", "checkout/sessions", json=payload)
    body = _json_or_raise(r, "create checkout session") or {}

    url = body.get("checkout_url") or body.get("purchase_url") or body.get("url")
    if not url:
        logger.error("whop checkout without url", user_id=user_id, keys=sorted(body.keys()))
        raise BillingProviderError("Billing provider did not return a checkout URL")

    logger.info("whop checkout created", user_id=user_id, plan_id=plan_id)
    return url


def portal_url() -> str:
    return settings.WHOP_PORTAL_URL


# ============================================================
# Webhooks
# ============================================================

def verify_signature(payload: bytes, signature: Optional[str]) -> bool:
    """HMAC-SHA256 of the raw body, hex encoded."""
    secret = settings.WHOP_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


# ============================================================
# Mapping
# ============================================================

def _ts(value: Any) -> Optional[datetime]:
    """Whop sends either unix seconds or ISO-8601 strings. Returned naive UTC."""
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str) and value.isdigit():
        return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
    try:
        dt = dtparser.isoparse(str(value))
    except ValueError:
        logger.warning("unparseable whop timestamp", value=value)
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def map_status(whop_status: Optional[str]) -> str:
    return _STATUS_MAP.get((whop_status or "").lower(), STATUS_DEACTIVATED)


def map_plan(plan: Any) -> str:
    """Configured plan ids win; otherwise fall back to the billing interval."""
    plan_id = plan.get("id") if isinstance(plan, dict) else plan
    if plan_id and plan_id == settings.WHOP_PLAN_ID_YEARLY:
        return PLAN_YEARLY
    if plan_id and plan_id == settings.WHOP_PLAN_ID_MONTHLY:
        return PLAN_MONTHLY
    interval = (plan.get("interval") or "") if isinstance(plan, dict) else ""
    return PLAN_YEARLY if interval.startswith("year") else PLAN_MONTHLY


def membership_from_payload(m: dict) -> RemoteMembership:
    user = m.get("user") if isinstance(m.get("user"), dict) else {}
    metadata = m.get("metadata") or {}
    user_ref = metadata.get("user_id")
    return RemoteMembership(
        membership_id=m.get("id"),
        status=map_status(m.get("status")),
        plan=map_plan(m.get("plan") or m.get("plan_id")),
        period_start=_ts(m.get("renewal_period_start")),
        period_end=_ts(m.get("renewal_period_end")),
        cancel_at_period_end=bool(m.get("cancel_at_period_end")),
        email=(user.get("email") or m.get("email") or None),
        account_id=user.get("id") or (m.get("user") if isinstance(m.get("user"), str) else None),
        user_ref=str(user_ref) if user_ref is not None else None,
    )
