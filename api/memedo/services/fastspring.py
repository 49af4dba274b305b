# api/memedo/services/fastspring.py
"""
FastSpring only pushes webhooks to us. Each POST carries a batch:

    {"events": [{"id": ..., "type": "subscription.activated", "data": {...}}, ...]}

The subscription object inside `data` already has everything we mirror, so
there is no API client here, just signature checking and field mapping.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Any, Optional

from ..settings import settings
from .membership import (
    PLAN_FREE, PLAN_MONTHLY, PLAN_YEARLY, SUBSCRIPTION_STATUSES,
)

SIGNATURE_HEADER = "X-FS-Signature"


def verify_signature(payload: bytes, signature: Optional[str]) -> bool:
    """Base64 HMAC-SHA256 of the raw body."""
    secret = settings.FASTSPRING_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return hmac.compare_digest(expected, signature.strip())


def map_product(product: Any) -> str:
    """Product path -> plan. Accepts the path string or an expanded product object."""
    if isinstance(product, dict):
        product = product.get("product") or product.get("path") or ""
    path = (product or "").lower()
    if path.endswith("yearly") or path.endswith("annual"):
        return PLAN_YEARLY
    if path.endswith("monthly"):
        return PLAN_MONTHLY
    return PLAN_FREE


def map_state(state: Optional[str]) -> Optional[str]:
    # FastSpring states share our vocabulary
    state = (state or "").lower()
    return state if state in SUBSCRIPTION_STATUSES else None


def timestamp(data: dict, field: str) -> Optional[datetime]:
    """
    FastSpring sends every date twice: `<field>` in ms and `<field>InSeconds`.
    Prefer seconds; returned naive UTC.
    """
    secs = data.get(f"{field}InSeconds")
    if secs is None and data.get(field) is not None:
        secs = data[field] / 1000
    if secs is None:
        return None
    return datetime.fromtimestamp(secs, tz=timezone.utc).replace(tzinfo=None)


def account_of(data: dict) -> tuple[Optional[str], Optional[str]]:
    """(account id, contact email). `account` is an id or an expanded account object."""
    account = data.get("account")
    if isinstance(account, dict):
        contact = account.get("contact") or {}
        return account.get("id") or account.get("account"), contact.get("email")
    contact = data.get("contact") or {}
    return account, contact.get("email") or data.get("email")


def user_ref_of(data: dict) -> Optional[str]:
    """Our user id, passed to the storefront as a session tag at checkout."""
    tags = data.get("tags") or {}
    ref = tags.get("user_id") if isinstance(tags, dict) else None
    return str(ref) if ref is not None else None
