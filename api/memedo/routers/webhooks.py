# api/memedo/routers/webhooks.py
import json
from typing import Callable

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import BillingProviderError, UnauthorizedError, ValidationError
from ..responses import ok
from ..settings import settings
from ..services import fastspring, webhooks, whop_client

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _check_signature(
    provider: str,
    secret: str,
    body: bytes,
    signature: str,
    verify: Callable[[bytes, str], bool],
) -> None:
    """Reject unsigned or badly signed deliveries before anything is touched."""
    if not secret:
        if settings.is_production:
            raise BillingProviderError(f"{provider} webhook secret is not configured")
        logger.warning("webhook secret not set, skipping signature check", provider=provider)
        return
    if not verify(body, signature):
        raise UnauthorizedError("Invalid webhook signature")


def _json_body(body: bytes) -> dict:
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise ValidationError("Invalid webhook payload")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid webhook payload")
    return payload


@router.post("/whop")
async def whop_webhook(request: Request, db: Session = Depends(get_db)):
    body = await request.body()
    _check_signature(
        "whop", settings.WHOP_WEBHOOK_SECRET, body,
        request.headers.get(whop_client.SIGNATURE_HEADER, ""),
        whop_client.verify_signature,
    )
    payload = _json_body(body)

    ev = webhooks.whop_event(payload, body)
    result = webhooks.process_event_once(db, ev)
    return ok({"received": True, "result": result})


@router.post("/fastspring")
async def fastspring_webhook(request: Request, db: Session = Depends(get_db)):
    body = await request.body()
    _check_signature(
        "fastspring", settings.FASTSPRING_WEBHOOK_SECRET, body,
        request.headers.get(fastspring.SIGNATURE_HEADER, ""),
        fastspring.verify_signature,
    )
    payload = _json_body(body)
    if not isinstance(payload.get("events"), list):
        raise ValidationError("Invalid webhook payload")

    events = webhooks.fastspring_events(payload)
    logger.info("fastspring batch received", events=len(events))
    counts = webhooks.process_fastspring_batch(db, events)
    return ok({"received": True, **counts})
