# api/memedo/responses.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def ok(data: Any = None, **extra: Any) -> dict:
    """Standard success envelope: {"success": true, "data": ..., **extra}."""
    body: dict[str, Any] = {"success": True, "data": data}
    body.update(extra)
    return body


def fail(code: str, message: str) -> dict:
    """Standard error envelope."""
    return {
        "success": False,
        "error": {"code": code, "message": message},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
