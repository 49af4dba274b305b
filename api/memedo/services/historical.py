# api/memedo/services/historical.py
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models import Analysis, User
from ..util import normalize_address, normalize_chain, utcnow

logger = structlog.get_logger(__name__)


def _half_up(x: float, places: int = 0) -> float:
    f = 10 ** places
    return math.floor(x * f + 0.5) / f


def data_point(a: Analysis) -> dict:
    market = (a.payload or {}).get("market") or {}
    return {
        "timestamp": a.created_at,
        "safety_score": a.safety_score,
        "risk_level": a.risk_level,
        "price_usd": market.get("price_usd"),
        "liquidity_usd": market.get("liquidity_usd"),
        "volume_24h": market.get("volume_24h_usd"),
        "market_cap": market.get("market_cap_usd"),
        "holders": market.get("holders"),
        "top10_holder_percentage": market.get("top10_holder_percent"),
        "data_completeness": a.completeness,
    }


def summarize(points: List[dict]) -> dict:
    """`points` oldest first."""
    if not points:
        return {
            "average_safety_score": 0,
            "safety_score_change": 0,
            "price_change": None,
            "current_risk_level": "unknown",
            "previous_risk_level": "unknown",
            "risk_level_changed": False,
        }

    first, last = points[0], points[-1]
    scores = [p["safety_score"] or 0 for p in points]

    price_change = None
    p0, p1 = first["price_usd"], last["price_usd"]
    if p0 is not None and p1 is not None and p0 > 0:
        price_change = _half_up((p1 - p0) / p0 * 100, 2)

    return {
        "average_safety_score": int(_half_up(sum(scores) / len(scores))),
        "safety_score_change": (last["safety_score"] or 0) - (first["safety_score"] or 0),
        "price_change": price_change,
        "current_risk_level": last["risk_level"],
        "previous_risk_level": first["risk_level"],
        "risk_level_changed": last["risk_level"] != first["risk_level"],
    }


def token_history(
    db: Session,
    user: User,
    chain: str,
    token_address: str,
    days: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> dict:
    chain = normalize_chain(chain)
    token_address = normalize_address(token_address, chain)
    now = now or utcnow()

    q = db.query(Analysis).filter(
        Analysis.user_id == user.id,
        Analysis.chain == chain,
        Analysis.token_address == token_address,
    )
    if days:
        q = q.filter(Analysis.created_at >= now - timedelta(days=days))
    else:
        if date_from and date_to and date_from > date_to:
            raise ValidationError("'from' must be before 'to'")
        if date_from:
            q = q.filter(Analysis.created_at >= date_from)
        if date_to:
            q = q.filter(Analysis.created_at <= date_to)

    rows = q.order_by(Analysis.created_at.asc(), Analysis.id.asc()).all()
    if not rows:
        logger.info("no token history", user_id=user.id, chain=chain, token=token_address)
        raise NotFoundError("No historical data found for this token")

    points = [data_point(a) for a in rows]
    latest = rows[-1]
    return {
        "token_address": token_address,
        "chain": chain,
        "token_name": latest.token_name,
        "token_symbol": latest.token_symbol,
        "total_analyses": len(points),
        "date_range": {"oldest": points[0]["timestamp"], "newest": points[-1]["timestamp"]},
        "data_points": points,
        "summary": summarize(points),
    }


def activity(db: Session, user: User, days: int = 30, now: Optional[datetime] = None) -> dict:
    """Analyses per calendar day (UTC) over the last `days` days."""
    now = now or utcnow()
    day = func.date(Analysis.created_at)
    rows = (
        db.query(day.label("day"), func.count(Analysis.id).label("n"))
        .filter(Analysis.user_id == user.id, Analysis.created_at >= now - timedelta(days=days))
        .group_by(day)
        .order_by(day)
        .all()
    )
    return {
        "labels": [str(r.day) for r in rows],
        "counts": [int(r.n) for r in rows],
    }


def tokens_with_history(db: Session, user: User) -> List[dict]:
    """Tokens this user analyzed more than once, most recently analyzed first."""
    last = func.max(Analysis.created_at)
    rows = (
        db.query(
            Analysis.token_address,
            Analysis.chain,
            func.max(Analysis.token_name).label("token_name"),
            func.max(Analysis.token_symbol).label("token_symbol"),
            func.count(Analysis.id).label("n"),
            func.min(Analysis.created_at).label("first_analysis"),
            last.label("last_analysis"),
        )
        .filter(Analysis.user_id == user.id)
        .group_by(Analysis.token_address, Analysis.chain)
        .having(func.count(Analysis.id) > 1)
        .order_by(last.desc())
        .all()
    )
    return [
        {
            "token_address": r.token_address,
            "chain": r.chain,
            "token_name": r.token_name,
            "token_symbol": r.token_symbol,
            "analysis_count": int(r.n),
            "first_analysis": r.first_analysis,
            "last_analysis": r.last_analysis,
        }
        for r in rows
    ]
