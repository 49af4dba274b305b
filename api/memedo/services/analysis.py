# api/memedo/services/analysis.py
"""
Token safety analysis.

One GoPlus security record (plus BirdEye market data when configured) in,
one persisted `Analysis` snapshot out:

    score = 100 - penalties (+5 if source verified), clamped to 0..100
    risk  = LOW (>= 80) | MEDIUM (>= 50) | HIGH

No security data at all gives a neutral 50 with completeness 0.
"""
from __future__ import annotations

from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from .. import crud
from ..errors import NotFoundError
from ..models import Analysis, User
from ..util import utcnow
from . import birdeye, goplus
from .watchlist import validate_token

logger = structlog.get_logger(__name__)

NEUTRAL_SCORE = 50

# (flag, penalty)
_FLAG_PENALTIES = (
    ("is_honeypot", 40),
    ("hidden_owner", 40),
    ("is_mintable", 20),
    ("can_take_back_ownership", 20),
    ("has_blacklist", 20),
    ("is_proxy", 15),
    ("trading_cooldown", 10),
    ("can_be_paused", 10),
)


def safety_score(sec: Optional[dict]) -> int:
    if not sec:
        return NEUTRAL_SCORE

    score = 100
    for flag, penalty in _FLAG_PENALTIES:
        if sec.get(flag):
            score -= penalty

    owner = sec.get("owner_percent") or 0
    if owner > 10:
        score -= 10
    if owner > 30:
        score -= 10

    buy_tax = sec.get("buy_tax_percent") or 0
    sell_tax = sec.get("sell_tax_percent") or 0
    if buy_tax > 10:
        score -= 5
    if sell_tax > 10:
        score -= 5
    if sell_tax > 20:
        score -= 10

    if sec.get("is_open_source"):
        score += 5

    return max(0, min(100, score))


def risk_level(score: int) -> str:
    if score >= 80:
        return "LOW"
    if score >= 50:
        return "MEDIUM"
    return "HIGH"


def red_flags(sec: Optional[dict]) -> List[str]:
    if not sec:
        return ["Security data unavailable"]

    flags = []
    if sec.get("is_honeypot"):
        flags.append("Honeypot detected: this token cannot be sold")
    if sec.get("hidden_owner"):
        flags.append("Hidden owner detected")
    if sec.get("is_mintable"):
        flags.append("Owner can mint new tokens")
    if sec.get("can_take_back_ownership"):
        flags.append("Ownership can be reclaimed after renouncement")
    if sec.get("has_blacklist"):
        flags.append("Owner can blacklist addresses")
    if sec.get("is_proxy"):
        flags.append("Contract is upgradeable (proxy)")
    owner = sec.get("owner_percent") or 0
    if owner > 30:
        flags.append(f"Owner holds {owner:.1f}% of supply")
    sell_tax = sec.get("sell_tax_percent") or 0
    if sell_tax > 20:
        flags.append(f"High sell tax: {sell_tax:.1f}%")
    return flags


def summary(score: int, flags: List[str], name: Optional[str]) -> str:
    name = name or "This token"
    n = len(flags)
    if score >= 80:
        return f"{name} appears relatively safe with a score of {score}/100. {n} issues flagged. Always do your own research."
    if score >= 50:
        return f"{name} has some concerns ({score}/100). {n} risks identified. Proceed with caution."
    return f"{name} shows significant red flags ({score}/100). {n} risks detected. High risk."


def completeness(sec: Optional[dict], market: Optional[dict] = None) -> int:
    """Share of the data groups we could fill: security, metadata, liquidity, holders."""
    sec = sec or {}
    market = market or {}
    if not sec and not market:
        return 0
    parts = [
        bool(sec),
        bool(sec.get("token_name") or sec.get("token_symbol")),
        sec.get("liquidity_usd") is not None or market.get("liquidity_usd") is not None,
        sec.get("holder_count") is not None,
    ]
    return round(sum(parts) / len(parts) * 100)


def analyze(db: Session, user: User, chain: str, token_address: str) -> Analysis:
    address, chain = validate_token(token_address, chain)
    log = logger.bind(user_id=user.id, chain=chain, token=address)

    raw = goplus.fetch_token_security(chain, address)
    sec = goplus.parse_security(raw) if raw else None
    market = birdeye.fetch_market_data(chain, address) or {}
    liquidity = market.get("liquidity_usd")
    if liquidity is None and sec:
        liquidity = sec.get("liquidity_usd")

    score = safety_score(sec)
    flags = red_flags(sec)
    name = sec.get("token_name") if sec else None
    symbol = sec.get("token_symbol") if sec else None

    payload = {
        "security": sec,
        "market": {
            "price_usd": market.get("price_usd"),
            "liquidity_usd": liquidity,
            "volume_24h_usd": market.get("volume_24h_usd"),
            "market_cap_usd": market.get("market_cap_usd"),
            "holders": sec.get("holder_count") if sec else None,
            "top10_holder_percent": sec.get("top10_holder_percent") if sec else None,
        },
        "red_flags": flags,
        "summary": summary(score, flags, name),
        "sources": (["goplus"] if sec else []) + (["birdeye"] if market else []),
        "analyzed_at": utcnow().isoformat(),
    }

    analysis = crud.create_analysis(
        db,
        user_id=user.id,
        chain=chain,
        token_address=address,
        token_name=name,
        token_symbol=symbol,
        safety_score=score,
        risk_level=risk_level(score),
        completeness=completeness(sec, market),
        payload=payload,
    )
    log.info("token analyzed", analysis_id=analysis.id, score=score, risk=analysis.risk_level)
    return analysis


def history(db: Session, user: User, limit: int = 20) -> List[Analysis]:
    return (
        db.query(Analysis)
        .filter(Analysis.user_id == user.id)
        .order_by(Analysis.created_at.desc(), Analysis.id.desc())
        .limit(limit)
        .all()
    )


def get_for_user(db: Session, user: User, analysis_id: int) -> Analysis:
    a = db.query(Analysis).filter(Analysis.id == analysis_id, Analysis.user_id == user.id).first()
    if a is None:
        raise NotFoundError("Analysis not found")
    return a
