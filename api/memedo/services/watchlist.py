# api/memedo/services/watchlist.py
from __future__ import annotations

from typing import List, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import Analysis, User, WatchlistEntry
from ..util import SUPPORTED_CHAINS, is_valid_address, normalize_address, normalize_chain
from .membership import plan_benefits

logger = structlog.get_logger(__name__)


def price_of(analysis: Analysis) -> Optional[float]:
    market = (analysis.payload or {}).get("market") or {}
    return market.get("price_usd")


def latest_summary(analysis: Optional[Analysis]) -> Optional[dict]:
    if analysis is None:
        return None
    return {
        "safety_score": analysis.safety_score,
        "risk_level": analysis.risk_level,
        "price_usd": price_of(analysis),
        "analyzed_at": analysis.created_at,
    }


def entry_dict(entry: WatchlistEntry, latest: Optional[Analysis] = None) -> dict:
    return {
        "id": entry.id,
        "token_address": entry.token_address,
        "chain": entry.chain,
        "token_name": entry.token_name,
        "token_symbol": entry.token_symbol,
        "added_at": entry.added_at,
        "latest_analysis": latest_summary(latest),
    }


def validate_token(token_address: str, chain: str) -> tuple[str, str]:
    """Normalized (address, chain), or 400."""
    chain = normalize_chain(chain)
    if chain not in SUPPORTED_CHAINS:
        raise ValidationError(f"Unsupported chain '{chain}'. Supported: {', '.join(SUPPORTED_CHAINS)}")
    address = (token_address or "").strip()
    if not is_valid_address(address, chain):
        raise ValidationError(f"Invalid token address for {chain}")
    return normalize_address(address, chain), chain


def add_entry(
    db: Session,
    user: User,
    token_address: str,
    chain: str,
    token_name: Optional[str] = None,
    token_symbol: Optional[str] = None,
) -> WatchlistEntry:
    address, chain = validate_token(token_address, chain)

    existing = (
        db.query(WatchlistEntry)
        .filter_by(user_id=user.id, token_address=address, chain=chain)
        .first()
    )
    if existing:
        raise ConflictError("Token already in watchlist")

    allowance = plan_benefits(user.subscription_plan)["max_watchlist_tokens"]
    count = db.query(WatchlistEntry).filter_by(user_id=user.id).count()
    if count >= allowance:
        raise ForbiddenError(f"Watchlist limit reached ({allowance} tokens) for your plan")

    entry = WatchlistEntry(
        user_id=user.id,
        token_address=address,
        chain=chain,
        token_name=token_name,
        token_symbol=token_symbol,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with an identical add
        db.rollback()
        raise ConflictError("Token already in watchlist")
    db.refresh(entry)

    logger.info("watchlist add", user_id=user.id, chain=chain, token=address)
    return entry


def list_entries(db: Session, user: User) -> List[dict]:
    entries = (
        db.query(WatchlistEntry)
        .filter(WatchlistEntry.user_id == user.id)
        .order_by(WatchlistEntry.added_at.desc(), WatchlistEntry.id.desc())
        .all()
    )
    latest = crud.latest_analyses_for_watchlist(db, user.id)
    return [entry_dict(e, latest.get((e.token_address, e.chain))) for e in entries]


def remove_entry(db: Session, user: User, entry_id: int) -> None:
    deleted = (
        db.query(WatchlistEntry)
        .filter(WatchlistEntry.id == entry_id, WatchlistEntry.user_id == user.id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFoundError("Watchlist item not found")
    db.commit()
    logger.info("watchlist remove", user_id=user.id, entry_id=entry_id)


def check(db: Session, user: User, token_address: str, chain: str) -> dict:
    chain = normalize_chain(chain)
    address = normalize_address(token_address, chain)
    entry = (
        db.query(WatchlistEntry)
        .filter_by(user_id=user.id, token_address=address, chain=chain)
        .first()
    )
    return {"in_watchlist": entry is not None, "watchlist_id": entry.id if entry else None}
