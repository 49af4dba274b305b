# api/memedo/services/analytics.py
from __future__ import annotations

import math
from collections import Counter
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import crud
from ..models import Analysis, User, WatchlistEntry

TOP_N = 5
ATTENTION_BELOW = 50

Row = Tuple[WatchlistEntry, Optional[Analysis]]


def _round1(x: float) -> float:
    # half-up, not banker's rounding
    return math.floor(x * 10 + 0.5) / 10


def _empty() -> dict:
    return {
        "overview": {
            "total_tokens": 0,
            "average_safety_score": 0,
            "risk_distribution": {"high": 0, "medium": 0, "low": 0, "unknown": 0},
            "chain_distribution": {},
        },
        "top_tokens": [],
        "attention_needed": [],
        "recent_activity": [],
    }


def _scored(entry: WatchlistEntry, a: Analysis) -> dict:
    return {
        "token_name": entry.token_name or "Unknown",
        "token_symbol": entry.token_symbol or "N/A",
        "token_address": entry.token_address,
        "chain": entry.chain,
        "safety_score": a.safety_score,
        "risk_level": a.risk_level or "unknown",
    }


def overview(rows: List[Row]) -> dict:
    scores = [a.safety_score for _, a in rows if a is not None and a.safety_score is not None]
    avg = _round1(sum(scores) / len(scores)) if scores else 0

    risk = {"high": 0, "medium": 0, "low": 0, "unknown": 0}
    for _, a in rows:
        level = ((a.risk_level if a else None) or "unknown").lower()
        risk[level if level in risk else "unknown"] += 1

    chains = Counter(e.chain for e, _ in rows)
    return {
        "total_tokens": len(rows),
        "average_safety_score": avg,
        "risk_distribution": risk,
        "chain_distribution": dict(chains),
    }


def top_tokens(rows: List[Row]) -> List[dict]:
    scored = [(e, a) for e, a in rows if a is not None and a.safety_score is not None]
    scored.sort(key=lambda r: r[1].safety_score, reverse=True)
    return [_scored(e, a) for e, a in scored[:TOP_N]]


def attention_needed(rows: List[Row]) -> List[dict]:
    low = [
        (e, a) for e, a in rows
        if a is not None and a.safety_score is not None and a.safety_score < ATTENTION_BELOW
    ]
    low.sort(key=lambda r: r[1].safety_score)
    return [_scored(e, a) for e, a in low[:TOP_N]]


def recent_activity(entries: List[WatchlistEntry]) -> List[dict]:
    newest = sorted(entries, key=lambda e: (e.added_at, e.id), reverse=True)[:TOP_N]
    return [
        {
            "token_name": e.token_name or "Unknown",
            "token_symbol": e.token_symbol or "N/A",
            "token_address": e.token_address,
            "chain": e.chain,
            "added_at": e.added_at,
        }
        for e in newest
    ]


def dashboard(db: Session, user: User) -> dict:
    entries = db.query(WatchlistEntry).filter(WatchlistEntry.user_id == user.id).all()
    if not entries:
        return _empty()

    latest = crud.latest_analyses_for_watchlist(db, user.id)
    rows = [(e, latest.get((e.token_address, e.chain))) for e in entries]
    return {
        "overview": overview(rows),
        "top_tokens": top_tokens(rows),
        "attention_needed": attention_needed(rows),
        "recent_activity": recent_activity(entries),
    }
