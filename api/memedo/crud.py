from __future__ import annotations

from typing import Dict, Optional, Tuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from . import models

TokenKey = Tuple[str, str]  # (token_address, chain)


# -------- Users --------
def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_firebase_uid(db: Session, uid: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.firebase_uid == uid).first()


def get_user_by_membership(db: Session, membership_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.membership_id == membership_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(func.lower(models.User.email) == (email or "").strip().lower())
        .order_by(models.User.id.asc())
        .first()
    )


# -------- Analyses --------
def create_analysis(db: Session, **fields) -> models.Analysis:
    a = models.Analysis(**fields)
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


def latest_analyses_for_watchlist(db: Session, user_id: int) -> Dict[TokenKey, models.Analysis]:
    """
    Most recent analysis for every (token, chain) on the user's watchlist,
    in one query: rank analyses per token with row_number() and keep rank 1.
    Tokens never analyzed are simply absent from the result.
    """
    A, W = models.Analysis, models.WatchlistEntry

    ranked = (
        db.query(
            A.id.label("analysis_id"),
            func.row_number()
            .over(
                partition_by=(A.token_address, A.chain),
                order_by=(A.created_at.desc(), A.id.desc()),
            )
            .label("rn"),
        )
        .join(W, and_(W.token_address == A.token_address, W.chain == A.chain))
        .filter(W.user_id == user_id)
        .subquery()
    )

    rows = (
        db.query(A)
        .join(ranked, ranked.c.analysis_id == A.id)
        .filter(ranked.c.rn == 1)
        .all()
    )
    return {(a.token_address, a.chain): a for a in rows}
