# api/memedo/routers/watchlist.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps.current_user import current_user
from ..models import User
from ..responses import ok
from ..schemas import WatchlistIn, WatchlistOut
from ..services import watchlist

router = APIRouter(prefix="/watchlist", tags=["watchlist"])


@router.post("", status_code=201)
def add_to_watchlist(
    payload: WatchlistIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    entry = watchlist.add_entry(
        db, user,
        token_address=payload.token_address,
        chain=payload.chain,
        token_name=payload.token_name,
        token_symbol=payload.token_symbol,
    )
    return ok(WatchlistOut.model_validate(entry).model_dump(), message="Token added to watchlist")


@router.get("")
def get_watchlist(
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    items = watchlist.list_entries(db, user)
    return ok(items, count=len(items))


@router.delete("/{entry_id}")
def remove_from_watchlist(
    entry_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    watchlist.remove_entry(db, user, entry_id)
    return ok(None, message="Token removed from watchlist")


@router.get("/check/{token_address}/{chain}")
def check_watchlist(
    token_address: str,
    chain: str,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return ok(watchlist.check(db, user, token_address, chain))
