# api/memedo/services/birdeye.py
"""
BirdEye market data: price, liquidity, market cap and 24h volume.

Optional. Without BIRDEYE_API_KEY nothing is requested and analyses carry
only what GoPlus knows (liquidity, holders).
"""
from __future__ import annotations

from typing import Optional

import requests
import structlog

from ..settings import settings

logger = structlog.get_logger(__name__)

CHAINS = {"ethereum", "solana", "bsc", "polygon", "avalanche", "base"}


def _get(path: str, chain: str, address: str, **params) -> Optional[dict]:
    url = f"{settings.BIRDEYE_API_BASE.rstrip('/')}{path}"
    try:
        r = requests.get(
            url,
            params={"address": address, **params},
            headers={
                "X-API-KEY": settings.BIRDEYE_API_KEY,
                "x-chain": chain,
                "Accept": "application/json",
            },
            timeout=settings.BIRDEYE_TIMEOUT,
        )
        r.raise_for_status()
        body = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("birdeye request failed", path=path, chain=chain, token=address, error=repr(e))
        return None

    data = body.get("data") if isinstance(body, dict) else None
    return data if isinstance(data, dict) else None


def _num(v) -> Optional[float]:
    if v in (None, ""):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def fetch_market_data(chain: str, address: str) -> Optional[dict]:
    """
    {price_usd, liquidity_usd, market_cap_usd, volume_24h_usd}, any of them
    None when BirdEye did not report it. None when BirdEye is off or has
    nothing for the token.
    """
    if not settings.BIRDEYE_API_KEY or chain not in CHAINS:
        return None

    market = _get("/defi/v3/token/market-data/single", chain, address)
    trade = _get("/defi/v3/token/trade-data/single", chain, address, type="24h")
    if market is None and trade is None:
        return None

    market = market or {}
    trade = trade or {}
    return {
        "price_usd": _num(market.get("price")),
        "liquidity_usd": _num(market.get("liquidity")),
        "market_cap_usd": _num(market.get("market_cap")),
        "volume_24h_usd": _num(trade.get("volume_24h_usd") or market.get("v24hUSD")),
    }
