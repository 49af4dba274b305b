# api/memedo/services/goplus.py
from __future__ import annotations

from typing import Optional

import requests
import structlog

from ..settings import settings

logger = structlog.get_logger(__name__)

# our chain -> GoPlus chain id
CHAIN_IDS = {
    "ethereum": "1",
    "bsc": "56",
    "polygon": "137",
    "avalanche": "43114",
    "base": "8453",
}


def _url(chain: str) -> Optional[str]:
    base = settings.GOPLUS_API_BASE.rstrip("/")
    if chain == "solana":
        return f"{base}/solana/token_security"
    chain_id = CHAIN_IDS.get(chain)
    return f"{base}/token_security/{chain_id}" if chain_id else None


def fetch_token_security(chain: str, address: str) -> Optional[dict]:
    """
    Raw GoPlus token_security record for one token, or None when GoPlus has
    nothing or is unreachable. The analysis degrades to a neutral score then.
    """
    url = _url(chain)
    if not url:
        return None

    try:
        r = requests.get(
            url,
            params={"contract_addresses": address},
            headers={"Accept": "application/json"},
            timeout=settings.GOPLUS_TIMEOUT,
        )
        r.raise_for_status()
        body = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("goplus request failed", chain=chain, token=address, error=repr(e))
        return None

    if body.get("code") != 1:
        logger.warning("goplus error", chain=chain, token=address, message=body.get("message"))
        return None

    result = body.get("result") or {}
    # EVM results are keyed by the lower-cased address; Solana keeps case
    return result.get(address) or result.get(address.lower())


def _flag(v) -> bool:
    return str(v) == "1"


def _pct(v) -> Optional[float]:
    """GoPlus fractions ("0.05") -> percent (5.0)."""
    if v in (None, ""):
        return None
    try:
        return float(v) * 100
    except (TypeError, ValueError):
        return None


def _num(v) -> Optional[float]:
    if v in (None, ""):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def parse_security(data: dict) -> dict:
    """Normalize the string-typed GoPlus record into booleans and percentages."""
    dex = data.get("dex") or []
    liquidity = sum(_num(d.get("liquidity")) or 0 for d in dex if isinstance(d, dict)) if dex else None

    holders = data.get("holders") or []
    top10 = None
    if holders:
        top10 = round(sum(_pct(h.get("percent")) or 0 for h in holders[:10] if isinstance(h, dict)), 2)

    holder_count = _num(data.get("holder_count"))

    return {
        "token_name": data.get("token_name") or None,
        "token_symbol": data.get("token_symbol") or None,
        "is_honeypot": _flag(data.get("is_honeypot")) or _flag(data.get("honeypot_with_same_creator")),
        "hidden_owner": _flag(data.get("hidden_owner")),
        "is_mintable": _flag(data.get("is_mintable")),
        "can_take_back_ownership": _flag(data.get("can_take_back_ownership")),
        "has_blacklist": _flag(data.get("is_blacklisted")) or _flag(data.get("blacklist_function")),
        "is_proxy": _flag(data.get("is_proxy")),
        "trading_cooldown": _flag(data.get("trading_cooldown")),
        "can_be_paused": _flag(data.get("can_be_paused")) or _flag(data.get("transfer_pausable")),
        "is_open_source": _flag(data.get("is_open_source")),
        "buy_tax_percent": _pct(data.get("buy_tax")),
        "sell_tax_percent": _pct(data.get("sell_tax")),
        "owner_percent": _pct(data.get("owner_percent")),
        "creator_percent": _pct(data.get("creator_percent")),
        "holder_count": int(holder_count) if holder_count is not None else None,
        "top10_holder_percent": top10,
        "liquidity_usd": liquidity,
    }
