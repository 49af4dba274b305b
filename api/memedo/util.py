# api/memedo/util.py
from __future__ import annotations

import re
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta

SUPPORTED_CHAINS = ("ethereum", "solana", "base", "bsc", "polygon", "avalanche")

_EVM_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
_SOLANA_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def utcnow() -> datetime:
    """Naive UTC, matching how every DateTime column is stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(dt: datetime, months: int = 1) -> datetime:
    # relativedelta clamps Jan 31 + 1 month to Feb 28/29
    return dt + relativedelta(months=months)


def normalize_chain(chain: str) -> str:
    return (chain or "").strip().lower()


def normalize_address(address: str, chain: str) -> str:
    """EVM addresses are case-insensitive hex; Solana base58 is not."""
    address = (address or "").strip()
    if normalize_chain(chain) == "solana":
        return address
    return address.lower()


def is_valid_address(address: str, chain: str) -> bool:
    if normalize_chain(chain) == "solana":
        return bool(_SOLANA_ADDRESS.match(address or ""))
    return bool(_EVM_ADDRESS.match(address or ""))
