from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests

from memedo.models import Analysis
from memedo.services import analysis, birdeye, goplus
from memedo.settings import settings
from memedo.util import utcnow

from conftest import EVM_TOKEN, SOL_TOKEN

GOPLUS_RECORD = {
    "token_name": "Pepe",
    "token_symbol": "PEPE",
    "is_honeypot": "0",
    "hidden_owner": "0",
    "is_mintable": "1",
    "is_proxy": "0",
    "is_open_source": "1",
    "buy_tax": "0.02",
    "sell_tax": "0.25",
    "owner_percent": "0.35",
    "holder_count": "1234",
    "holders": [{"percent": "0.2"}, {"percent": "0.05"}],
    "dex": [{"liquidity": "1000.5"}, {"liquidity": "500"}],
}


# ---------- scoring ----------

def test_clean_token_scores_full_marks():
    sec = goplus.parse_security({"is_open_source": "1"})
    assert analysis.safety_score(sec) == 100
    assert analysis.risk_level(100) == "LOW"


def test_penalties_stack():
    sec = goplus.parse_security(GOPLUS_RECORD)
    # 100 - 20 (mintable) - 20 (owner > 10 and > 30) - 15 (sell tax > 10 and > 20) + 5 (verified)
    assert analysis.safety_score(sec) == 50
    assert analysis.risk_level(50) == "MEDIUM"


def test_score_is_clamped_at_zero():
    sec = goplus.parse_security({
        "is_honeypot": "1", "hidden_owner": "1", "is_mintable": "1",
        "can_take_back_ownership": "1", "is_blacklisted": "1",
    })
    assert analysis.safety_score(sec) == 0
    assert analysis.risk_level(0) == "HIGH"


def test_no_security_data_is_neutral():
    assert analysis.safety_score(None) == 50
    assert analysis.red_flags(None) == ["Security data unavailable"]
    assert analysis.completeness(None) == 0


def test_red_flags_and_completeness():
    sec = goplus.parse_security(GOPLUS_RECORD)
    flags = analysis.red_flags(sec)
    assert "Owner can mint new tokens" in flags
    assert "Owner holds 35.0% of supply" in flags
    assert "High sell tax: 25.0%" in flags
    assert sec["top10_holder_percent"] == 25.0
    assert sec["liquidity_usd"] == 1500.5
    assert analysis.completeness(sec) == 100


# ---------- market data ----------

def _resp(body):
    r = MagicMock()
    r.json.return_value = body
    return r


def test_birdeye_is_off_without_key():
    with patch("memedo.services.birdeye.requests.get") as get:
        assert birdeye.fetch_market_data("ethereum", EVM_TOKEN) is None
    get.assert_not_called()


def test_birdeye_market_and_trade_data(monkeypatch):
    monkeypatch.setattr(settings, "BIRDEYE_API_KEY", "be_test")
    replies = [
        _resp({"success": True, "data": {"price": 0.0012, "liquidity": 250000, "market_cap": "1200000"}}),
        _resp({"success": True, "data": {"volume_24h_usd": 98000.5}}),
    ]
    with patch("memedo.services.birdeye.requests.get", side_effect=replies) as get:
        market = birdeye.fetch_market_data("solana", SOL_TOKEN)
    assert market == {
        "price_usd": 0.0012,
        "liquidity_usd": 250000.0,
        "market_cap_usd": 1200000.0,
        "volume_24h_usd": 98000.5,
    }
    first = get.call_args_list[0]
    assert first.kwargs["headers"]["X-API-KEY"] == "be_test"
    assert first.kwargs["headers"]["x-chain"] == "solana"
    assert first.kwargs["params"]["address"] == SOL_TOKEN


def test_birdeye_failure_is_none(monkeypatch):
    monkeypatch.setattr(settings, "BIRDEYE_API_KEY", "be_test")
    with patch("memedo.services.birdeye.requests.get", side_effect=requests.ConnectionError("down")):
        assert birdeye.fetch_market_data("ethereum", EVM_TOKEN) is None


# ---------- endpoint ----------

def test_analyze_persists_snapshot_and_counts_usage(client, db, user, monkeypatch):
    monkeypatch.setattr(goplus, "fetch_token_security", lambda chain, addr: GOPLUS_RECORD)

    r = client.post(f"/api/analysis/ethereum/{EVM_TOKEN}")
    assert r.status_code == 200
    body = r.json()
    assert body["data"]["safety_score"] == 50
    assert body["data"]["risk_level"] == "MEDIUM"
    assert body["data"]["token_symbol"] == "PEPE"
    assert body["data"]["payload"]["market"]["holders"] == 1234
    assert body["usage"]["analyses_used"] == 1

    a = db.query(Analysis).one()
    assert a.user_id == user.id
    db.refresh(user)
    assert user.analyses_this_month == 1


def test_analyze_over_quota_is_429(client_for, make_user, monkeypatch):
    monkeypatch.setattr(goplus, "fetch_token_security", lambda chain, addr: None)
    u = make_user(analyses_this_month=5, analyses_reset_date=utcnow() + timedelta(days=3))
    r = client_for(u).post(f"/api/analysis/ethereum/{EVM_TOKEN}")
    assert r.status_code == 429
    assert r.json()["error"]["code"] == "QUOTA_EXCEEDED"


def test_invalid_address_costs_no_quota(client, db, user):
    r = client.post("/api/analysis/ethereum/0xnothex")
    assert r.status_code == 400
    db.refresh(user)
    assert user.analyses_this_month == 0


def test_history_and_fetch_are_user_scoped(client, user, make_user, add_analysis):
    mine = add_analysis(user, score=77)
    theirs = add_analysis(make_user(), score=11)

    r = client.get("/api/analysis/history")
    assert [a["id"] for a in r.json()["data"]] == [mine.id]

    assert client.get(f"/api/analysis/{mine.id}").json()["data"]["safety_score"] == 77
    assert client.get(f"/api/analysis/{theirs.id}").status_code == 404


@pytest.mark.parametrize("chain,address,ok", [
    ("ethereum", EVM_TOKEN, True),
    ("solana", "So11111111111111111111111111111111111111112", True),
    ("solana", "0OIl" * 10, False),
    ("polygon", "0x123", False),
])
def test_address_validation(chain, address, ok):
    from memedo.util import is_valid_address
    assert is_valid_address(address, chain) is ok


def test_analyze_records_market_data(client, db, monkeypatch):
    monkeypatch.setattr(goplus, "fetch_token_security", lambda chain, addr: GOPLUS_RECORD)
    monkeypatch.setattr(birdeye, "fetch_market_data", lambda chain, addr: {
        "price_usd": 0.0012, "liquidity_usd": 250000.0,
        "market_cap_usd": 1200000.0, "volume_24h_usd": None,
    })

    r = client.post(f"/api/analysis/ethereum/{EVM_TOKEN}")
    market = r.json()["data"]["payload"]["market"]
    assert market["price_usd"] == 0.0012
    assert market["liquidity_usd"] == 250000.0
    assert market["market_cap_usd"] == 1200000.0
    assert r.json()["data"]["payload"]["sources"] == ["goplus", "birdeye"]

    client.post("/api/watchlist", json={"token_address": EVM_TOKEN, "chain": "ethereum"})
    entries = client.get("/api/watchlist").json()["data"]
    assert entries[0]["latest_analysis"]["price_usd"] == 0.0012


def test_completeness_counts_market_liquidity():
    assert analysis.completeness(None, {"liquidity_usd": 10.0}) == 25
    assert analysis.completeness({"token_symbol": "X"}, {"liquidity_usd": 10.0}) == 75
