from datetime import datetime, timedelta

import pytest

from memedo.errors import NotFoundError
from memedo.services import historical
from memedo.util import utcnow

from conftest import EVM_TOKEN, EVM_TOKEN_2


def test_token_history_summary(db, premium_user, add_analysis):
    now = utcnow()
    add_analysis(premium_user, score=60, risk="MEDIUM", price=1.0, created_at=now - timedelta(days=3))
    add_analysis(premium_user, score=71, risk="MEDIUM", price=1.5, created_at=now - timedelta(days=2))
    add_analysis(premium_user, score=85, risk="LOW", price=1.2345, created_at=now - timedelta(days=1),
                 token_name="Pepe", token_symbol="PEPE")

    data = historical.token_history(db, premium_user, "ethereum", EVM_TOKEN.upper().replace("0X", "0x"), days=7)

    assert data["token_address"] == EVM_TOKEN
    assert data["total_analyses"] == 3
    assert data["token_symbol"] == "PEPE"
    assert [p["safety_score"] for p in data["data_points"]] == [60, 71, 85]
    s = data["summary"]
    assert s["average_safety_score"] == 72
    assert s["safety_score_change"] == 25
    assert s["price_change"] == 23.45
    assert s["previous_risk_level"] == "MEDIUM"
    assert s["current_risk_level"] == "LOW"
    assert s["risk_level_changed"] is True


def test_token_history_is_scoped_to_user(db, premium_user, user, add_analysis):
    add_analysis(user, score=50)
    with pytest.raises(NotFoundError):
        historical.token_history(db, premium_user, "ethereum", EVM_TOKEN)


def test_token_history_respects_from_and_to(db, premium_user, add_analysis):
    add_analysis(premium_user, score=10, created_at=datetime(2026, 1, 1))
    add_analysis(premium_user, score=20, created_at=datetime(2026, 1, 10))
    add_analysis(premium_user, score=30, created_at=datetime(2026, 1, 20))

    data = historical.token_history(
        db, premium_user, "ethereum", EVM_TOKEN,
        date_from=datetime(2026, 1, 5), date_to=datetime(2026, 1, 15),
    )
    assert [p["safety_score"] for p in data["data_points"]] == [20]


def test_price_change_needs_positive_start():
    points = [
        {"safety_score": 50, "risk_level": "MEDIUM", "price_usd": 0},
        {"safety_score": 60, "risk_level": "MEDIUM", "price_usd": 2.0},
    ]
    assert historical.summarize(points)["price_change"] is None
    assert historical.summarize([])["current_risk_level"] == "unknown"


def test_history_endpoint_is_premium_only(client_for, user, add_analysis):
    add_analysis(user)
    r = client_for(user).get(f"/api/historical/ethereum/{EVM_TOKEN}")
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "PREMIUM_REQUIRED"


def test_history_endpoint_expired_premium_is_rejected(client_for, make_user):
    lapsed = make_user(
        subscription_status="active",
        subscription_plan="memedo-pro-monthly",
        subscription_period_end=utcnow() - timedelta(days=1),
    )
    r = client_for(lapsed).get(f"/api/historical/ethereum/{EVM_TOKEN}")
    assert r.status_code == 403


def test_history_endpoint(client_for, premium_user, add_analysis):
    add_analysis(premium_user, score=55)
    client = client_for(premium_user)

    r = client.get(f"/api/historical/ethereum/{EVM_TOKEN}?days=30")
    assert r.status_code == 200
    assert r.json()["data"]["total_analyses"] == 1

    r = client.get(f"/api/historical/ethereum/{EVM_TOKEN_2}")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"

    r = client.get(f"/api/historical/ethereum/{EVM_TOKEN}?days=0")
    assert r.status_code == 400


def test_activity_counts_per_day(client, user, add_analysis):
    now = utcnow().replace(hour=12, minute=0, second=0, microsecond=0)
    add_analysis(user, created_at=now - timedelta(days=2))
    add_analysis(user, created_at=now - timedelta(days=2, hours=1))
    add_analysis(user, created_at=now - timedelta(days=1))
    add_analysis(user, created_at=now - timedelta(days=45))

    data = client.get("/api/historical/activity?days=30").json()["data"]
    assert data["counts"] == [2, 1]
    assert data["labels"] == [
        (now - timedelta(days=2)).date().isoformat(),
        (now - timedelta(days=1)).date().isoformat(),
    ]


def test_tokens_with_history(client, user, add_analysis):
    now = utcnow()
    add_analysis(user, token_address=EVM_TOKEN, created_at=now - timedelta(days=3), token_name="Pepe")
    add_analysis(user, token_address=EVM_TOKEN, created_at=now - timedelta(days=1), token_name="Pepe")
    add_analysis(user, token_address=EVM_TOKEN_2, created_at=now)

    r = client.get("/api/historical/tokens")
    body = r.json()
    assert body["count"] == 1
    t = body["data"][0]
    assert t["token_address"] == EVM_TOKEN
    assert t["analysis_count"] == 2
    assert t["token_name"] == "Pepe"
