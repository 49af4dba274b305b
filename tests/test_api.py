from unittest.mock import patch

from fastapi import APIRouter

from memedo.main import app
from memedo.models import User
from memedo.schemas import AnalysisOut, AnalysisSummaryOut, UserOut, WatchlistOut
from memedo.services import subscription, whop_client
from memedo.settings import settings

boom_router = APIRouter()


@boom_router.get("/api/_test/boom")
def boom():
    raise RuntimeError("database exploded")


app.include_router(boom_router)


def test_health(client_for):
    r = client_for().get("/health")
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_unknown_route_uses_error_envelope(client_for):
    r = client_for().get("/api/nope")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"
    assert "timestamp" in body


def test_missing_token_is_401(client_for):
    r = client_for().get("/api/subscription/status")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


def test_invalid_token_is_401(client_for):
    with patch("memedo.deps.current_user.verify_id_token", return_value=None):
        r = client_for().get("/api/auth/me", headers={"Authorization": "Bearer junk"})
    assert r.status_code == 401


def test_first_request_creates_local_user(client_for, db):
    claims = {"uid": "fb_123", "email": "New@Example.com", "name": "Newbie"}
    with patch("memedo.deps.current_user.verify_id_token", return_value=claims):
        r = client_for().get("/api/auth/me", headers={"Authorization": "Bearer good"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["email"] == "new@example.com"
    assert data["role"] == "free"
    assert data["is_premium"] is False
    assert db.query(User).filter_by(firebase_uid="fb_123").count() == 1


def test_unhandled_error_is_masked_in_production(client_for, monkeypatch):
    client = client_for(raise_server_exceptions=False)
    r = client.get("/api/_test/boom")
    assert r.status_code == 500
    assert r.json()["error"]["message"] == "database exploded"

    monkeypatch.setattr(settings, "ENV", "production")
    r = client.get("/api/_test/boom")
    assert r.status_code == 500
    assert r.json()["error"]["code"] == "INTERNAL_SERVER_ERROR"
    assert r.json()["error"]["message"] == "An unexpected error occurred"


def test_subscription_endpoints(client, monkeypatch):
    monkeypatch.setattr(whop_client, "create_checkout_session", lambda uid, email, plan_id: "https://whop.com/c/1")

    r = client.post("/api/subscription/checkout", json={"plan": "monthly"})
    assert r.status_code == 200
    assert r.json()["data"]["checkout_url"] == "https://whop.com/c/1"

    r = client.post("/api/subscription/checkout", json={"plan": "weekly"})
    assert r.status_code == 400

    r = client.get("/api/subscription/portal")
    assert r.json()["data"]["portal_url"] == settings.WHOP_PORTAL_URL

    r = client.get("/api/subscription/status")
    assert r.json()["data"]["plan"] == "free"

    r = client.get("/api/subscription/usage")
    assert r.json()["data"]["analyses_limit"] == 5


def test_checkout_provider_failure_is_500(client, monkeypatch):
    monkeypatch.setattr(settings, "WHOP_API_KEY", "")
    r = client.post("/api/subscription/checkout", json={"plan": "yearly"})
    assert r.status_code == 500
    assert r.json()["error"]["code"] == "BILLING_PROVIDER_ERROR"


def test_verify_endpoint(client, db, user, monkeypatch):
    monkeypatch.setattr(whop_client, "find_active_membership", lambda email: {
        "id": "mem_v", "status": "active", "plan": {"interval": "month"}, "valid": True,
    })
    r = client.post("/api/subscription/verify")
    assert r.status_code == 200
    assert r.json()["data"]["verified"] is True
    assert r.json()["data"]["is_premium"] is True
    db.refresh(user)
    assert subscription.is_premium(user)


def test_schemas_read_orm_rows(user, add_analysis):
    for schema in (AnalysisOut, AnalysisSummaryOut, UserOut, WatchlistOut):
        assert schema.model_config["from_attributes"] is True

    out = UserOut.model_validate(user)
    assert out.email == "alice@example.com"
    assert out.subscription_plan == "free"

    row = add_analysis(user, score=64, risk="MEDIUM")
    summary = AnalysisSummaryOut.model_validate(row)
    assert summary.safety_score == 64
    assert summary.risk_level == "MEDIUM"
