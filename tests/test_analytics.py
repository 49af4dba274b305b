from datetime import timedelta

from memedo.services import analytics
from memedo.util import utcnow


def _token(i):
    return "0x" + f"{i:040x}"


def test_empty_watchlist_dashboard(client):
    r = client.get("/api/analytics/dashboard")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["overview"] == {
        "total_tokens": 0,
        "average_safety_score": 0,
        "risk_distribution": {"high": 0, "medium": 0, "low": 0, "unknown": 0},
        "chain_distribution": {},
    }
    assert data["top_tokens"] == []
    assert data["attention_needed"] == []
    assert data["recent_activity"] == []


def test_top_and_attention_lists(db, make_user, add_watch, add_analysis):
    u = make_user(subscription_plan="memedo-pro-monthly")
    scores = [10, 95, 80, 40, 60, 99]
    now = utcnow()
    for i, s in enumerate(scores):
        add_watch(u, token_address=_token(i), added_at=now - timedelta(minutes=10 - i))
        add_analysis(token_address=_token(i), score=s)

    data = analytics.dashboard(db, u)
    assert [t["safety_score"] for t in data["top_tokens"]] == [99, 95, 80, 60, 40]
    assert [t["safety_score"] for t in data["attention_needed"]] == [10, 40]
    assert data["overview"]["total_tokens"] == 6
    assert data["overview"]["average_safety_score"] == 64.0
    # newest five, newest first
    assert [t["token_address"] for t in data["recent_activity"]] == [_token(i) for i in (5, 4, 3, 2, 1)]


def test_only_latest_analysis_counts(db, user, add_watch, add_analysis):
    now = utcnow()
    add_watch(user, token_address=_token(1))
    add_analysis(token_address=_token(1), score=20, risk="HIGH", created_at=now - timedelta(days=3))
    add_analysis(token_address=_token(1), score=90, risk="LOW", created_at=now - timedelta(hours=1))

    data = analytics.dashboard(db, user)
    assert data["overview"]["average_safety_score"] == 90
    assert data["overview"]["risk_distribution"]["low"] == 1
    assert data["attention_needed"] == []


def test_average_rounds_half_up_to_one_decimal(db, user, add_watch, add_analysis):
    # (33 + 34 + 34 + 34) / 4 = 33.75 -> 33.8
    for i, s in enumerate([33, 34, 34, 34]):
        add_watch(user, token_address=_token(i))
        add_analysis(token_address=_token(i), score=s)
    assert analytics.dashboard(db, user)["overview"]["average_safety_score"] == 33.8


def test_risk_and_chain_distribution(client, user, add_watch, add_analysis):
    add_watch(user, token_address=_token(1), chain="ethereum")
    add_watch(user, token_address=_token(2), chain="ethereum")
    add_watch(user, token_address=_token(3), chain="base")
    add_watch(user, token_address=_token(4), chain="bsc")
    add_analysis(token_address=_token(1), chain="ethereum", score=30, risk="High")
    add_analysis(token_address=_token(2), chain="ethereum", score=70, risk="medium")
    add_analysis(token_address=_token(3), chain="base", score=None, risk="weird")

    overview = client.get("/api/analytics/dashboard").json()["data"]["overview"]
    assert overview["risk_distribution"] == {"high": 1, "medium": 1, "low": 0, "unknown": 2}
    assert overview["chain_distribution"] == {"ethereum": 2, "base": 1, "bsc": 1}
    # unscored entries don't drag the average
    assert overview["average_safety_score"] == 50.0


def test_dashboard_ignores_other_users_watchlists(db, user, make_user, add_watch, add_analysis):
    other = make_user()
    add_watch(other, token_address=_token(9))
    add_analysis(token_address=_token(9), score=5)
    assert analytics.dashboard(db, user)["overview"]["total_tokens"] == 0
