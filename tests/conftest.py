import os

# Must be set before memedo.settings is imported anywhere
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from memedo import models
from memedo.db import Base, get_db
from memedo.deps.current_user import current_user
from memedo.main import app
from memedo.settings import settings
from memedo.util import utcnow

EVM_TOKEN = "0x" + "ab" * 20
EVM_TOKEN_2 = "0x" + "cd" * 20
SOL_TOKEN = "So11111111111111111111111111111111111111112"


@pytest.fixture(autouse=True)
def no_market_data(monkeypatch):
    monkeypatch.setattr(settings, "BIRDEYE_API_KEY", "")


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        n = counter["n"]
        fields.setdefault("firebase_uid", f"uid-{n}")
        fields.setdefault("email", f"user{n}@example.com")
        user = models.User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(email="alice@example.com", display_name="Alice")


@pytest.fixture
def premium_user(make_user):
    now = utcnow()
    return make_user(
        email="pro@example.com",
        role="premium",
        subscription_status="active",
        subscription_plan="memedo-pro-monthly",
        subscription_period_start=now - timedelta(days=3),
        subscription_period_end=now + timedelta(days=27),
        membership_id="mem_pro",
    )


@pytest.fixture
def add_analysis(db):
    def _add(user=None, token_address=EVM_TOKEN, chain="ethereum", score=70, risk=None,
             created_at=None, price=None, **fields):
        fields.setdefault("completeness", 100)
        fields.setdefault("payload", {"market": {"price_usd": price}})
        a = models.Analysis(
            user_id=user.id if user else None,
            token_address=token_address,
            chain=chain,
            safety_score=score,
            risk_level=risk,
            created_at=created_at or utcnow(),
            **fields,
        )
        db.add(a)
        db.commit()
        db.refresh(a)
        return a

    return _add


@pytest.fixture
def add_watch(db):
    def _add(user, token_address=EVM_TOKEN, chain="ethereum", added_at=None, **fields):
        e = models.WatchlistEntry(
            user_id=user.id,
            token_address=token_address,
            chain=chain,
            added_at=added_at or utcnow(),
            **fields,
        )
        db.add(e)
        db.commit()
        db.refresh(e)
        return e

    return _add


def _client(db, as_user=None, **kwargs):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    if as_user is not None:
        app.dependency_overrides[current_user] = lambda: as_user
    else:
        app.dependency_overrides.pop(current_user, None)
    return TestClient(app, **kwargs)


@pytest.fixture
def client_for(db):
    """client_for(user) -> TestClient authenticated as that user (None = anonymous)."""
    def _make(as_user=None, **kwargs):
        return _client(db, as_user, **kwargs)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(client_for, user):
    return client_for(user)
