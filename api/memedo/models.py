from sqlalchemy import (
    Column, BigInteger, Integer, String, DateTime, ForeignKey,
    UniqueConstraint, Index, Boolean, JSON
)
from sqlalchemy.orm import relationship
from .util import utcnow
from .db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY
BigId = BigInteger().with_variant(Integer, "sqlite")


# --- Users + mirrored subscription ------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(BigId, primary_key=True)
    firebase_uid = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, index=True)
    display_name = Column(String)
    role = Column(String, nullable=False, default="free")  # free|premium|admin

    # Subscription mirror (Whop / FastSpring). status=None means "never subscribed".
    subscription_status = Column(String, nullable=True, index=True)  # active|trial|overdue|canceled|deactivated
    subscription_plan = Column(String, nullable=False, default="free")
    subscription_period_start = Column(DateTime, nullable=True)
    subscription_period_end = Column(DateTime, nullable=True)
    subscription_cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    membership_id = Column(String, nullable=True, index=True)       # provider membership/subscription id
    billing_account_id = Column(String, nullable=True, index=True)  # provider account/customer id
    billing_provider = Column(String, nullable=True)                # "whop" | "fastspring"
    subscription_synced_at = Column(DateTime, nullable=True)

    # Monthly analysis quota
    analyses_this_month = Column(Integer, nullable=False, default=0)
    analyses_reset_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, index=True)

    watchlist = relationship("WatchlistEntry", back_populates="user", cascade="all, delete-orphan")
    analyses = relationship("Analysis", back_populates="user")

    __table_args__ = (Index("ix_users_uid_email", "firebase_uid", "email"),)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# --- Watchlist ----------------------------------------------------------------

class WatchlistEntry(Base):
    __tablename__ = "watchlist"

    id = Column(BigId, primary_key=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    token_address = Column(String(255), nullable=False)  # lower-cased unless chain == solana
    chain = Column(String(50), nullable=False)
    token_name = Column(String(255), nullable=True)
    token_symbol = Column(String(50), nullable=True)
    added_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    user = relationship("User", back_populates="watchlist")

    __table_args__ = (
        UniqueConstraint("user_id", "token_address", "chain", name="uq_watchlist_user_token_chain"),
        Index("ix_watchlist_token_chain", "token_address", "chain"),
    )


# --- Analyses (append-only) -----------------------------------------------------

class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(BigId, primary_key=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    chain = Column(String(20), nullable=False)
    token_address = Column(String(100), nullable=False)
    token_name = Column(String(100), nullable=True)
    token_symbol = Column(String(20), nullable=True)

    safety_score = Column(Integer, nullable=True)       # 0..100
    risk_level = Column(String(20), nullable=True)      # LOW|MEDIUM|HIGH
    completeness = Column(Integer, nullable=False, default=0)  # 0..100
    payload = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    user = relationship("User", back_populates="analyses")

    __table_args__ = (
        Index("ix_analyses_token_chain_time", "token_address", "chain", "created_at"),
        Index("ix_analyses_user_time", "user_id", "created_at"),
    )


# --- Processed billing webhooks ----------------------------------------------

class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(BigId, primary_key=True)
    provider = Column(String(20), nullable=False)   # whop|fastspring
    event_id = Column(String(255), nullable=False)
    event_type = Column(String(100), nullable=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    processed_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_webhook_events_provider_event"),
    )
