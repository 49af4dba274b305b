"""create users, watchlist, analyses and webhook_events tables

Revision ID: 5c1e2a7d9f30
Revises:
Create Date: 2026-10-19 10:12:41.208311
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e2a7d9f30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- users (with mirrored subscription + monthly quota) ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("firebase_uid", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="free"),
        sa.Column("subscription_status", sa.String(), nullable=True),
        sa.Column("subscription_plan", sa.String(), nullable=False, server_default="free"),
        sa.Column("subscription_period_start", sa.DateTime(), nullable=True),
        sa.Column("subscription_period_end", sa.DateTime(), nullable=True),
        sa.Column("subscription_cancel_at_period_end", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("membership_id", sa.String(), nullable=True),
        sa.Column("billing_account_id", sa.String(), nullable=True),
        sa.Column("billing_provider", sa.String(), nullable=True),
        sa.Column("subscription_synced_at", sa.DateTime(), nullable=True),
        sa.Column("analyses_this_month", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("analyses_reset_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_firebase_uid", "users", ["firebase_uid"], unique=True)
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_subscription_status", "users", ["subscription_status"])
    op.create_index("ix_users_membership_id", "users", ["membership_id"])
    op.create_index("ix_users_billing_account_id", "users", ["billing_account_id"])
    op.create_index("ix_users_created_at", "users", ["created_at"])
    op.create_index("ix_users_updated_at", "users", ["updated_at"])
    op.create_index("ix_users_uid_email", "users", ["firebase_uid", "email"])

    # --- watchlist ---
    op.create_table(
        "watchlist",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_address", sa.String(255), nullable=False),
        sa.Column("chain", sa.String(50), nullable=False),
        sa.Column("token_name", sa.String(255), nullable=True),
        sa.Column("token_symbol", sa.String(50), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "token_address", "chain", name="uq_watchlist_user_token_chain"),
    )
    op.create_index("ix_watchlist_user_id", "watchlist", ["user_id"])
    op.create_index("ix_watchlist_added_at", "watchlist", ["added_at"])
    op.create_index("ix_watchlist_token_chain", "watchlist", ["token_address", "chain"])

    # --- analyses (append-only) ---
    op.create_table(
        "analyses",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("token_address", sa.String(100), nullable=False),
        sa.Column("token_name", sa.String(100), nullable=True),
        sa.Column("token_symbol", sa.String(20), nullable=True),
        sa.Column("safety_score", sa.Integer(), nullable=True),
        sa.Column("risk_level", sa.String(20), nullable=True),
        sa.Column("completeness", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_analyses_user_id", "analyses", ["user_id"])
    op.create_index("ix_analyses_created_at", "analyses", ["created_at"])
    op.create_index("ix_analyses_token_chain_time", "analyses", ["token_address", "chain", "created_at"])
    op.create_index("ix_analyses_user_time", "analyses", ["user_id", "created_at"])

    # --- processed billing webhooks ---
    op.create_table(
        "webhook_events",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("provider", "event_id", name="uq_webhook_events_provider_event"),
    )
    op.create_index("ix_webhook_events_processed_at", "webhook_events", ["processed_at"])


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("analyses")
    op.drop_table("watchlist")
    op.drop_table("users")
