"""Gamification and notification tables.

Creates achievements, user_achievements, notifications and budget_alerts.

Revision ID: 002_engagement_tables
Revises: 001_core_tables
Create Date: 2026-10-12
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_engagement_tables"
down_revision: str | None = "001_core_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Achievement catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            key VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(64) NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- Unlocked achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id),
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_achievements_user_id_achievement_id_key UNIQUE(user_id, achievement_id)
        )
    """)

    # --- Notification history ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(256) NOT NULL,
            body TEXT NOT NULL,
            data JSONB,
            is_read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user
        ON notifications(user_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_unread
        ON notifications(user_id)
        WHERE is_read = false
    """)

    # --- Budget alert markers (one per user/budget/threshold/month) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS budget_alerts (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            budget_id BIGINT NOT NULL REFERENCES budgets(id) ON DELETE CASCADE,
            threshold DOUBLE PRECISION NOT NULL,
            period_start TIMESTAMPTZ NOT NULL,
            sent_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT budget_alerts_user_budget_threshold_period_key
                UNIQUE(user_id, budget_id, threshold, period_start)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS budget_alerts CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
