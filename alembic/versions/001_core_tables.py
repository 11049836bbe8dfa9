"""Core finance tables: users, budgets, transactions.

Owned by the CRUD API; created here with IF NOT EXISTS so the engine can run
against a fresh database.

Revision ID: 001_core_tables
Revises: None
Create Date: 2026-10-12
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_core_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            license_tier VARCHAR(16) NOT NULL DEFAULT 'TRIAL',
            trial_ends_at TIMESTAMPTZ,
            status VARCHAR(16) NOT NULL DEFAULT 'ACTIVE',
            locale VARCHAR(8),
            xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            notification_settings JSONB,
            push_token VARCHAR(256),
            last_login_at TIMESTAMPTZ,
            last_transaction_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_push_token
        ON users(id)
        WHERE push_token IS NOT NULL
    """)

    # --- Budgets ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS budgets (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name VARCHAR(128),
            category VARCHAR(64) NOT NULL,
            amount NUMERIC(14,2) NOT NULL,
            period VARCHAR(16) NOT NULL DEFAULT 'MONTHLY',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_budgets_user_category
        ON budgets(user_id, lower(category))
    """)

    # --- Transactions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            wallet_id BIGINT,
            amount NUMERIC(14,2) NOT NULL,
            type VARCHAR(16) NOT NULL CHECK (type IN ('INCOME', 'EXPENSE')),
            category VARCHAR(64) NOT NULL,
            date TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_transactions_user_date
        ON transactions(user_id, date)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_transactions_user_category
        ON transactions(user_id, category, date)
        WHERE type = 'EXPENSE'
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS budgets CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
