"""007: create transactions table

Revision ID: 007
Revises: 006
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id                      VARCHAR(64)     PRIMARY KEY,
            dex_account_id          VARCHAR(64)     NOT NULL REFERENCES dex_accounts (id),
            direction               VARCHAR(20)     NOT NULL,
            market_index            INT             NOT NULL DEFAULT 0,
            amount                  NUMERIC(30, 10) NOT NULL,
            token_symbol            VARCHAR(16)     NOT NULL,
            external_tx_signature   VARCHAR(128)    NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'confirmed',
            occurred_at             TIMESTAMPTZ     NOT NULL,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_transactions_signature    UNIQUE (dex_account_id, external_tx_signature),
            CONSTRAINT ck_transactions_direction    CHECK (direction IN ('deposit', 'withdrawal')),
            CONSTRAINT ck_transactions_status       CHECK (status IN ('pending', 'confirmed', 'failed')),
            CONSTRAINT ck_transactions_amount       CHECK (amount > 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_transactions_account_time
        ON transactions (dex_account_id, occurred_at DESC);
    """)
    op.execute("COMMENT ON TABLE transactions IS 'Deposits / withdrawals — one row per venue signature';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
