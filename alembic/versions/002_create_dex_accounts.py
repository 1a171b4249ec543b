"""002: create dex_accounts table

Revision ID: 002
Revises: 001
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE dex_accounts (
            id              VARCHAR(64)     PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            venue           VARCHAR(20)     NOT NULL,
            address         VARCHAR(128)    NOT NULL,
            account_type    VARCHAR(20)     NOT NULL DEFAULT 'master',
            subaccount_id   INT,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_dex_accounts_venue        CHECK (venue IN ('drift', 'hyperliquid')),
            CONSTRAINT ck_dex_accounts_type         CHECK (
                account_type IN ('master', 'agent_wallet', 'subaccount')
            ),
            CONSTRAINT ck_dex_accounts_subaccount   CHECK (
                subaccount_id IS NULL OR (venue = 'drift' AND subaccount_id >= 0)
            )
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_dex_accounts_venue_address
        ON dex_accounts (venue, address, COALESCE(subaccount_id, -1));
    """)
    op.execute("CREATE INDEX idx_dex_accounts_user ON dex_accounts (user_id, created_at DESC);")
    op.execute("CREATE INDEX idx_dex_accounts_active ON dex_accounts (id) WHERE is_active;")
    op.execute("""
        CREATE TRIGGER trg_dex_accounts_updated_at
            BEFORE UPDATE ON dex_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS dex_accounts CASCADE;")
