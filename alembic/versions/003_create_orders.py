"""003: create orders table

Revision ID: 003
Revises: 002
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(64)     PRIMARY KEY,
            dex_account_id      VARCHAR(64)     NOT NULL REFERENCES dex_accounts (id),
            venue               VARCHAR(20)     NOT NULL,
            external_order_id   VARCHAR(128),
            client_order_id     VARCHAR(66),
            market_index        INT             NOT NULL,
            direction           VARCHAR(10)     NOT NULL,
            order_type          VARCHAR(20)     NOT NULL,
            params              JSONB           NOT NULL DEFAULT '{}'::jsonb,
            base_asset_amount   NUMERIC(30, 10) NOT NULL,
            filled_amount       NUMERIC(30, 10) NOT NULL DEFAULT 0,
            avg_fill_price      NUMERIC(30, 10),
            status              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            version             INT             NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_venue          CHECK (venue IN ('drift', 'hyperliquid')),
            CONSTRAINT ck_orders_market_index   CHECK (market_index >= 0),
            CONSTRAINT ck_orders_direction      CHECK (direction IN ('long', 'short')),
            CONSTRAINT ck_orders_type           CHECK (
                order_type IN ('market', 'limit', 'trigger_market', 'trigger_limit', 'oracle')
            ),
            CONSTRAINT ck_orders_base_amount    CHECK (base_asset_amount > 0),
            CONSTRAINT ck_orders_filled         CHECK (
                filled_amount >= 0 AND filled_amount <= base_asset_amount
            ),
            CONSTRAINT ck_orders_avg_price      CHECK (
                (avg_fill_price IS NULL OR avg_fill_price > 0)
                AND (filled_amount > 0 OR avg_fill_price IS NULL)
            ),
            CONSTRAINT ck_orders_status         CHECK (
                status IN ('pending', 'open', 'filled', 'cancelled',
                           'rejected', 'failed', 'expired', 'liquidated')
            ),
            CONSTRAINT ck_orders_version        CHECK (version >= 0)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_orders_external_id
        ON orders (dex_account_id, external_order_id)
        WHERE external_order_id IS NOT NULL;
    """)
    op.execute("""
        CREATE INDEX idx_orders_unmatched_client_id
        ON orders (dex_account_id, client_order_id, created_at DESC)
        WHERE external_order_id IS NULL;
    """)
    op.execute("CREATE INDEX idx_orders_account_status ON orders (dex_account_id, status, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Orders on both venues; optimistic concurrency via version';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
