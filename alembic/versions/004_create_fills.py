"""004: create fills table

Revision ID: 004
Revises: 003
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE fills (
            id                  BIGSERIAL       PRIMARY KEY,
            dex_account_id      VARCHAR(64)     NOT NULL REFERENCES dex_accounts (id),
            venue               VARCHAR(20)     NOT NULL,
            external_fill_id    VARCHAR(160)    NOT NULL,
            external_order_id   VARCHAR(128),
            market_index        INT             NOT NULL,
            direction           VARCHAR(10)     NOT NULL,
            amount              NUMERIC(30, 10) NOT NULL,
            price               NUMERIC(30, 10) NOT NULL,
            fee                 NUMERIC(30, 10) NOT NULL DEFAULT 0,
            filled_at           TIMESTAMPTZ     NOT NULL,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_fills_external_id     UNIQUE (dex_account_id, external_fill_id),
            CONSTRAINT ck_fills_venue           CHECK (venue IN ('drift', 'hyperliquid')),
            CONSTRAINT ck_fills_direction       CHECK (direction IN ('long', 'short')),
            CONSTRAINT ck_fills_amount          CHECK (amount > 0),
            CONSTRAINT ck_fills_price           CHECK (price > 0)
        );
    """)
    op.execute("CREATE INDEX idx_fills_account_time ON fills (dex_account_id, filled_at DESC);")
    op.execute("""
        CREATE INDEX idx_fills_order
        ON fills (dex_account_id, external_order_id)
        WHERE external_order_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_fills_no_update
            BEFORE UPDATE OR DELETE ON fills
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE fills IS 'Venue fills — Append-Only, deduplicated by venue fill id';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS fills CASCADE;")
