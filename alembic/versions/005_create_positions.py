"""005: create positions table

Revision ID: 005
Revises: 004
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id                  VARCHAR(64)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL,
            kind                VARCHAR(20)     NOT NULL,
            leg_order_ids       TEXT[]          NOT NULL,
            lifecycle_state     VARCHAR(20)     NOT NULL DEFAULT 'opening',
            hedge_broken        BOOLEAN         NOT NULL DEFAULT FALSE,
            name                VARCHAR(128),
            metadata            JSONB           NOT NULL DEFAULT '{}'::jsonb,
            version             INT             NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            closed_at           TIMESTAMPTZ,
            CONSTRAINT ck_positions_kind        CHECK (kind IN ('single', 'delta_neutral')),
            CONSTRAINT ck_positions_legs        CHECK (
                (kind = 'single' AND cardinality(leg_order_ids) = 1)
                OR (kind = 'delta_neutral' AND cardinality(leg_order_ids) = 2)
            ),
            CONSTRAINT ck_positions_lifecycle   CHECK (
                lifecycle_state IN ('opening', 'open', 'closed', 'liquidated')
            ),
            CONSTRAINT ck_positions_version     CHECK (version >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_positions_user ON positions (user_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_positions_active_legs
        ON positions USING GIN (leg_order_ids)
        WHERE lifecycle_state IN ('opening', 'open');
    """)
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
