"""006: create position_snapshots table

Revision ID: 006
Revises: 005
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE position_snapshots (
            id              BIGSERIAL       PRIMARY KEY,
            position_id     VARCHAR(64)     NOT NULL REFERENCES positions (id),
            captured_at     TIMESTAMPTZ     NOT NULL,
            size            NUMERIC(30, 10) NOT NULL,
            entry_price     NUMERIC(30, 10) NOT NULL,
            mark_price      NUMERIC(30, 10) NOT NULL,
            unrealized_pnl  NUMERIC(30, 10) NOT NULL,
            CONSTRAINT ck_snapshots_mark_price CHECK (mark_price > 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_snapshots_position_time
        ON position_snapshots (position_id, captured_at);
    """)
    op.execute("""
        CREATE TRIGGER trg_snapshots_append_only
            BEFORE UPDATE OR DELETE ON position_snapshots
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE position_snapshots IS 'Position valuations — Append-Only, never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS position_snapshots CASCADE;")
