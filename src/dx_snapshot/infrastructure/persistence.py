"""SnapshotRepository — raw SQL, INSERT and SELECT only.

The ``position_snapshots`` table carries a trigger that rejects UPDATE and
DELETE, so history cannot be rewritten from any code path.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_snapshot.domain.models import PositionSnapshot

_COLUMNS = "id, position_id, captured_at, size, entry_price, mark_price, unrealized_pnl"

_INSERT_SQL = text(f"""
    INSERT INTO position_snapshots (position_id, captured_at, size, entry_price,
        mark_price, unrealized_pnl)
    VALUES (:position_id, :captured_at, :size, :entry_price, :mark_price, :unrealized_pnl)
    RETURNING {_COLUMNS}
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS} FROM position_snapshots
    WHERE position_id = :position_id
      AND (CAST(:start AS TIMESTAMPTZ) IS NULL OR captured_at >= :start)
      AND (CAST(:end AS TIMESTAMPTZ) IS NULL OR captured_at < :end)
    ORDER BY captured_at ASC, id ASC
    LIMIT :limit
""")


def _row_to_snapshot(row: Any) -> PositionSnapshot:
    return PositionSnapshot(
        id=row.id,
        position_id=row.position_id,
        captured_at=row.captured_at,
        size=row.size,
        entry_price=row.entry_price,
        mark_price=row.mark_price,
        unrealized_pnl=row.unrealized_pnl,
    )


class SnapshotRepository:
    async def append(self, db: AsyncSession, snapshot: PositionSnapshot) -> PositionSnapshot:
        result = await db.execute(
            _INSERT_SQL,
            {
                "position_id": snapshot.position_id,
                "captured_at": snapshot.captured_at,
                "size": snapshot.size,
                "entry_price": snapshot.entry_price,
                "mark_price": snapshot.mark_price,
                "unrealized_pnl": snapshot.unrealized_pnl,
            },
        )
        return _row_to_snapshot(result.fetchone())

    async def list_by_position(
        self,
        db: AsyncSession,
        position_id: str,
        start: datetime | None,
        end: datetime | None,
        limit: int,
    ) -> list[PositionSnapshot]:
        result = await db.execute(
            _LIST_SQL,
            {"position_id": position_id, "start": start, "end": end, "limit": limit},
        )
        return [_row_to_snapshot(row) for row in result.fetchall()]
