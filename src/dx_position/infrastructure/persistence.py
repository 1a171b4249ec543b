"""PositionRepository — raw SQL persistence implementation.

``leg_order_ids`` is a TEXT[] column; leg lists are bound as a comma-joined
string and expanded with ``string_to_array`` so no driver-specific array
binding is needed.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_position.domain.models import Position

_COLUMNS = """
    id, user_id, kind, leg_order_ids, lifecycle_state, hedge_broken, name,
    metadata, version, created_at, updated_at, closed_at
"""

_ACTIVE = "lifecycle_state IN ('opening', 'open')"

_INSERT_SQL = text("""
    INSERT INTO positions (id, user_id, kind, leg_order_ids, lifecycle_state,
        hedge_broken, name, metadata, version)
    VALUES (:id, :user_id, :kind, string_to_array(CAST(:leg_ids_csv AS TEXT), ','),
        :lifecycle_state, :hedge_broken, :name, CAST(:metadata AS JSONB), 0)
""")

_UPDATE_SQL = text(f"""
    UPDATE positions
    SET lifecycle_state = :lifecycle_state,
        hedge_broken = :hedge_broken,
        metadata = CAST(:metadata AS JSONB),
        closed_at = :closed_at,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND version = :expected_version
    RETURNING {_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM positions WHERE id = :id")

_LIST_BY_USER_SQL = text(f"""
    SELECT {_COLUMNS} FROM positions
    WHERE user_id = :user_id
      AND (CAST(:lifecycle_state AS TEXT) IS NULL OR lifecycle_state = :lifecycle_state)
      AND (CAST(:kind AS TEXT) IS NULL OR kind = :kind)
    ORDER BY created_at DESC, id DESC
""")

_LIST_ACTIVE_BY_LEGS_SQL = text(f"""
    SELECT {_COLUMNS} FROM positions
    WHERE {_ACTIVE}
      AND leg_order_ids && string_to_array(CAST(:ids_csv AS TEXT), ',')
    ORDER BY id
""")

_LIST_ACTIVE_BY_ACCOUNT_SQL = text(f"""
    SELECT {_COLUMNS} FROM positions
    WHERE {_ACTIVE}
      AND leg_order_ids && ARRAY(
          SELECT id FROM orders WHERE dex_account_id = :dex_account_id
      )
    ORDER BY id
""")


def _row_to_position(row: Any) -> Position:
    metadata = row.metadata if isinstance(row.metadata, dict) else json.loads(row.metadata or "{}")
    return Position(
        id=row.id,
        user_id=row.user_id,
        kind=row.kind,
        leg_order_ids=list(row.leg_order_ids),
        lifecycle_state=row.lifecycle_state,
        hedge_broken=row.hedge_broken,
        name=row.name,
        metadata=metadata,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
        closed_at=row.closed_at,
    )


class PositionRepository:
    """Concrete implementation of PositionRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, position: Position) -> None:
        await db.execute(
            _INSERT_SQL,
            {
                "id": position.id,
                "user_id": position.user_id,
                "kind": position.kind,
                "leg_ids_csv": ",".join(position.leg_order_ids),
                "lifecycle_state": position.lifecycle_state,
                "hedge_broken": position.hedge_broken,
                "name": position.name,
                "metadata": json.dumps(position.metadata),
            },
        )

    async def get_by_id(self, db: AsyncSession, position_id: str) -> Position | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": position_id})
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def update_versioned(
        self, db: AsyncSession, position: Position, expected_version: int
    ) -> Position | None:
        result = await db.execute(
            _UPDATE_SQL,
            {
                "id": position.id,
                "expected_version": expected_version,
                "lifecycle_state": position.lifecycle_state,
                "hedge_broken": position.hedge_broken,
                "metadata": json.dumps(position.metadata),
                "closed_at": position.closed_at,
            },
        )
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        lifecycle_state: str | None = None,
        kind: str | None = None,
    ) -> list[Position]:
        result = await db.execute(
            _LIST_BY_USER_SQL,
            {"user_id": user_id, "lifecycle_state": lifecycle_state, "kind": kind},
        )
        return [_row_to_position(row) for row in result.fetchall()]

    async def list_active_by_leg_ids(
        self, db: AsyncSession, order_ids: list[str]
    ) -> list[Position]:
        if not order_ids:
            return []
        result = await db.execute(_LIST_ACTIVE_BY_LEGS_SQL, {"ids_csv": ",".join(order_ids)})
        return [_row_to_position(row) for row in result.fetchall()]

    async def list_active_by_account(
        self, db: AsyncSession, dex_account_id: str
    ) -> list[Position]:
        result = await db.execute(_LIST_ACTIVE_BY_ACCOUNT_SQL, {"dex_account_id": dex_account_id})
        return [_row_to_position(row) for row in result.fetchall()]
