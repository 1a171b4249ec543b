"""OrderRepository / FillRepository — raw SQL persistence implementation."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_order.domain.models import Fill, Order, params_from_dict, params_to_dict

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_ORDER_COLUMNS = """
    id, dex_account_id, venue, external_order_id, client_order_id,
    market_index, direction, order_type, params, base_asset_amount,
    filled_amount, avg_fill_price, status, version, created_at, updated_at
"""

# Partial unique index on (dex_account_id, external_order_id) makes a
# concurrent discovery of the same venue order lose here.
_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, dex_account_id, venue, external_order_id, client_order_id,
        market_index, direction, order_type, params, base_asset_amount,
        filled_amount, avg_fill_price, status, version)
    VALUES (:id, :dex_account_id, :venue, :external_order_id, :client_order_id,
        :market_index, :direction, :order_type, CAST(:params AS JSONB), :base_asset_amount,
        :filled_amount, :avg_fill_price, :status, 0)
    ON CONFLICT DO NOTHING
    RETURNING id
""")

_UPDATE_ORDER_SQL = text(f"""
    UPDATE orders
    SET external_order_id = :external_order_id,
        base_asset_amount = :base_asset_amount,
        filled_amount = :filled_amount,
        avg_fill_price = :avg_fill_price,
        status = :status,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND version = :expected_version
    RETURNING {_ORDER_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = :id")

_GET_ORDER_BY_EXTERNAL_ID_SQL = text(f"""
    SELECT {_ORDER_COLUMNS} FROM orders
    WHERE dex_account_id = :dex_account_id AND external_order_id = :external_order_id
""")

_GET_UNMATCHED_BY_CLIENT_ID_SQL = text(f"""
    SELECT {_ORDER_COLUMNS} FROM orders
    WHERE dex_account_id = :dex_account_id
      AND client_order_id = :client_order_id
      AND external_order_id IS NULL
    ORDER BY created_at DESC
    LIMIT 1
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_ORDER_COLUMNS} FROM orders
    WHERE dex_account_id = :dex_account_id
      AND (CAST(:statuses_csv AS TEXT) IS NULL
           OR status = ANY(string_to_array(CAST(:statuses_csv AS TEXT), ',')))
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_ORDERS_BY_IDS_SQL = text(f"""
    SELECT {_ORDER_COLUMNS} FROM orders
    WHERE id = ANY(string_to_array(CAST(:ids_csv AS TEXT), ','))
""")

_FILL_COLUMNS = """
    id, dex_account_id, venue, external_fill_id, external_order_id,
    market_index, direction, amount, price, fee, filled_at
"""

_INSERT_FILL_SQL = text("""
    INSERT INTO fills (dex_account_id, venue, external_fill_id, external_order_id,
        market_index, direction, amount, price, fee, filled_at)
    VALUES (:dex_account_id, :venue, :external_fill_id, :external_order_id,
        :market_index, :direction, :amount, :price, :fee, :filled_at)
    ON CONFLICT (dex_account_id, external_fill_id) DO NOTHING
    RETURNING id
""")

_LIST_FILLS_SQL = text(f"""
    SELECT {_FILL_COLUMNS} FROM fills
    WHERE dex_account_id = :dex_account_id
      AND (CAST(:market_index AS INTEGER) IS NULL OR market_index = :market_index)
      AND (CAST(:start AS TIMESTAMPTZ) IS NULL OR filled_at >= :start)
      AND (CAST(:end AS TIMESTAMPTZ) IS NULL OR filled_at < :end)
    ORDER BY filled_at DESC, id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    raw_params = row.params if isinstance(row.params, dict) else json.loads(row.params)
    return Order(
        id=row.id,
        dex_account_id=row.dex_account_id,
        venue=row.venue,
        external_order_id=row.external_order_id,
        client_order_id=row.client_order_id,
        market_index=row.market_index,
        direction=row.direction,
        order_type=row.order_type,
        params=params_from_dict(row.order_type, raw_params),
        base_asset_amount=row.base_asset_amount,
        filled_amount=row.filled_amount,
        avg_fill_price=row.avg_fill_price,
        status=row.status,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_fill(row: Any) -> Fill:
    return Fill(
        id=row.id,
        dex_account_id=row.dex_account_id,
        venue=row.venue,
        external_fill_id=row.external_fill_id,
        external_order_id=row.external_order_id,
        market_index=row.market_index,
        direction=row.direction,
        amount=row.amount,
        price=row.price,
        fee=row.fee,
        filled_at=row.filled_at,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, order: Order) -> bool:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "dex_account_id": order.dex_account_id,
                "venue": order.venue,
                "external_order_id": order.external_order_id,
                "client_order_id": order.client_order_id,
                "market_index": order.market_index,
                "direction": order.direction,
                "order_type": order.order_type,
                "params": json.dumps(params_to_dict(order.params)),
                "base_asset_amount": order.base_asset_amount,
                "filled_amount": order.filled_amount,
                "avg_fill_price": order.avg_fill_price,
                "status": order.status,
            },
        )
        return result.fetchone() is not None

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_by_external_id(
        self, db: AsyncSession, dex_account_id: str, external_order_id: str
    ) -> Order | None:
        result = await db.execute(
            _GET_ORDER_BY_EXTERNAL_ID_SQL,
            {"dex_account_id": dex_account_id, "external_order_id": external_order_id},
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_unmatched_by_client_order_id(
        self, db: AsyncSession, dex_account_id: str, client_order_id: str
    ) -> Order | None:
        result = await db.execute(
            _GET_UNMATCHED_BY_CLIENT_ID_SQL,
            {"dex_account_id": dex_account_id, "client_order_id": client_order_id},
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def update_versioned(
        self, db: AsyncSession, order: Order, expected_version: int
    ) -> Order | None:
        result = await db.execute(
            _UPDATE_ORDER_SQL,
            {
                "id": order.id,
                "expected_version": expected_version,
                "external_order_id": order.external_order_id,
                "base_asset_amount": order.base_asset_amount,
                "filled_amount": order.filled_amount,
                "avg_fill_price": order.avg_fill_price,
                "status": order.status,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def list_by_account(
        self,
        db: AsyncSession,
        dex_account_id: str,
        statuses: list[str] | None = None,
        limit: int = 100,
    ) -> list[Order]:
        statuses_csv = ",".join(statuses) if statuses else None
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {"dex_account_id": dex_account_id, "statuses_csv": statuses_csv, "limit": limit},
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_by_ids(self, db: AsyncSession, order_ids: list[str]) -> list[Order]:
        if not order_ids:
            return []
        result = await db.execute(_LIST_ORDERS_BY_IDS_SQL, {"ids_csv": ",".join(order_ids)})
        return [_row_to_order(row) for row in result.fetchall()]


class FillRepository:
    """Append-only fill store; replays of the same venue fill are ignored."""

    async def insert_if_absent(self, db: AsyncSession, fill: Fill) -> bool:
        result = await db.execute(
            _INSERT_FILL_SQL,
            {
                "dex_account_id": fill.dex_account_id,
                "venue": fill.venue,
                "external_fill_id": fill.external_fill_id,
                "external_order_id": fill.external_order_id,
                "market_index": fill.market_index,
                "direction": fill.direction,
                "amount": fill.amount,
                "price": fill.price,
                "fee": fill.fee,
                "filled_at": fill.filled_at,
            },
        )
        return result.fetchone() is not None

    async def list_fills(
        self,
        db: AsyncSession,
        dex_account_id: str,
        market_index: int | None,
        start: datetime | None,
        end: datetime | None,
        limit: int,
    ) -> list[Fill]:
        result = await db.execute(
            _LIST_FILLS_SQL,
            {
                "dex_account_id": dex_account_id,
                "market_index": market_index,
                "start": start,
                "end": end,
                "limit": limit,
            },
        )
        return [_row_to_fill(row) for row in result.fetchall()]
