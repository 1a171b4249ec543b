"""TransactionRepository — raw SQL persistence implementation."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_ledger.domain.models import Transaction, TransactionFilter

_COLUMNS = """
    id, dex_account_id, direction, market_index, amount, token_symbol,
    external_tx_signature, status, occurred_at, created_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO transactions (id, dex_account_id, direction, market_index, amount,
        token_symbol, external_tx_signature, status, occurred_at)
    VALUES (:id, :dex_account_id, :direction, :market_index, :amount,
        :token_symbol, :external_tx_signature, :status, :occurred_at)
    ON CONFLICT (dex_account_id, external_tx_signature) DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_BY_SIGNATURE_SQL = text(f"""
    SELECT {_COLUMNS} FROM transactions
    WHERE dex_account_id = :dex_account_id AND external_tx_signature = :signature
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS} FROM transactions
    WHERE dex_account_id = :dex_account_id
      AND (CAST(:direction AS TEXT) IS NULL OR direction = :direction)
      AND (CAST(:start AS TIMESTAMPTZ) IS NULL OR occurred_at >= :start)
      AND (CAST(:end AS TIMESTAMPTZ) IS NULL OR occurred_at < :end)
    ORDER BY occurred_at DESC, id DESC
    LIMIT :limit
""")


def _row_to_transaction(row: Any) -> Transaction:
    return Transaction(
        id=row.id,
        dex_account_id=row.dex_account_id,
        direction=row.direction,
        market_index=row.market_index,
        amount=row.amount,
        token_symbol=row.token_symbol,
        external_tx_signature=row.external_tx_signature,
        status=row.status,
        occurred_at=row.occurred_at,
        created_at=row.created_at,
    )


class TransactionRepository:
    """Concrete implementation of TransactionRepositoryProtocol using raw SQL."""

    async def insert_if_absent(self, db: AsyncSession, tx: Transaction) -> Transaction | None:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": tx.id,
                "dex_account_id": tx.dex_account_id,
                "direction": tx.direction,
                "market_index": tx.market_index,
                "amount": tx.amount,
                "token_symbol": tx.token_symbol,
                "external_tx_signature": tx.external_tx_signature,
                "status": tx.status,
                "occurred_at": tx.occurred_at,
            },
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def get_by_signature(
        self, db: AsyncSession, dex_account_id: str, external_tx_signature: str
    ) -> Transaction | None:
        result = await db.execute(
            _GET_BY_SIGNATURE_SQL,
            {"dex_account_id": dex_account_id, "signature": external_tx_signature},
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def list_history(
        self, db: AsyncSession, dex_account_id: str, flt: TransactionFilter
    ) -> list[Transaction]:
        result = await db.execute(
            _LIST_SQL,
            {
                "dex_account_id": dex_account_id,
                "direction": flt.direction,
                "start": flt.start,
                "end": flt.end,
                "limit": flt.limit,
            },
        )
        return [_row_to_transaction(row) for row in result.fetchall()]
