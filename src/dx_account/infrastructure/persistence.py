"""DexAccountRepository — raw SQL persistence implementation."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_account.domain.models import DexAccount

_COLUMNS = """
    id, user_id, venue, address, account_type, subaccount_id, is_active, created_at
"""

# Unique index is (venue, address, COALESCE(subaccount_id, -1)); a conflict returns no row.
_INSERT_SQL = text(f"""
    INSERT INTO dex_accounts (id, user_id, venue, address, account_type, subaccount_id)
    VALUES (:id, :user_id, :venue, :address, :account_type, :subaccount_id)
    ON CONFLICT DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM dex_accounts WHERE id = :id")

_LIST_BY_USER_SQL = text(f"""
    SELECT {_COLUMNS} FROM dex_accounts
    WHERE user_id = :user_id
    ORDER BY created_at DESC
""")

_LIST_ACTIVE_SQL = text(f"""
    SELECT {_COLUMNS} FROM dex_accounts
    WHERE is_active = TRUE
    ORDER BY id
""")


def _row_to_account(row: Any) -> DexAccount:
    return DexAccount(
        id=row.id,
        user_id=row.user_id,
        venue=row.venue,
        address=row.address,
        account_type=row.account_type,
        subaccount_id=row.subaccount_id,
        is_active=row.is_active,
        created_at=row.created_at,
    )


class DexAccountRepository:
    """Concrete implementation of DexAccountRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, account: DexAccount) -> DexAccount | None:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": account.id,
                "user_id": account.user_id,
                "venue": account.venue,
                "address": account.address,
                "account_type": account.account_type,
                "subaccount_id": account.subaccount_id,
            },
        )
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_by_id(self, db: AsyncSession, dex_account_id: str) -> DexAccount | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": dex_account_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[DexAccount]:
        result = await db.execute(_LIST_BY_USER_SQL, {"user_id": user_id})
        return [_row_to_account(row) for row in result.fetchall()]

    async def list_active(self, db: AsyncSession) -> list[DexAccount]:
        result = await db.execute(_LIST_ACTIVE_SQL)
        return [_row_to_account(row) for row in result.fetchall()]
