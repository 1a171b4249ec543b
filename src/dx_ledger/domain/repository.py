"""TransactionRepository Protocol — dependency inversion for testability."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_ledger.domain.models import Transaction, TransactionFilter


class TransactionRepositoryProtocol(Protocol):
    async def insert_if_absent(self, db: AsyncSession, tx: Transaction) -> Transaction | None:
        """None when ``(dex_account_id, external_tx_signature)`` is already recorded."""
        ...

    async def get_by_signature(
        self, db: AsyncSession, dex_account_id: str, external_tx_signature: str
    ) -> Transaction | None: ...

    async def list_history(
        self, db: AsyncSession, dex_account_id: str, flt: TransactionFilter
    ) -> list[Transaction]: ...
