"""Order / Fill repository Protocols — interface contract for persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_order.domain.models import Fill, Order


class OrderRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, order: Order) -> bool:
        """False when an order with the same external id already exists."""
        ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def get_by_external_id(
        self, db: AsyncSession, dex_account_id: str, external_order_id: str
    ) -> Order | None: ...

    async def get_unmatched_by_client_order_id(
        self, db: AsyncSession, dex_account_id: str, client_order_id: str
    ) -> Order | None: ...

    async def update_versioned(
        self, db: AsyncSession, order: Order, expected_version: int
    ) -> Order | None:
        """Write ``order`` if the stored version still equals ``expected_version``."""
        ...

    async def list_by_account(
        self,
        db: AsyncSession,
        dex_account_id: str,
        statuses: list[str] | None = None,
        limit: int = 100,
    ) -> list[Order]: ...

    async def list_by_ids(self, db: AsyncSession, order_ids: list[str]) -> list[Order]: ...


class FillRepositoryProtocol(Protocol):
    async def insert_if_absent(self, db: AsyncSession, fill: Fill) -> bool: ...

    async def list_fills(
        self,
        db: AsyncSession,
        dex_account_id: str,
        market_index: int | None,
        start: datetime | None,
        end: datetime | None,
        limit: int,
    ) -> list[Fill]: ...
