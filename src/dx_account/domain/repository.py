"""DexAccountRepository Protocol — dependency inversion for testability."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_account.domain.models import DexAccount


class DexAccountRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, account: DexAccount) -> DexAccount | None: ...

    async def get_by_id(self, db: AsyncSession, dex_account_id: str) -> DexAccount | None: ...

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[DexAccount]: ...

    async def list_active(self, db: AsyncSession) -> list[DexAccount]: ...
