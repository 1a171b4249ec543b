"""PositionRepository Protocol — dependency inversion for testability."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_position.domain.models import Position


class PositionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, position: Position) -> None: ...

    async def get_by_id(self, db: AsyncSession, position_id: str) -> Position | None: ...

    async def update_versioned(
        self, db: AsyncSession, position: Position, expected_version: int
    ) -> Position | None: ...

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        lifecycle_state: str | None = None,
        kind: str | None = None,
    ) -> list[Position]: ...

    async def list_active_by_leg_ids(
        self, db: AsyncSession, order_ids: list[str]
    ) -> list[Position]:
        """Non-terminal positions that have any of ``order_ids`` as a leg."""
        ...

    async def list_active_by_account(
        self, db: AsyncSession, dex_account_id: str
    ) -> list[Position]:
        """Non-terminal positions with at least one leg on the given DEX account."""
        ...
