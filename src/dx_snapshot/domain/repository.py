"""SnapshotRepository Protocol — append and read only; there is no update."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_snapshot.domain.models import PositionSnapshot


class SnapshotRepositoryProtocol(Protocol):
    async def append(self, db: AsyncSession, snapshot: PositionSnapshot) -> PositionSnapshot: ...

    async def list_by_position(
        self,
        db: AsyncSession,
        position_id: str,
        start: datetime | None,
        end: datetime | None,
        limit: int,
    ) -> list[PositionSnapshot]: ...
