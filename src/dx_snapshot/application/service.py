"""SnapshotRecorder — appends valuations of active positions."""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.dx_common.datetime_utils import utc_now
from src.dx_common.errors import PositionNotActiveError
from src.dx_gateway.auth import AuthContext
from src.dx_position.application.service import PositionAggregator
from src.dx_snapshot.application.schemas import SnapshotResponse
from src.dx_snapshot.domain.models import PositionSnapshot, value_legs
from src.dx_snapshot.domain.repository import SnapshotRepositoryProtocol
from src.dx_snapshot.infrastructure.persistence import SnapshotRepository

logger = logging.getLogger(__name__)


class SnapshotRecorder:
    def __init__(
        self,
        positions: PositionAggregator,
        repo: SnapshotRepositoryProtocol | None = None,
    ) -> None:
        self._positions = positions
        self._repo: SnapshotRepositoryProtocol = repo or SnapshotRepository()

    async def record(
        self, db: AsyncSession, position_id: str, mark_price: Decimal
    ) -> PositionSnapshot | None:
        position, legs = await self._positions.load(db, position_id)
        if position.is_terminal:
            raise PositionNotActiveError(position_id, position.lifecycle_state)
        snapshot = value_legs(position_id, legs, mark_price, utc_now())
        if snapshot is None:
            return None
        saved = await self._repo.append(db, snapshot)
        logger.debug(
            "snapshot %s: size=%s mark=%s upnl=%s",
            position_id, saved.size, saved.mark_price, saved.unrealized_pnl,
        )
        return saved

    async def list_history(
        self,
        db: AsyncSession,
        auth: AuthContext,
        position_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 500,
    ) -> list[SnapshotResponse]:
        await self._positions.get_owned(db, auth, position_id)
        snaps = await self._repo.list_by_position(db, position_id, start, end, limit)
        return [SnapshotResponse.from_domain(s) for s in snaps]
