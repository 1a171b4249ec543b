"""Pydantic schemas for position snapshot history."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from src.dx_snapshot.domain.models import PositionSnapshot


class SnapshotResponse(BaseModel):
    id: int | None
    position_id: str
    captured_at: datetime
    size: Decimal
    entry_price: Decimal
    mark_price: Decimal
    unrealized_pnl: Decimal

    @classmethod
    def from_domain(cls, snap: PositionSnapshot) -> "SnapshotResponse":
        return cls(
            id=snap.id,
            position_id=snap.position_id,
            captured_at=snap.captured_at,
            size=snap.size,
            entry_price=snap.entry_price,
            mark_price=snap.mark_price,
            unrealized_pnl=snap.unrealized_pnl,
        )
