"""PositionSnapshot — an immutable point-in-time valuation of a position."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.dx_common.decimals import ZERO, weighted_average
from src.dx_order.domain.models import Order


@dataclass(frozen=True)
class PositionSnapshot:
    id: int | None
    position_id: str
    captured_at: datetime
    size: Decimal  # net signed base amount across legs
    entry_price: Decimal
    mark_price: Decimal
    unrealized_pnl: Decimal


def value_legs(
    position_id: str, legs: list[Order], mark_price: Decimal, captured_at: datetime
) -> PositionSnapshot | None:
    """Value the filled part of each leg at ``mark_price``; None before any fill."""
    filled = [leg for leg in legs if leg.filled_amount > ZERO and leg.avg_fill_price is not None]
    if not filled:
        return None

    size = ZERO
    pnl = ZERO
    for leg in filled:
        size += leg.sign * leg.filled_amount
        pnl += leg.sign * leg.filled_amount * (mark_price - leg.avg_fill_price)
    entry = weighted_average((leg.filled_amount, leg.avg_fill_price) for leg in filled)
    return PositionSnapshot(
        id=None,
        position_id=position_id,
        captured_at=captured_at,
        size=size,
        entry_price=entry if entry is not None else ZERO,
        mark_price=mark_price,
        unrealized_pnl=pnl,
    )
