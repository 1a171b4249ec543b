"""Position domain models — pure dataclasses, no SQLAlchemy dependency."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.dx_common.decimals import ZERO
from src.dx_common.enums import TERMINAL_POSITION_STATES, PositionLifecycle
from src.dx_order.domain.models import Order


@dataclass
class Position:
    id: str
    user_id: str
    kind: str  # single / delta_neutral
    leg_order_ids: list[str]
    lifecycle_state: str = PositionLifecycle.OPENING.value
    hedge_broken: bool = False
    name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.lifecycle_state in TERMINAL_POSITION_STATES


@dataclass(frozen=True)
class Exposure:
    long_notional: Decimal
    short_notional: Decimal
    net_notional: Decimal
    gross_notional: Decimal
    residual_ratio: Decimal | None  # |net| / gross; None before any fill

    @classmethod
    def from_legs(cls, legs: Iterable[Order]) -> "Exposure":
        long_notional = ZERO
        short_notional = ZERO
        for leg in legs:
            notional = leg.signed_notional
            if notional > ZERO:
                long_notional += notional
            else:
                short_notional -= notional
        net = long_notional - short_notional
        gross = long_notional + short_notional
        return cls(
            long_notional=long_notional,
            short_notional=short_notional,
            net_notional=net,
            gross_notional=gross,
            residual_ratio=abs(net) / gross if gross > ZERO else None,
        )
