"""Venue-neutral shapes produced by the payload normalizers."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from src.dx_common.decimals import ZERO

if TYPE_CHECKING:
    from src.dx_order.domain.models import OrderParams


@dataclass(frozen=True)
class TimeWindow:
    start: datetime | None = None
    end: datetime | None = None


@dataclass(frozen=True)
class VenueOrder:
    venue: str
    market_index: int
    direction: str
    order_type: str
    params: "OrderParams"
    base_asset_amount: Decimal
    filled_amount: Decimal
    status: str
    external_order_id: str | None = None
    client_order_id: str | None = None
    avg_fill_price: Decimal | None = None

    def __post_init__(self) -> None:
        if self.base_asset_amount <= ZERO:
            raise ValueError(f"base_asset_amount must be positive, got {self.base_asset_amount}")
        if not (ZERO <= self.filled_amount <= self.base_asset_amount):
            raise ValueError(
                f"filled_amount {self.filled_amount} outside [0, {self.base_asset_amount}]"
            )


@dataclass(frozen=True)
class VenuePosition:
    market_index: int
    size: Decimal  # signed: + long, - short
    entry_price: Decimal | None = None
    mark_price: Decimal | None = None


@dataclass(frozen=True)
class VenueFill:
    venue: str
    external_fill_id: str
    market_index: int
    direction: str
    amount: Decimal
    price: Decimal
    filled_at: datetime
    external_order_id: str | None = None
    fee: Decimal = ZERO


@dataclass(frozen=True)
class VenueTransfer:
    direction: str  # deposit / withdrawal
    market_index: int
    amount: Decimal
    token_symbol: str
    external_tx_signature: str
    occurred_at: datetime
    status: str = "confirmed"
