"""Order / Fill domain models — pure dataclasses, no SQLAlchemy dependency.

``OrderParams`` is a closed variant: each order type carries exactly the
fields it needs, so a trigger order without a trigger price cannot be built
from a well-typed request.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.dx_common.decimals import ZERO, to_decimal
from src.dx_common.enums import TERMINAL_ORDER_STATUSES, OrderDirection, OrderStatus, OrderType


@dataclass(frozen=True)
class MarketParams:
    reduce_only: bool = False


@dataclass(frozen=True)
class LimitParams:
    price: Decimal
    post_only: bool = False
    reduce_only: bool = False


@dataclass(frozen=True)
class TriggerMarketParams:
    trigger_price: Decimal
    trigger_condition: str  # above / below
    reduce_only: bool = False


@dataclass(frozen=True)
class TriggerLimitParams:
    price: Decimal
    trigger_price: Decimal
    trigger_condition: str
    reduce_only: bool = False


@dataclass(frozen=True)
class OracleParams:
    oracle_price_offset: Decimal
    auction_duration: int | None = None
    reduce_only: bool = False


OrderParams = MarketParams | LimitParams | TriggerMarketParams | TriggerLimitParams | OracleParams

PARAMS_BY_TYPE: dict[str, type] = {
    OrderType.MARKET.value: MarketParams,
    OrderType.LIMIT.value: LimitParams,
    OrderType.TRIGGER_MARKET.value: TriggerMarketParams,
    OrderType.TRIGGER_LIMIT.value: TriggerLimitParams,
    OrderType.ORACLE.value: OracleParams,
}

_DECIMAL_FIELDS = ("price", "trigger_price", "oracle_price_offset")


def params_to_dict(params: OrderParams) -> dict[str, Any]:
    """JSON-safe dict for the ``orders.params`` JSONB column."""
    data = asdict(params)
    for key in _DECIMAL_FIELDS:
        if data.get(key) is not None:
            data[key] = str(data[key])
    return data


def params_from_dict(order_type: str, data: dict[str, Any]) -> OrderParams:
    cls = PARAMS_BY_TYPE[order_type]
    kwargs = dict(data)
    for key in _DECIMAL_FIELDS:
        if kwargs.get(key) is not None:
            kwargs[key] = to_decimal(kwargs[key])
    return cls(**kwargs)  # type: ignore[no-any-return]


@dataclass
class Order:
    id: str
    dex_account_id: str
    venue: str  # drift / hyperliquid
    market_index: int
    direction: str  # long / short
    order_type: str
    base_asset_amount: Decimal
    params: OrderParams
    client_order_id: str | None = None
    external_order_id: str | None = None
    filled_amount: Decimal = ZERO
    avg_fill_price: Decimal | None = None
    status: str = OrderStatus.PENDING.value
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    @property
    def is_cancellable(self) -> bool:
        return self.status in (OrderStatus.PENDING.value, OrderStatus.OPEN.value)

    @property
    def remaining_amount(self) -> Decimal:
        return self.base_asset_amount - self.filled_amount

    @property
    def sign(self) -> int:
        return 1 if self.direction == OrderDirection.LONG.value else -1

    @property
    def signed_notional(self) -> Decimal:
        """filled × avg price, + for long and − for short; zero before any fill."""
        if self.avg_fill_price is None or self.filled_amount == ZERO:
            return ZERO
        return self.sign * self.filled_amount * self.avg_fill_price


@dataclass
class Fill:
    id: int | None
    dex_account_id: str
    venue: str
    external_fill_id: str
    market_index: int
    direction: str
    amount: Decimal
    price: Decimal
    filled_at: datetime
    external_order_id: str | None = None
    fee: Decimal = ZERO
