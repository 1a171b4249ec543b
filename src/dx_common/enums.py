"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class Venue(str, Enum):
    DRIFT = "drift"
    HYPERLIQUID = "hyperliquid"


class AccountType(str, Enum):
    MASTER = "master"
    AGENT_WALLET = "agent_wallet"
    SUBACCOUNT = "subaccount"


class OrderDirection(str, Enum):
    LONG = "long"
    SHORT = "short"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"
    TRIGGER_MARKET = "trigger_market"
    TRIGGER_LIMIT = "trigger_limit"
    ORACLE = "oracle"


class TriggerCondition(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class OrderStatus(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    # Terminal
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    FAILED = "failed"
    EXPIRED = "expired"
    LIQUIDATED = "liquidated"


TERMINAL_ORDER_STATUSES = frozenset(
    s.value
    for s in (
        OrderStatus.FILLED,
        OrderStatus.CANCELLED,
        OrderStatus.REJECTED,
        OrderStatus.FAILED,
        OrderStatus.EXPIRED,
        OrderStatus.LIQUIDATED,
    )
)

# Statuses that break a hedge when the opposite leg is still exposed
HEDGE_BREAKING_STATUSES = frozenset({OrderStatus.LIQUIDATED.value, OrderStatus.FAILED.value})


class PositionKind(str, Enum):
    SINGLE = "single"
    DELTA_NEUTRAL = "delta_neutral"


class PositionLifecycle(str, Enum):
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"
    LIQUIDATED = "liquidated"


TERMINAL_POSITION_STATES = frozenset(
    {PositionLifecycle.CLOSED.value, PositionLifecycle.LIQUIDATED.value}
)


class TransferDirection(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class AccountHealth(str, Enum):
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
