"""Order state machine.

    pending ──► open ──► {filled, cancelled, rejected, failed, expired, liquidated}
       │                    ▲
       └────────────────────┘

Statuses rank ``pending < open < terminal``. Every mutation here is monotonic
in that ranking; a terminal status is never replaced by a different one.
Trigger orders sit in ``pending`` (armed) until the venue reports them live.

All functions mutate the passed Order in place and leave versioning to the
caller, which writes the result with a version-conditioned UPDATE.
"""

from dataclasses import fields
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.dx_common.decimals import ZERO, weighted_average
from src.dx_common.enums import TERMINAL_ORDER_STATUSES, OrderStatus, TriggerCondition
from src.dx_common.errors import InvalidOrderError, InvalidTransitionError, StaleApplyError
from src.dx_order.domain.models import PARAMS_BY_TYPE, Order, OrderParams
from src.dx_venue.models import VenueOrder

_REQUIRED_POSITIVE = ("price", "trigger_price")


class MergeOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    STALE = "stale"


def status_rank(status: str) -> int:
    if status == OrderStatus.PENDING.value:
        return 0
    if status == OrderStatus.OPEN.value:
        return 1
    if status in TERMINAL_ORDER_STATUSES:
        return 2
    raise ValueError(f"Unknown order status: {status}")


def validate_submission(order_type: str, params: OrderParams, base_asset_amount: Decimal) -> None:
    """Reject orders whose params variant does not fit the declared type."""
    if base_asset_amount <= ZERO:
        raise InvalidOrderError("base_asset_amount must be positive")
    expected = PARAMS_BY_TYPE.get(order_type)
    if expected is None:
        raise InvalidOrderError(f"unknown order_type {order_type}")
    if not isinstance(params, expected):
        raise InvalidOrderError(f"{order_type} orders require {expected.__name__}")
    names = {f.name for f in fields(params)}
    for name in _REQUIRED_POSITIVE:
        if name not in names:
            continue
        value = getattr(params, name)
        if value is None or value <= ZERO:
            raise InvalidOrderError(f"{order_type} orders require a positive {name}")
    if "trigger_condition" in names:
        condition = getattr(params, "trigger_condition")
        if condition not in (TriggerCondition.ABOVE.value, TriggerCondition.BELOW.value):
            raise InvalidOrderError(f"trigger_condition must be above or below, got {condition}")


def apply_fill(order: Order, filled_delta: Decimal, fill_price: Decimal, now: datetime) -> None:
    if order.is_terminal:
        raise StaleApplyError(order.id, order.status)
    if filled_delta <= ZERO or fill_price <= ZERO:
        raise InvalidOrderError("fill size and price must be positive")
    if order.filled_amount + filled_delta > order.base_asset_amount:
        raise InvalidOrderError(
            f"fill of {filled_delta} exceeds remaining {order.remaining_amount} on order {order.id}"
        )

    pairs = [(filled_delta, fill_price)]
    if order.avg_fill_price is not None:
        pairs.append((order.filled_amount, order.avg_fill_price))
    order.avg_fill_price = weighted_average(pairs)
    order.filled_amount += filled_delta
    if order.filled_amount == order.base_asset_amount:
        order.status = OrderStatus.FILLED.value
    else:
        order.status = OrderStatus.OPEN.value
    order.updated_at = now


def cancel(order: Order, now: datetime) -> None:
    if not order.is_cancellable:
        raise InvalidTransitionError(order.id, order.status, OrderStatus.CANCELLED.value)
    order.status = OrderStatus.CANCELLED.value
    order.updated_at = now


def _is_stale(order: Order, report: VenueOrder) -> bool:
    if order.is_terminal:
        # Same terminal status may still carry fills we have not seen yet
        return report.status != order.status or report.filled_amount < order.filled_amount
    local_rank = status_rank(order.status)
    venue_rank = status_rank(report.status)
    if venue_rank < local_rank:
        return True
    return venue_rank == local_rank and report.filled_amount < order.filled_amount


def merge_venue_report(order: Order, report: VenueOrder, now: datetime) -> MergeOutcome:
    """Fold one venue-reported order into the local record.

    Returns UNCHANGED for an identical report, so replaying a poll is a no-op,
    and STALE for a report that would move the order backwards.
    """
    if _is_stale(order, report):
        return MergeOutcome.STALE

    # Venues that omit the average (Hyperliquid open orders) keep the local one
    avg = report.avg_fill_price if report.avg_fill_price is not None else order.avg_fill_price
    filled = report.filled_amount
    if filled < order.filled_amount:
        # A status promotion never drops fills already recorded locally
        filled = order.filled_amount
        avg = order.avg_fill_price
    if filled == ZERO:
        avg = None

    external_order_id = order.external_order_id or report.external_order_id
    changed = (
        report.status != order.status
        or filled != order.filled_amount
        or report.base_asset_amount != order.base_asset_amount
        or avg != order.avg_fill_price
        or external_order_id != order.external_order_id
    )
    if not changed:
        return MergeOutcome.UNCHANGED

    order.status = report.status
    order.filled_amount = filled
    order.base_asset_amount = report.base_asset_amount
    order.avg_fill_price = avg
    order.external_order_id = external_order_id
    order.updated_at = now
    return MergeOutcome.UPDATED
