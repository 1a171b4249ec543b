"""Position lifecycle derivation.

    opening ──► open ──► {closed, liquidated}

The lifecycle is a pure function of the current state and the legs' order
state; it only ever moves forward. A delta-neutral position whose leg was
liquidated (or failed) while the other leg still holds or may still acquire
exposure is a broken hedge: it is marked ``liquidated`` with
``hedge_broken`` set and left for manual resolution. The surviving leg is
never modified here.
"""

from src.dx_common.decimals import ZERO
from src.dx_common.enums import (
    HEDGE_BREAKING_STATUSES,
    OrderStatus,
    PositionKind,
    PositionLifecycle,
)
from src.dx_common.errors import InvalidPairingError
from src.dx_order.domain.models import Order
from src.dx_order.domain.state_machine import status_rank
from src.dx_position.domain.models import Position

_RANK = {
    PositionLifecycle.OPENING.value: 0,
    PositionLifecycle.OPEN.value: 1,
    PositionLifecycle.CLOSED.value: 2,
    PositionLifecycle.LIQUIDATED.value: 2,
}


def lifecycle_rank(state: str) -> int:
    return _RANK[state]


def _is_live(leg: Order) -> bool:
    """Holds exposure now (terminal ``filled``) or may still acquire it (not terminal)."""
    return not leg.is_terminal or leg.status == OrderStatus.FILLED.value


def check_leg_usable(leg: Order) -> None:
    if leg.is_terminal and leg.filled_amount == ZERO:
        raise InvalidPairingError(f"order {leg.id} is {leg.status} without any fill")


def validate_pairing(first: Order, second: Order) -> None:
    if first.id == second.id:
        raise InvalidPairingError("both legs are the same order")
    if first.venue == second.venue:
        raise InvalidPairingError(f"both legs are on {first.venue}")
    if first.direction == second.direction:
        raise InvalidPairingError(f"both legs are {first.direction}")
    check_leg_usable(first)
    check_leg_usable(second)


def _legs_opened(position: Position, legs: list[Order]) -> bool:
    """A single leg opens with its order; a hedge opens once every leg has a fill."""
    if position.kind == PositionKind.SINGLE.value:
        return all(status_rank(leg.status) >= 1 for leg in legs)
    return all(leg.filled_amount > ZERO for leg in legs)


def derive_lifecycle(position: Position, legs: list[Order]) -> tuple[str, bool]:
    """Return the (lifecycle_state, hedge_broken) the legs imply for ``position``."""
    current = position.lifecycle_state
    if position.is_terminal:
        return current, position.hedge_broken

    if position.kind == PositionKind.DELTA_NEUTRAL.value:
        for leg in legs:
            others = [o for o in legs if o.id != leg.id]
            if leg.status in HEDGE_BREAKING_STATUSES and any(_is_live(o) for o in others):
                return PositionLifecycle.LIQUIDATED.value, True

    if any(leg.status == OrderStatus.LIQUIDATED.value for leg in legs) and not any(
        _is_live(leg) for leg in legs
    ):
        return PositionLifecycle.LIQUIDATED.value, False

    if all(leg.is_terminal and leg.filled_amount == ZERO for leg in legs):
        return PositionLifecycle.CLOSED.value, False

    if current == PositionLifecycle.OPENING.value and _legs_opened(position, legs):
        return PositionLifecycle.OPEN.value, False

    return current, position.hedge_broken


def can_close(legs: list[Order]) -> bool:
    return all(leg.is_terminal for leg in legs)
