"""Decimal helpers for venue amounts and prices.

Everything is ``decimal.Decimal`` end to end (DB: NUMERIC(30, 10)). Floats from
venue JSON are converted through ``str`` so no binary rounding leaks in.
"""

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

ZERO = Decimal(0)


def to_decimal(value: object) -> Decimal:
    """Convert a venue scalar (str/int/float/Decimal) to Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric value: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a numeric value: {value!r}") from exc


def scale_down(raw: object, decimals: int) -> Decimal:
    """Convert a fixed-point integer (Drift BN) into a Decimal: 1500000, 6 -> 1.5."""
    return to_decimal(raw).scaleb(-decimals)


def weighted_average(pairs: Iterable[tuple[Decimal, Decimal]]) -> Decimal | None:
    """Size-weighted average of ``(size, price)`` pairs; None when total size is zero."""
    total_size = ZERO
    total_notional = ZERO
    for size, price in pairs:
        total_size += size
        total_notional += size * price
    if total_size == ZERO:
        return None
    return total_notional / total_size
