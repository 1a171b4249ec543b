"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def from_epoch_ms(ms: int | float | str) -> datetime:
    """Venue timestamps (Hyperliquid ``time``) are epoch milliseconds."""
    return datetime.fromtimestamp(int(ms) / 1000, tz=timezone.utc)


def from_epoch_s(seconds: int | float | str) -> datetime:
    """Venue timestamps (Drift ``ts``) are epoch seconds."""
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)
