"""Retry policies built on tenacity.

Two policies exist:

* venue I/O: transient failures (timeouts, 5xx, 429, ``VenueUnavailableError``)
  are retried with exponential backoff inside a single reconciliation tick;
* optimistic concurrency: a ``ConcurrencyConflictError`` re-runs the whole
  read-modify-write against a fresh read, a bounded number of times, and is
  then surfaced as ``RetryExhaustedError``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.dx_common.errors import (
    ConcurrencyConflictError,
    RetryExhaustedError,
    VenueUnavailableError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_venue_error(exc: BaseException) -> bool:
    """True for errors worth retrying against a venue within the same tick."""
    if isinstance(exc, (VenueUnavailableError, asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


def _log_venue_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "venue call failed (attempt %d): %s; retrying",
        state.attempt_number,
        exc,
    )


async def call_venue(
    fn: Callable[[], Awaitable[T]],
    *,
    venue: str,
    attempts: int,
    base_seconds: float,
    max_seconds: float,
) -> T:
    """Run one venue call with backoff; exhaustion raises ``VenueUnavailableError``."""
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=base_seconds, max=max_seconds),
            retry=retry_if_exception(is_transient_venue_error),
            before_sleep=_log_venue_retry,
            reraise=False,
        ):
            with attempt:
                return await fn()
    except RetryError as exc:
        last = exc.last_attempt.exception()
        raise VenueUnavailableError(venue, f"{attempts} attempts failed: {last}") from last
    raise VenueUnavailableError(venue, "no attempt was made")  # pragma: no cover


async def retry_on_conflict(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    what: str,
) -> T:
    """Re-run a read-modify-write until its version-conditioned write lands."""
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception_type(ConcurrencyConflictError),
            reraise=False,
        ):
            with attempt:
                return await fn()
    except RetryError as exc:
        logger.warning("%s: optimistic retries exhausted (%d)", what, attempts)
        raise RetryExhaustedError(what, attempts) from exc.last_attempt.exception()
    raise RetryExhaustedError(what, 0)  # pragma: no cover
