"""Per-account reconciliation leases.

A lease serializes reconciliation of one DEX account. Acquisition never
waits: if the account is already being reconciled, the caller skips it for
this tick.

* ``LocalAccountLease``: one ``asyncio.Lock`` per account, for a single
  process.
* ``RedisAccountLease``: ``SET key token NX PX ttl`` so several replicas
  can share one scheduler duty; release deletes the key only while it still
  holds the caller's token, so an expired lease taken over by another
  replica is never released by the first one.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Protocol

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class AccountLease(Protocol):
    async def try_acquire(self, dex_account_id: str) -> str | None:
        """Return a release token, or None when the account is already held."""
        ...

    async def release(self, dex_account_id: str, token: str) -> None: ...


class LocalAccountLease:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._tokens: dict[str, str] = {}

    async def try_acquire(self, dex_account_id: str) -> str | None:
        lock = self._locks[dex_account_id]
        if lock.locked():
            return None
        # An unlocked lock with no waiters is taken without suspending
        await lock.acquire()
        token = uuid.uuid4().hex
        self._tokens[dex_account_id] = token
        return token

    async def release(self, dex_account_id: str, token: str) -> None:
        if self._tokens.get(dex_account_id) != token:
            logger.warning("lease for %s released with a stale token", dex_account_id)
            return
        del self._tokens[dex_account_id]
        self._locks[dex_account_id].release()


_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisAccountLease:
    KEY_PREFIX = "dx:reconcile:lease:"

    def __init__(self, client: aioredis.Redis, ttl_seconds: int) -> None:
        self._client = client
        self._ttl_ms = ttl_seconds * 1000

    def _key(self, dex_account_id: str) -> str:
        return f"{self.KEY_PREFIX}{dex_account_id}"

    async def try_acquire(self, dex_account_id: str) -> str | None:
        token = uuid.uuid4().hex
        acquired = await self._client.set(
            self._key(dex_account_id), token, nx=True, px=self._ttl_ms
        )
        return token if acquired else None

    async def release(self, dex_account_id: str, token: str) -> None:
        released = await self._client.eval(_RELEASE_SCRIPT, 1, self._key(dex_account_id), token)
        if not released:
            logger.warning("lease for %s expired before release", dex_account_id)
