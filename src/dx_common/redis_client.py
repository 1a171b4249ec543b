"""Redis client factory — used for the cross-replica reconciliation lease only.

NOT used for ledger state (that lives in PostgreSQL). The client is created
in the app lifespan when ``RECONCILE_LEASE_BACKEND == "redis"`` and closed on
shutdown.
"""

import redis.asyncio as aioredis

from config.settings import Settings


def create_redis(settings: Settings) -> aioredis.Redis:
    """Build a Redis connection pool for ``settings.REDIS_URL``."""
    return aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )


async def close_redis(client: aioredis.Redis) -> None:
    await client.aclose()
