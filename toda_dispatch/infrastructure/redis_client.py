"""Redis connection pool shared by the booking feed and the sweep lock."""

import redis.asyncio as aioredis

from toda_dispatch.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


def get_redis() -> aioredis.Redis:
    """Client on the shared pool; cheap to create per request."""
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    await _pool.disconnect()
