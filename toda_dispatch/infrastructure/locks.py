"""
Redis-based distributed lock.

Keeps the pending-booking expiry sweep to one API process at a time.
Booking acceptance does NOT use it: the conditional UPDATE in
``SqlBookingStore.compare_and_set_status`` already serialises accepts per
booking.

Acquire is ``SET NX EX``; release is an atomic check-and-delete in Lua so
a process never frees a lock that expired and was re-taken by another.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from toda_dispatch.domain.errors import StoreUnavailableError

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    pass


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"toda:lock:{key}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        try:
            return bool(
                await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
            )
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailableError(f"Cannot reach Redis for {self.key}") from exc

    async def release(self) -> bool:
        """Release only if we still own the lock.  Returns True if deleted."""
        try:
            return bool(await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token))
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailableError(f"Cannot reach Redis for {self.key}") from exc

    async def __aenter__(self) -> DistributedLock:
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args) -> None:
        await self.release()
