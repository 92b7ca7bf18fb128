"""
Concurrency safety tests.

Demonstrates:
1. The distributed lock only lets one holder in and only frees its own key.
2. The expiry sweep skips its run when another process holds the lock.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from toda_dispatch.domain.errors import StoreUnavailableError
from toda_dispatch.infrastructure.locks import DistributedLock, LockNotAcquired
from toda_dispatch.workers import expiry


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "pending_expiry", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "toda:lock:pending_expiry", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=None)

        lock = DistributedLock(mock_redis, "pending_expiry", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_checks_ownership(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "pending_expiry", ttl_seconds=10)
        await lock.acquire()
        assert await lock.release() is True

        args = mock_redis.eval.await_args.args
        assert args[1:] == (1, "toda:lock:pending_expiry", lock.token)

    def test_two_locks_have_distinct_tokens(self):
        a = DistributedLock(AsyncMock(), "k")
        b = DistributedLock(AsyncMock(), "k")
        assert a.token != b.token

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "pending_expiry", ttl_seconds=10)
        with pytest.raises(LockNotAcquired, match="Could not acquire lock"):
            async with lock:
                pass

    @pytest.mark.asyncio
    async def test_context_manager_releases(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        async with DistributedLock(mock_redis, "pending_expiry"):
            pass
        mock_redis.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redis_down_is_store_unavailable(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(side_effect=RedisConnectionError("refused"))

        lock = DistributedLock(mock_redis, "pending_expiry")
        with pytest.raises(StoreUnavailableError):
            await lock.acquire()


class TestExpiryCycle:
    @pytest.mark.asyncio
    async def test_sweeps_when_lock_acquired(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)
        coordinator = MagicMock()
        coordinator.expire_stale = AsyncMock(return_value=2)

        with patch.object(expiry, "get_redis", return_value=mock_redis), patch.object(
            expiry, "build_coordinator", return_value=coordinator
        ):
            assert await expiry.run_expiry_cycle() == 2

        coordinator.expire_stale.assert_awaited_once()
        mock_redis.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skips_when_lock_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)
        build = MagicMock()

        with patch.object(expiry, "get_redis", return_value=mock_redis), patch.object(
            expiry, "build_coordinator", build
        ):
            assert await expiry.run_expiry_cycle() == 0

        build.assert_not_called()
        mock_redis.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_releases_lock_when_sweep_fails(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)
        coordinator = MagicMock()
        coordinator.expire_stale = AsyncMock(side_effect=StoreUnavailableError("db down"))

        with patch.object(expiry, "get_redis", return_value=mock_redis), patch.object(
            expiry, "build_coordinator", return_value=coordinator
        ):
            with pytest.raises(StoreUnavailableError):
                await expiry.run_expiry_cycle()

        mock_redis.eval.assert_awaited_once()
