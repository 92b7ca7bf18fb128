"""
Background Expiry Worker
========================

Runs every ``EXPIRY_INTERVAL_SECONDS`` (default 30 s) and rejects PENDING
bookings no driver accepted within ``PENDING_TIMEOUT_SECONDS`` (default
5 min).  A timeout of 0 disables the worker.

Concurrency safety
------------------
* **Redis distributed lock** keeps the sweep to one API process at a time.
* Each rejection goes through the booking lifecycle, so a driver who
  accepts while the sweep runs wins or loses the same conditional UPDATE
  as any other accept.  Lost races are skipped.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from toda_dispatch.config import settings
from toda_dispatch.infrastructure.database import async_session_factory
from toda_dispatch.infrastructure.locks import DistributedLock
from toda_dispatch.infrastructure.redis_client import get_redis
from toda_dispatch.wiring import build_coordinator

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_expiry_loop() -> None:
    global _task, _stop_event
    if settings.pending_timeout_seconds <= 0:
        logger.info("Pending-booking expiry disabled")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Expiry worker started (timeout=%ds, interval=%ds)",
        settings.pending_timeout_seconds,
        settings.expiry_interval_seconds,
    )


async def stop_expiry_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Expiry worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a sweep then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_expiry_cycle()
        except Exception:
            logger.exception("Unhandled error in expiry cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.expiry_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_expiry_cycle() -> int:
    """Execute one sweep.  Returns the number of bookings rejected."""
    redis = get_redis()
    lock = DistributedLock(
        redis, "pending_expiry", ttl_seconds=max(60, settings.expiry_interval_seconds)
    )

    if not await lock.acquire():
        logger.debug("Lock held by another worker, skipping sweep")
        return 0

    try:
        coordinator = build_coordinator(async_session_factory, redis)
        return await coordinator.expire_stale(
            timedelta(seconds=settings.pending_timeout_seconds)
        )
    finally:
        await lock.release()
