"""Builds a ``DispatchCoordinator`` on the SQL and Redis adapters."""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from toda_dispatch.config import Settings, settings as default_settings
from toda_dispatch.domain.pricing import PricingEngine
from toda_dispatch.infrastructure.feed import BookingFeed
from toda_dispatch.infrastructure.repositories import (
    SqlBookingStore,
    SqlChannelService,
    SqlProfileStore,
)
from toda_dispatch.services.dispatch import DispatchCoordinator


def build_coordinator(
    session_factory: async_sessionmaker[AsyncSession],
    redis: Optional[aioredis.Redis] = None,
    settings: Settings = default_settings,
) -> DispatchCoordinator:
    feed = BookingFeed(redis, settings.booking_feed_channel) if redis else None
    return DispatchCoordinator(
        bookings=SqlBookingStore(session_factory, feed),
        profiles=SqlProfileStore(session_factory, settings.trust_policy()),
        channels=SqlChannelService(session_factory),
        pricing=PricingEngine(settings.fare_schedule()),
        security=settings.security_config(),
    )
