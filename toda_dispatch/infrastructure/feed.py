"""
Redis pub/sub feed of booking updates.

Every successful booking write is published as JSON on one channel;
driver dashboards subscribe to it to see new and changed bookings without
polling.  Publishing is best effort: the database write has already been
committed, so a Redis outage is logged and does not fail the transition.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from toda_dispatch.domain.entities import Booking, Coordinate
from toda_dispatch.domain.enums import BookingStatus, CancelActor
from toda_dispatch.domain.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def booking_to_payload(booking: Booking) -> dict[str, Any]:
    return {
        "id": booking.id,
        "rider_id": booking.rider_id,
        "rider_name": booking.rider_name,
        "rider_phone": booking.rider_phone,
        "pickup": [booking.pickup.latitude, booking.pickup.longitude],
        "dropoff": [booking.dropoff.latitude, booking.dropoff.longitude],
        "pickup_label": booking.pickup_label,
        "dropoff_label": booking.dropoff_label,
        "distance_km": booking.distance_km,
        "estimated_fare": booking.estimated_fare,
        "actual_fare": booking.actual_fare,
        "status": booking.status.value,
        "assigned_driver_id": booking.assigned_driver_id,
        "assigned_tricycle_id": booking.assigned_tricycle_id,
        "cancelled_by": booking.cancelled_by.value if booking.cancelled_by else None,
        "verification_code": booking.verification_code,
        "created_at": booking.created_at.isoformat(),
        "updated_at": booking.updated_at.isoformat() if booking.updated_at else None,
    }


def booking_from_payload(data: dict[str, Any]) -> Booking:
    return Booking(
        id=data["id"],
        rider_id=data["rider_id"],
        rider_name=data.get("rider_name", ""),
        rider_phone=data.get("rider_phone", ""),
        pickup=Coordinate(*data["pickup"]),
        dropoff=Coordinate(*data["dropoff"]),
        pickup_label=data.get("pickup_label", ""),
        dropoff_label=data.get("dropoff_label", ""),
        distance_km=data.get("distance_km", 0.0),
        estimated_fare=data.get("estimated_fare", 0.0),
        actual_fare=data.get("actual_fare"),
        status=BookingStatus(data["status"]),
        assigned_driver_id=data.get("assigned_driver_id"),
        assigned_tricycle_id=data.get("assigned_tricycle_id"),
        cancelled_by=CancelActor(data["cancelled_by"]) if data.get("cancelled_by") else None,
        verification_code=data["verification_code"],
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=(
            datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else None
        ),
    )


class BookingFeed:
    def __init__(self, client: aioredis.Redis, channel: str = "booking-updates"):
        self.redis = client
        self.channel = channel

    async def publish(self, booking: Booking) -> None:
        try:
            await self.redis.publish(
                self.channel, json.dumps(booking_to_payload(booking))
            )
        except (RedisConnectionError, RedisTimeoutError):
            logger.warning(
                "Could not publish update for booking %s", booking.id, exc_info=True
            )

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[AsyncIterator[Booking]]:
        """Subscribe now; the yielded iterator delivers every later update.

        Callers that combine the feed with a snapshot take the snapshot
        inside this block, so nothing published in between is missed.
        """
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            yield self._bookings(pubsub)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailableError("booking feed unavailable") from exc
        finally:
            await pubsub.aclose()

    async def listen(self) -> AsyncIterator[Booking]:
        """Yield every booking published on the channel until cancelled."""
        async with self.subscribe() as updates:
            async for booking in updates:
                yield booking

    async def _bookings(self, pubsub) -> AsyncIterator[Booking]:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                booking = booking_from_payload(json.loads(message["data"]))
            except (ValueError, KeyError, TypeError):
                logger.warning("Invalid booking payload: %r", message["data"])
                continue
            yield booking
