"""
Dispatch coordinator
====================

Glue between admission, pricing, the booking lifecycle and the chat
channel service:

* ``request_booking``: trust lookup -> fare -> admission -> create.
  Refusals raise ``ValidationError`` and leave no state behind.
* ``accept``: lifecycle accept, then make sure the rider/driver channel
  exists.  The channel call is idempotent; ``open_channel`` repeats it
  when the channel service failed during accept.
* ``expire_stale``: rejects PENDING bookings nobody answered in time.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, Optional

from toda_dispatch.domain import admission
from toda_dispatch.domain.distance import distance_km
from toda_dispatch.domain.entities import (
    Booking,
    Coordinate,
    RiderTrust,
    SecurityConfig,
)
from toda_dispatch.domain.enums import (
    CancelActor,
    Transition,
    ValidationOutcome,
)
from toda_dispatch.domain.errors import (
    BookingNotFoundError,
    ConflictError,
    InvalidTransitionError,
    ValidationError,
)
from toda_dispatch.domain.pricing import FareBreakdown, PricingEngine
from toda_dispatch.services.lifecycle import BookingLifecycle, utcnow
from toda_dispatch.services.ports import BookingStore, ChannelService, ProfileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    rider_id: str
    pickup: Coordinate
    dropoff: Coordinate
    rider_name: str = ""
    rider_phone: str = ""
    pickup_label: str = ""
    dropoff_label: str = ""


def generate_verification_code() -> str:
    """Four-digit code the rider shows the driver at pickup."""
    return str(1000 + secrets.randbelow(9000))


class DispatchCoordinator:
    def __init__(
        self,
        bookings: BookingStore,
        profiles: ProfileStore,
        channels: ChannelService,
        pricing: PricingEngine,
        security: SecurityConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.bookings = bookings
        self.profiles = profiles
        self.channels = channels
        self.pricing = pricing
        self.security = security
        self.clock = clock
        self.lifecycle = BookingLifecycle(bookings, profiles, clock)

    # ── Admission & creation ──────────────────────────────────────────

    async def check_admission(
        self, rider_id: str, now: Optional[datetime] = None
    ) -> ValidationOutcome:
        now = now or self.clock()
        trust = await self.profiles.get_trust(rider_id)
        recent = 0
        if trust is not None:
            recent = await self.bookings.count_created_since(
                rider_id, admission.window_start(now)
            )
        return admission.validate(trust, self.security, now, recent)

    async def request_booking(self, request: BookingRequest) -> Booking:
        now = self.clock()
        outcome = await self.check_admission(request.rider_id, now)
        if outcome is not ValidationOutcome.VALID:
            logger.info(
                "Booking refused for rider %s: %s", request.rider_id, outcome.value
            )
            raise ValidationError(outcome)

        trip_km = distance_km(request.pickup, request.dropoff)
        draft = Booking(
            id=uuid.uuid4().hex,
            rider_id=request.rider_id,
            rider_name=request.rider_name,
            rider_phone=request.rider_phone,
            pickup=request.pickup,
            dropoff=request.dropoff,
            pickup_label=request.pickup_label,
            dropoff_label=request.dropoff_label,
            distance_km=round(trip_km, 3),
            estimated_fare=self.pricing.estimate_fare(trip_km),
            created_at=now,
            verification_code=generate_verification_code(),
        )
        return await self.lifecycle.create(draft, outcome)

    def quote(
        self,
        pickup: Coordinate,
        dropoff: Coordinate,
        driver_location: Optional[Coordinate] = None,
    ) -> FareBreakdown:
        return self.pricing.quote(pickup, dropoff, driver_location)

    # ── Transitions ───────────────────────────────────────────────────

    async def accept(
        self, booking_id: str, driver_id: str, tricycle_id: Optional[str] = None
    ) -> Booking:
        booking = await self.lifecycle.accept(booking_id, driver_id, tricycle_id)
        channel_id = await self.channels.ensure_channel(
            booking.id, booking.rider_id, driver_id
        )
        logger.info("Channel %s open for booking %s", channel_id, booking.id)
        return booking

    async def open_channel(self, booking_id: str) -> str:
        booking = await self.get_booking(booking_id)
        if booking.assigned_driver_id is None:
            raise InvalidTransitionError(booking.status, Transition.ACCEPT)
        return await self.channels.ensure_channel(
            booking.id, booking.rider_id, booking.assigned_driver_id
        )

    async def reject(self, booking_id: str) -> Booking:
        return await self.lifecycle.reject(booking_id)

    async def start(self, booking_id: str) -> Booking:
        return await self.lifecycle.start(booking_id)

    async def complete(
        self, booking_id: str, actual_fare: Optional[float] = None
    ) -> Booking:
        return await self.lifecycle.complete(booking_id, actual_fare)

    async def cancel(self, booking_id: str, actor: CancelActor) -> Booking:
        return await self.lifecycle.cancel(booking_id, actor)

    # ── Reads ─────────────────────────────────────────────────────────

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    async def active_bookings(self) -> list[Booking]:
        return await self.bookings.list_active()

    def subscribe_active(self) -> AsyncIterator[Booking]:
        return self.bookings.subscribe_active()

    async def rider_trust(self, rider_id: str) -> Optional[RiderTrust]:
        return await self.profiles.get_trust(rider_id)

    # ── Pending timeout policy ────────────────────────────────────────

    async def expire_stale(self, timeout: timedelta) -> int:
        """Reject PENDING bookings older than *timeout*.  Returns the count."""
        cutoff = self.clock() - timeout
        expired = 0
        for booking in await self.bookings.list_pending_created_before(cutoff):
            try:
                await self.lifecycle.reject(booking.id)
            except (ConflictError, InvalidTransitionError) as exc:
                # Accepted or cancelled since the listing; leave it alone.
                logger.debug("Skipping expiry of %s: %s", booking.id, exc)
                continue
            expired += 1
        if expired:
            logger.info("Expired %d unanswered bookings", expired)
        return expired
