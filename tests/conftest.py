"""
Shared test fixtures.

* In-memory ``BookingStore`` / ``ProfileStore`` / ``ChannelService`` for the
  lifecycle and coordinator tests.  ``InMemoryBookingStore.get`` takes its
  snapshot and then yields to the event loop, so concurrent callers
  interleave between read and write the way real clients do against a
  remote store.
* A file-backed SQLite database (via aiosqlite) for the SQL adapters, so
  tests run without Docker / PostgreSQL / Redis.  A file rather than
  ``:memory:`` gives every session its own connection, which the
  accept-race tests need.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, AsyncIterator, Mapping, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from toda_dispatch.domain.entities import (
    Booking,
    Coordinate,
    RiderTrust,
    SecurityConfig,
)
from toda_dispatch.domain.enums import BookingOutcome, BookingStatus
from toda_dispatch.domain.pricing import PricingEngine
from toda_dispatch.infrastructure.database import Base, create_engine, make_session_factory
from toda_dispatch.infrastructure.models import RiderModel
from toda_dispatch.services.dispatch import BookingRequest, DispatchCoordinator
from toda_dispatch.services.ports import BookingStore, ChannelService, ProfileStore

T0 = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)

# Barangay 177 terminal and a drop-off ~1.5 km away
PICKUP = Coordinate(14.7490, 121.0510)
DROPOFF = Coordinate(14.7560, 121.0620)


class FrozenClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


# ── In-memory collaborators ───────────────────────────────────────────


class InMemoryBookingStore(BookingStore):
    def __init__(self):
        self.rows: dict[str, Booking] = {}
        self.cas_calls = 0

    async def create(self, booking: Booking) -> str:
        self.rows[booking.id] = booking
        return booking.id

    async def compare_and_set_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        new: BookingStatus,
        fields: Mapping[str, Any],
    ) -> bool:
        self.cas_calls += 1
        current = self.rows.get(booking_id)
        if current is None or current.status is not expected:
            return False
        self.rows[booking_id] = replace(current, status=new, **fields)
        return True

    async def get(self, booking_id: str) -> Optional[Booking]:
        booking = self.rows.get(booking_id)
        await asyncio.sleep(0)
        return booking

    async def subscribe_active(self) -> AsyncIterator[Booking]:
        for booking in await self.list_active():
            yield booking

    async def list_active(self) -> list[Booking]:
        return [b for b in self.rows.values() if b.is_active]

    async def count_created_since(self, rider_id: str, since: datetime) -> int:
        return sum(
            1
            for b in self.rows.values()
            if b.rider_id == rider_id and b.created_at >= since
        )

    async def list_pending_created_before(self, cutoff: datetime) -> list[Booking]:
        return [
            b
            for b in self.rows.values()
            if b.status is BookingStatus.PENDING and b.created_at < cutoff
        ]


class InMemoryProfileStore(ProfileStore):
    def __init__(self, *riders: RiderTrust):
        self.riders = {r.rider_id: r for r in riders}
        self.outcomes: list[tuple[str, BookingOutcome]] = []

    async def get_trust(self, rider_id: str) -> Optional[RiderTrust]:
        return self.riders.get(rider_id)

    async def apply_booking_outcome(
        self, rider_id: str, outcome: BookingOutcome, at: datetime
    ) -> None:
        self.outcomes.append((rider_id, outcome))
        if rider_id in self.riders:
            self.riders[rider_id] = self.riders[rider_id].with_outcome(outcome, at)

    async def record_booking_created(self, rider_id: str, at: datetime) -> None:
        if rider_id in self.riders:
            self.riders[rider_id] = replace(self.riders[rider_id], last_booking_time=at)


class InMemoryChannelService(ChannelService):
    def __init__(self):
        self.channels: dict[str, str] = {}
        self.calls = 0

    async def ensure_channel(
        self, booking_id: str, rider_id: str, driver_id: str
    ) -> str:
        self.calls += 1
        return self.channels.setdefault(booking_id, f"chan-{booking_id}")


def make_booking(booking_id: str = "b1", **overrides) -> Booking:
    fields = dict(
        id=booking_id,
        rider_id="r1",
        pickup=PICKUP,
        dropoff=DROPOFF,
        created_at=T0,
        verification_code="1234",
        estimated_fare=25.0,
    )
    fields.update(overrides)
    return Booking(**fields)


def make_request(rider_id: str = "r1") -> BookingRequest:
    return BookingRequest(
        rider_id=rider_id,
        pickup=PICKUP,
        dropoff=DROPOFF,
        rider_name="Juan Dela Cruz",
        rider_phone="09171230001",
        pickup_label="Terminal",
        dropoff_label="Zabarte Rd",
    )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def booking_store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore(RiderTrust(rider_id="r1"))


@pytest.fixture
def channel_service() -> InMemoryChannelService:
    return InMemoryChannelService()


@pytest.fixture
def coordinator(booking_store, profile_store, channel_service, clock):
    return DispatchCoordinator(
        bookings=booking_store,
        profiles=profile_store,
        channels=channel_service,
        pricing=PricingEngine(),
        security=SecurityConfig(),
        clock=clock,
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh SQLite file, yield a session factory, dispose."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'toda.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield make_session_factory(engine)

    await engine.dispose()


async def add_rider(
    factory: async_sessionmaker[AsyncSession], rider_id: str = "r1", **fields
) -> None:
    values = dict(
        id=rider_id,
        name="Juan Dela Cruz",
        phone_number=f"0917{rider_id}",
        is_phone_verified=True,
    )
    values.update(fields)
    async with factory() as session:
        session.add(RiderModel(**values))
        await session.commit()
