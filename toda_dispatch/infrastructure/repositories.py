"""
Repository Pattern -- SQL adapters for the dispatch core's store contracts.

Each adapter receives an ``async_sessionmaker`` and opens one short
session per operation, so every call is a single bounded round-trip.
Connection-level failures surface as ``StoreUnavailableError``.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .feed import BookingFeed
from .models import BookingModel, ChatChannelModel, RiderModel
from toda_dispatch.domain.entities import (
    Booking,
    Coordinate,
    RiderTrust,
    TrustPolicy,
)
from toda_dispatch.domain.enums import (
    TERMINAL_STATUSES,
    BookingOutcome,
    BookingStatus,
)
from toda_dispatch.domain.errors import StoreUnavailableError
from toda_dispatch.services.ports import BookingStore, ChannelService, ProfileStore

logger = logging.getLogger(__name__)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@asynccontextmanager
async def _session(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    try:
        async with factory() as session:
            yield session
    except (OperationalError, InterfaceError) as exc:
        raise StoreUnavailableError(str(exc.orig or exc)) from exc


def _to_booking(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        rider_id=row.rider_id,
        rider_name=row.rider_name,
        rider_phone=row.rider_phone,
        pickup=Coordinate(row.pickup_lat, row.pickup_lng),
        dropoff=Coordinate(row.dropoff_lat, row.dropoff_lng),
        pickup_label=row.pickup_label,
        dropoff_label=row.dropoff_label,
        distance_km=row.distance_km,
        estimated_fare=row.estimated_fare,
        actual_fare=row.actual_fare,
        status=BookingStatus(row.status),
        assigned_driver_id=row.assigned_driver_id,
        assigned_tricycle_id=row.assigned_tricycle_id,
        cancelled_by=row.cancelled_by,
        verification_code=row.verification_code,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def _to_trust(row: RiderModel) -> RiderTrust:
    return RiderTrust(
        rider_id=row.id,
        total_bookings=row.total_bookings,
        completed_bookings=row.completed_bookings,
        cancelled_bookings=row.cancelled_bookings,
        trust_score=row.trust_score,
        is_blocked=row.is_blocked,
        last_booking_time=_utc(row.last_booking_at),
    )


class SqlBookingStore(BookingStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: Optional[BookingFeed] = None,
    ):
        self.session_factory = session_factory
        self.feed = feed

    async def create(self, booking: Booking) -> str:
        booking_id = booking.id or uuid.uuid4().hex
        row = BookingModel(
            id=booking_id,
            rider_id=booking.rider_id,
            rider_name=booking.rider_name,
            rider_phone=booking.rider_phone,
            pickup_lat=booking.pickup.latitude,
            pickup_lng=booking.pickup.longitude,
            dropoff_lat=booking.dropoff.latitude,
            dropoff_lng=booking.dropoff.longitude,
            pickup_label=booking.pickup_label,
            dropoff_label=booking.dropoff_label,
            distance_km=booking.distance_km,
            estimated_fare=booking.estimated_fare,
            status=booking.status,
            verification_code=booking.verification_code,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )
        async with _session(self.session_factory) as session:
            session.add(row)
            await session.commit()
        await self._publish(replace(booking, id=booking_id))
        return booking_id

    async def compare_and_set_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        new: BookingStatus,
        fields: Mapping[str, Any],
    ) -> bool:
        """Single conditional UPDATE; zero affected rows means the race was lost."""
        stmt = (
            update(BookingModel)
            .where(BookingModel.id == booking_id, BookingModel.status == expected)
            .values(status=new, **fields)
            .execution_options(synchronize_session=False)
        )
        async with _session(self.session_factory) as session:
            result = await session.execute(stmt)
            await session.commit()
        if result.rowcount != 1:
            return False

        if self.feed is not None:
            booking = await self.get(booking_id)
            if booking is not None:
                await self._publish(booking)
        return True

    async def get(self, booking_id: str) -> Optional[Booking]:
        async with _session(self.session_factory) as session:
            row = await session.get(BookingModel, booking_id)
            return _to_booking(row) if row else None

    async def list_active(self) -> list[Booking]:
        async with _session(self.session_factory) as session:
            result = await session.execute(
                select(BookingModel)
                .where(BookingModel.status.not_in(list(TERMINAL_STATUSES)))
                .order_by(BookingModel.created_at)
            )
            return [_to_booking(row) for row in result.scalars().all()]

    async def subscribe_active(self) -> AsyncIterator[Booking]:
        """Active bookings now, then every later change to any booking.

        Changes into a terminal status are delivered too, once, so
        consumers can drop the booking.  Updates older than what was
        already yielded for a booking are skipped.
        """
        if self.feed is None:
            for booking in await self.list_active():
                yield booking
            return

        latest: dict[str, datetime] = {}
        async with self.feed.subscribe() as updates:
            for booking in await self.list_active():
                if booking.updated_at is not None:
                    latest[booking.id] = booking.updated_at
                yield booking
            async for booking in updates:
                stamp = booking.updated_at
                if stamp is not None:
                    if booking.id in latest and stamp < latest[booking.id]:
                        continue
                    latest[booking.id] = stamp
                yield booking

    async def count_created_since(self, rider_id: str, since: datetime) -> int:
        async with _session(self.session_factory) as session:
            result = await session.execute(
                select(func.count())
                .select_from(BookingModel)
                .where(
                    BookingModel.rider_id == rider_id,
                    BookingModel.created_at >= since,
                )
            )
            return result.scalar() or 0

    async def list_pending_created_before(self, cutoff: datetime) -> list[Booking]:
        async with _session(self.session_factory) as session:
            result = await session.execute(
                select(BookingModel)
                .where(
                    BookingModel.status == BookingStatus.PENDING,
                    BookingModel.created_at < cutoff,
                )
                .order_by(BookingModel.created_at)
            )
            return [_to_booking(row) for row in result.scalars().all()]

    async def _publish(self, booking: Booking) -> None:
        if self.feed is not None:
            await self.feed.publish(booking)


class SqlProfileStore(ProfileStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: TrustPolicy = TrustPolicy(),
    ):
        self.session_factory = session_factory
        self.policy = policy

    async def get_trust(self, rider_id: str) -> Optional[RiderTrust]:
        async with _session(self.session_factory) as session:
            row = await session.get(RiderModel, rider_id)
            if row is None or not row.is_phone_verified:
                return None
            return _to_trust(row)

    async def apply_booking_outcome(
        self, rider_id: str, outcome: BookingOutcome, at: datetime
    ) -> None:
        """Read-modify-write under ``SELECT ... FOR UPDATE``."""
        async with _session(self.session_factory) as session:
            result = await session.execute(
                select(RiderModel).where(RiderModel.id == rider_id).with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                logger.warning("No profile for rider %s; %s not recorded", rider_id, outcome.value)
                return

            updated = _to_trust(row).with_outcome(outcome, at, self.policy)
            row.total_bookings = updated.total_bookings
            row.completed_bookings = updated.completed_bookings
            row.cancelled_bookings = updated.cancelled_bookings
            row.trust_score = updated.trust_score
            row.last_booking_at = updated.last_booking_time
            await session.commit()
        logger.info(
            "Rider %s: booking %s, trust score now %.1f",
            rider_id,
            outcome.value,
            updated.trust_score,
        )

    async def record_booking_created(self, rider_id: str, at: datetime) -> None:
        async with _session(self.session_factory) as session:
            await session.execute(
                update(RiderModel)
                .where(RiderModel.id == rider_id)
                .values(last_booking_at=at)
                .execution_options(synchronize_session=False)
            )
            await session.commit()


class SqlChannelService(ChannelService):
    """Chat channels keyed by booking id; the unique index makes it idempotent."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _find(self, booking_id: str) -> Optional[str]:
        async with _session(self.session_factory) as session:
            result = await session.execute(
                select(ChatChannelModel.id).where(
                    ChatChannelModel.booking_id == booking_id
                )
            )
            return result.scalar_one_or_none()

    async def ensure_channel(
        self, booking_id: str, rider_id: str, driver_id: str
    ) -> str:
        existing = await self._find(booking_id)
        if existing is not None:
            return existing

        channel_id = uuid.uuid4().hex
        channel = ChatChannelModel(
            id=channel_id,
            booking_id=booking_id,
            rider_id=rider_id,
            driver_id=driver_id,
            created_at=datetime.now(timezone.utc),
        )
        try:
            async with _session(self.session_factory) as session:
                session.add(channel)
                await session.commit()
        except IntegrityError:
            # Created concurrently by another caller.
            existing = await self._find(booking_id)
            if existing is None:
                raise
            return existing
        logger.info("Chat channel %s created for booking %s", channel_id, booking_id)
        return channel_id
