"""
Booking lifecycle
=================

The only write path for a booking's status.  Each transition:

1. reads the booking,
2. asks the entity which status the transition leads to (raising
   ``InvalidTransitionError`` / ``ConflictError`` if illegal),
3. writes through ``BookingStore.compare_and_set_status`` conditioned on
   the status read in step 1.

If the conditional write loses, the booking is re-read.  A lost ``accept``
stops there: the caller gets the error matching the winner's change, so a
second ``accept`` always ends in ``ConflictError`` and the first driver's
assignment is never overwritten.  Any other transition is re-planned
against the stored status and written again while it is still legal, so a
rider's cancel that races a driver's accept cancels the accepted booking.

``complete`` and ``cancel`` then report the outcome to the profile store
in a separate write.  If that write fails the booking keeps its new status
and the error propagates; the rider's counters miss that one outcome.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from toda_dispatch.domain.entities import Booking
from toda_dispatch.domain.enums import (
    BookingOutcome,
    BookingStatus,
    CancelActor,
    Transition,
    ValidationOutcome,
)
from toda_dispatch.domain.errors import (
    BookingNotFoundError,
    ConflictError,
    ValidationError,
)
from toda_dispatch.services.ports import BookingStore, ProfileStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingLifecycle:
    def __init__(
        self,
        bookings: BookingStore,
        profiles: ProfileStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.bookings = bookings
        self.profiles = profiles
        self.clock = clock

    # ── Creation ──────────────────────────────────────────────────────

    async def create(self, draft: Booking, admission: ValidationOutcome) -> Booking:
        """Persist *draft* as a PENDING booking if admission allowed it."""
        if admission is not ValidationOutcome.VALID:
            raise ValidationError(admission)

        booking = replace(
            draft,
            status=BookingStatus.PENDING,
            assigned_driver_id=None,
            assigned_tricycle_id=None,
            updated_at=draft.created_at,
        )
        booking_id = await self.bookings.create(booking)
        booking = replace(booking, id=booking_id)
        await self.profiles.record_booking_created(booking.rider_id, booking.created_at)
        logger.info("Booking %s created for rider %s", booking.id, booking.rider_id)
        return booking

    # ── Transitions ───────────────────────────────────────────────────

    async def accept(
        self, booking_id: str, driver_id: str, tricycle_id: Optional[str] = None
    ) -> Booking:
        if not driver_id:
            raise ValueError("driver_id must not be empty")
        fields: dict[str, Any] = {"assigned_driver_id": driver_id}
        if tricycle_id:
            fields["assigned_tricycle_id"] = tricycle_id
        return await self._transition(booking_id, Transition.ACCEPT, fields)

    async def reject(self, booking_id: str) -> Booking:
        return await self._transition(booking_id, Transition.REJECT)

    async def start(self, booking_id: str) -> Booking:
        return await self._transition(booking_id, Transition.START)

    async def complete(
        self, booking_id: str, actual_fare: Optional[float] = None
    ) -> Booking:
        if actual_fare is not None and actual_fare < 0:
            raise ValueError("actual_fare must not be negative")
        booking = await self._transition(
            booking_id, Transition.COMPLETE, {"actual_fare": actual_fare}
        )
        await self._report_outcome(booking, BookingOutcome.COMPLETED)
        return booking

    async def cancel(self, booking_id: str, actor: CancelActor) -> Booking:
        booking = await self._transition(
            booking_id, Transition.CANCEL, {"cancelled_by": actor}
        )
        await self._report_outcome(booking, BookingOutcome.CANCELLED)
        return booking

    # ── Internals ─────────────────────────────────────────────────────

    async def _report_outcome(self, booking: Booking, outcome: BookingOutcome) -> None:
        try:
            await self.profiles.apply_booking_outcome(
                booking.rider_id, outcome, booking.updated_at
            )
        except Exception:
            logger.error(
                "Booking %s is %s but rider %s was not credited with it",
                booking.id,
                booking.status.value,
                booking.rider_id,
            )
            raise

    async def _load(self, booking_id: str) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    async def _transition(
        self,
        booking_id: str,
        transition: Transition,
        fields: Optional[dict[str, Any]] = None,
    ) -> Booking:
        booking = await self._load(booking_id)
        # Every lost write moves the booking at least one step along the
        # state machine, so it cannot be lost more times than there are states.
        for _ in range(len(BookingStatus)):
            target = booking.next_status(transition)

            changes: dict[str, Any] = dict(fields or {})
            if transition is Transition.COMPLETE and changes.get("actual_fare") is None:
                changes["actual_fare"] = booking.estimated_fare
            changes["updated_at"] = self.clock()

            written = await self.bookings.compare_and_set_status(
                booking_id, booking.status, target, changes
            )
            if written:
                logger.info(
                    "Booking %s: %s -> %s",
                    booking_id,
                    booking.status.value,
                    target.value,
                )
                return replace(booking, status=target, **changes)

            current = await self._load(booking_id)
            logger.info(
                "Lost race to %s booking %s (observed %s, now %s)",
                transition.value,
                booking_id,
                booking.status.value,
                current.status.value,
            )
            if transition is Transition.ACCEPT:
                # Raises the error matching whatever the winner did.
                current.next_status(transition)
                raise ConflictError(booking_id)
            booking = current

        raise ConflictError(booking_id)
