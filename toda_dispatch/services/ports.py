"""
Collaborator contracts the dispatch core is written against.

Concrete adapters live in ``toda_dispatch.infrastructure``; tests provide
in-memory versions.  Adapters raise ``StoreUnavailableError`` when the
backing service cannot be reached and never retry on their own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncIterator, Mapping, Optional

from toda_dispatch.domain.entities import Booking, RiderTrust
from toda_dispatch.domain.enums import BookingOutcome, BookingStatus


class BookingStore(ABC):
    @abstractmethod
    async def create(self, booking: Booking) -> str:
        """Persist a new booking and return its id."""

    @abstractmethod
    async def compare_and_set_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        new: BookingStatus,
        fields: Mapping[str, Any],
    ) -> bool:
        """Write *new* status and *fields* only if the stored status is *expected*.

        Returns ``False`` without writing anything when the precondition
        does not hold (or the booking does not exist).
        """

    @abstractmethod
    async def get(self, booking_id: str) -> Optional[Booking]: ...

    @abstractmethod
    def subscribe_active(self) -> AsyncIterator[Booking]:
        """Current active bookings, then every later update, including the
        move into a terminal status so consumers can drop the booking."""

    @abstractmethod
    async def list_active(self) -> list[Booking]: ...

    @abstractmethod
    async def count_created_since(self, rider_id: str, since: datetime) -> int: ...

    @abstractmethod
    async def list_pending_created_before(self, cutoff: datetime) -> list[Booking]: ...


class ProfileStore(ABC):
    @abstractmethod
    async def get_trust(self, rider_id: str) -> Optional[RiderTrust]:
        """Trust view of a phone-verified rider, ``None`` if there is none."""

    @abstractmethod
    async def apply_booking_outcome(
        self, rider_id: str, outcome: BookingOutcome, at: datetime
    ) -> None: ...

    @abstractmethod
    async def record_booking_created(self, rider_id: str, at: datetime) -> None: ...


class ChannelService(ABC):
    @abstractmethod
    async def ensure_channel(
        self, booking_id: str, rider_id: str, driver_id: str
    ) -> str:
        """Return the channel for *booking_id*, creating it on first call."""
