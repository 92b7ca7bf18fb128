"""
Domain entities and value objects.

* ``Booking`` is immutable: every lifecycle transition produces a new value
  via ``dataclasses.replace``.  Status never changes any other way.
* ``RiderTrust`` is the read-only view of a rider's history that admission
  runs against; ``with_outcome`` is how a profile store derives the next
  record after a booking ends.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from .distance import check_coordinate
from .enums import (
    BOOKING_TRANSITIONS,
    BookingOutcome,
    BookingStatus,
    CancelActor,
    Transition,
)
from .errors import ConflictError, InvalidTransitionError

MAX_TRUST_SCORE = 100.0


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        check_coordinate(self.latitude, self.longitude)


@dataclass(frozen=True)
class SecurityConfig:
    max_bookings_per_day: int = 3
    min_time_between_bookings: timedelta = timedelta(minutes=30)
    max_cancellation_rate: float = 0.3
    min_trust_score: float = 50.0

    def __post_init__(self) -> None:
        if self.max_bookings_per_day < 1:
            raise ValueError("max_bookings_per_day must be at least 1")
        if self.min_time_between_bookings < timedelta(0):
            raise ValueError("min_time_between_bookings must not be negative")
        if not 0.0 <= self.max_cancellation_rate <= 1.0:
            raise ValueError("max_cancellation_rate must be within 0.0-1.0")
        if not 0.0 <= self.min_trust_score <= MAX_TRUST_SCORE:
            raise ValueError("min_trust_score must be within 0-100")


@dataclass(frozen=True)
class TrustPolicy:
    completion_reward: float = 1.0
    cancellation_penalty: float = 5.0


@dataclass(frozen=True)
class RiderTrust:
    rider_id: str
    total_bookings: int = 0
    completed_bookings: int = 0
    cancelled_bookings: int = 0
    trust_score: float = MAX_TRUST_SCORE
    is_blocked: bool = False
    last_booking_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        if min(
            self.total_bookings, self.completed_bookings, self.cancelled_bookings
        ) < 0:
            raise ValueError("booking counters must not be negative")
        if self.completed_bookings + self.cancelled_bookings > self.total_bookings:
            raise ValueError("completed + cancelled bookings exceed the total")
        if not 0.0 <= self.trust_score <= MAX_TRUST_SCORE:
            raise ValueError("trust_score must be within 0-100")

    @property
    def cancellation_rate(self) -> float:
        if self.total_bookings == 0:
            return 0.0
        return self.cancelled_bookings / self.total_bookings

    def with_outcome(
        self,
        outcome: BookingOutcome,
        at: datetime,
        policy: TrustPolicy = TrustPolicy(),
    ) -> RiderTrust:
        """Return the record as it stands after a booking ended with *outcome*."""
        if outcome is BookingOutcome.COMPLETED:
            score = min(MAX_TRUST_SCORE, self.trust_score + policy.completion_reward)
            return replace(
                self,
                total_bookings=self.total_bookings + 1,
                completed_bookings=self.completed_bookings + 1,
                trust_score=score,
                last_booking_time=at,
            )
        score = max(0.0, self.trust_score - policy.cancellation_penalty)
        return replace(
            self,
            total_bookings=self.total_bookings + 1,
            cancelled_bookings=self.cancelled_bookings + 1,
            trust_score=score,
            last_booking_time=at,
        )


# ── Entities ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Booking:
    id: str
    rider_id: str
    pickup: Coordinate
    dropoff: Coordinate
    created_at: datetime
    verification_code: str
    rider_name: str = ""
    rider_phone: str = ""
    pickup_label: str = ""
    dropoff_label: str = ""
    distance_km: float = 0.0
    estimated_fare: float = 0.0
    actual_fare: Optional[float] = None
    status: BookingStatus = BookingStatus.PENDING
    assigned_driver_id: Optional[str] = None
    assigned_tricycle_id: Optional[str] = None
    cancelled_by: Optional[CancelActor] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.estimated_fare < 0:
            raise ValueError("estimated_fare must not be negative")

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    def next_status(self, transition: Transition) -> BookingStatus:
        """Status *transition* leads to from here, or raise if it is illegal.

        Accepting a booking some driver already holds is a conflict rather
        than a programming error: it is the normal outcome of losing the
        race for it.
        """
        if (
            transition is Transition.ACCEPT
            and self.status is BookingStatus.ACCEPTED
        ):
            raise ConflictError(self.id)
        try:
            return BOOKING_TRANSITIONS[(self.status, transition)]
        except KeyError:
            raise InvalidTransitionError(self.status, transition) from None
