"""
Error taxonomy for the dispatch core.

* ``ValidationError``        -- admission refused; retry once the condition clears.
* ``InvalidTransitionError`` -- illegal lifecycle move; a bug or a lost race, never retried.
* ``ConflictError``          -- another driver already took the booking.
* ``StoreUnavailableError``  -- transient backing-store failure; retry policy
  belongs to the caller.
"""

from __future__ import annotations

from .enums import BookingStatus, Transition, ValidationOutcome


class DispatchError(Exception):
    """Base class for every error raised by the dispatch core."""


class InvalidCoordinateError(DispatchError, ValueError):
    """Latitude or longitude outside the valid range."""


class ValidationError(DispatchError):
    def __init__(self, reason: ValidationOutcome):
        self.reason = reason
        super().__init__(f"Booking refused: {reason.value}")


class InvalidTransitionError(DispatchError):
    def __init__(self, current: BookingStatus, attempted: Transition):
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted.value} a booking in status {current.value}"
        )


class ConflictError(DispatchError):
    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} was already taken")


class BookingNotFoundError(DispatchError):
    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class StoreUnavailableError(DispatchError):
    """The backing store could not be reached."""
