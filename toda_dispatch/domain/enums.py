"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.REJECTED, BookingStatus.CANCELLED}
)


class Transition(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


# State machine: (current status, requested transition) -> next status.
# Any pair not listed here is illegal.
BOOKING_TRANSITIONS: dict[tuple[BookingStatus, Transition], BookingStatus] = {
    (BookingStatus.PENDING, Transition.ACCEPT): BookingStatus.ACCEPTED,
    (BookingStatus.PENDING, Transition.REJECT): BookingStatus.REJECTED,
    (BookingStatus.PENDING, Transition.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.ACCEPTED, Transition.START): BookingStatus.IN_PROGRESS,
    (BookingStatus.ACCEPTED, Transition.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.ACCEPTED, Transition.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.IN_PROGRESS, Transition.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.IN_PROGRESS, Transition.CANCEL): BookingStatus.CANCELLED,
}


class ValidationOutcome(str, enum.Enum):
    VALID = "VALID"
    PHONE_NOT_VERIFIED = "PHONE_NOT_VERIFIED"
    USER_BLOCKED = "USER_BLOCKED"
    LOW_TRUST_SCORE = "LOW_TRUST_SCORE"
    TOO_SOON_SINCE_LAST_BOOKING = "TOO_SOON_SINCE_LAST_BOOKING"
    HIGH_CANCELLATION_RATE = "HIGH_CANCELLATION_RATE"
    TOO_MANY_BOOKINGS = "TOO_MANY_BOOKINGS"


class BookingOutcome(str, enum.Enum):
    """What the rider profile is told when a booking reaches a terminal state."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CancelActor(str, enum.Enum):
    RIDER = "RIDER"
    DRIVER = "DRIVER"
    OPERATOR = "OPERATOR"
