"""
Trust-gated booking admission.

Rules are checked in a fixed order and the first failure wins:

1. no trust record (phone not verified)
2. rider blocked
3. trust score below the minimum
4. too soon since the last booking
5. cancellation rate above the maximum
6. too many bookings in the last ``BOOKING_WINDOW``

The booking window is a rolling 24 hours ending at ``now``; the caller
counts the rider's bookings in it and passes the count in.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from .entities import RiderTrust, SecurityConfig
from .enums import ValidationOutcome

BOOKING_WINDOW = timedelta(hours=24)


def validate(
    trust: Optional[RiderTrust],
    config: SecurityConfig,
    now: datetime,
    bookings_in_window: int = 0,
) -> ValidationOutcome:
    if trust is None:
        return ValidationOutcome.PHONE_NOT_VERIFIED

    if trust.is_blocked:
        return ValidationOutcome.USER_BLOCKED

    if trust.trust_score < config.min_trust_score:
        return ValidationOutcome.LOW_TRUST_SCORE

    if (
        trust.last_booking_time is not None
        and now - trust.last_booking_time < config.min_time_between_bookings
    ):
        return ValidationOutcome.TOO_SOON_SINCE_LAST_BOOKING

    if trust.cancellation_rate > config.max_cancellation_rate:
        return ValidationOutcome.HIGH_CANCELLATION_RATE

    if bookings_in_window >= config.max_bookings_per_day:
        return ValidationOutcome.TOO_MANY_BOOKINGS

    return ValidationOutcome.VALID


def window_start(now: datetime) -> datetime:
    """Earliest ``created_at`` that still counts towards the daily limit."""
    return now - BOOKING_WINDOW
