"""
SQLAlchemy ORM models.

Tables
------
* ``riders``         -- passenger profiles with the trust counters
* ``bookings``       -- one row per ride request, never deleted
* ``chat_channels``  -- rider/driver channel opened on acceptance

Indexes
-------
* **B-Tree** on ``bookings.status`` for the active-booking feed and the
  expiry sweep, and on ``(rider_id, created_at)`` for the daily
  booking count used by admission.
* **Unique** on ``chat_channels.booking_id`` so channel creation is
  idempotent even under concurrent calls.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)

from .database import Base
from toda_dispatch.domain.enums import BookingStatus, CancelActor


class RiderModel(Base):
    __tablename__ = "riders"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    phone_number = Column(String(32), unique=True, nullable=False)
    is_phone_verified = Column(Boolean, default=False, nullable=False)

    total_bookings = Column(Integer, default=0, nullable=False)
    completed_bookings = Column(Integer, default=0, nullable=False)
    cancelled_bookings = Column(Integer, default=0, nullable=False)
    trust_score = Column(Float, default=100.0, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    last_booking_at = Column(DateTime(timezone=True), nullable=True)


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)
    rider_id = Column(String(64), ForeignKey("riders.id"), nullable=False)
    rider_name = Column(String(120), default="", nullable=False)
    rider_phone = Column(String(32), default="", nullable=False)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    pickup_label = Column(String(255), default="", nullable=False)
    dropoff_label = Column(String(255), default="", nullable=False)

    distance_km = Column(Float, default=0.0, nullable=False)
    estimated_fare = Column(Float, default=0.0, nullable=False)
    actual_fare = Column(Float, nullable=True)

    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    assigned_driver_id = Column(String(64), nullable=True)
    assigned_tricycle_id = Column(String(64), nullable=True)
    cancelled_by = Column(Enum(CancelActor), nullable=True)
    verification_code = Column(String(8), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_rider_created", "rider_id", "created_at"),
    )


class ChatChannelModel(Base):
    __tablename__ = "chat_channels"

    id = Column(String(64), primary_key=True)
    booking_id = Column(
        String(64), ForeignKey("bookings.id"), unique=True, nullable=False
    )
    rider_id = Column(String(64), nullable=False)
    driver_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
