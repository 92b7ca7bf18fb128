"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from toda_dispatch.domain.entities import Booking, Coordinate, RiderTrust
from toda_dispatch.domain.enums import CancelActor
from toda_dispatch.domain.pricing import FareBreakdown


# ── Requests ──────────────────────────────────────────────────────────


class Point(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


class BookingCreateRequest(BaseModel):
    rider_id: str = Field(..., min_length=1, max_length=64)
    rider_name: str = Field("", max_length=120)
    rider_phone: str = Field("", max_length=32)
    pickup: Point
    dropoff: Point
    pickup_label: str = Field("", max_length=255)
    dropoff_label: str = Field("", max_length=255)


class QuoteRequest(BaseModel):
    pickup: Point
    dropoff: Point
    driver_location: Optional[Point] = None


class AcceptRequest(BaseModel):
    driver_id: str = Field(..., min_length=1, max_length=64)
    tricycle_id: Optional[str] = Field(None, max_length=64)


class CompleteRequest(BaseModel):
    actual_fare: Optional[float] = Field(None, ge=0)


class CancelRequest(BaseModel):
    actor: CancelActor = CancelActor.RIDER


# ── Responses ─────────────────────────────────────────────────────────


class BookingResponse(BaseModel):
    id: str
    rider_id: str
    rider_name: str
    rider_phone: str
    pickup: Point
    dropoff: Point
    pickup_label: str
    dropoff_label: str
    distance_km: float
    estimated_fare: float
    actual_fare: Optional[float] = None
    status: str
    assigned_driver_id: Optional[str] = None
    assigned_tricycle_id: Optional[str] = None
    cancelled_by: Optional[str] = None
    verification_code: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> BookingResponse:
        return cls(
            id=booking.id,
            rider_id=booking.rider_id,
            rider_name=booking.rider_name,
            rider_phone=booking.rider_phone,
            pickup=Point(lat=booking.pickup.latitude, lng=booking.pickup.longitude),
            dropoff=Point(lat=booking.dropoff.latitude, lng=booking.dropoff.longitude),
            pickup_label=booking.pickup_label,
            dropoff_label=booking.dropoff_label,
            distance_km=booking.distance_km,
            estimated_fare=booking.estimated_fare,
            actual_fare=booking.actual_fare,
            status=booking.status.value,
            assigned_driver_id=booking.assigned_driver_id,
            assigned_tricycle_id=booking.assigned_tricycle_id,
            cancelled_by=booking.cancelled_by.value if booking.cancelled_by else None,
            verification_code=booking.verification_code,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class FareBreakdownResponse(BaseModel):
    trip_distance_km: float
    driver_to_pickup_km: float
    trip_fare: float
    driver_travel_fee: float
    total_fare: float

    @classmethod
    def from_breakdown(cls, breakdown: FareBreakdown) -> FareBreakdownResponse:
        return cls(
            trip_distance_km=breakdown.trip_distance_km,
            driver_to_pickup_km=breakdown.driver_to_pickup_km,
            trip_fare=breakdown.trip_fare,
            driver_travel_fee=breakdown.driver_travel_fee,
            total_fare=breakdown.total_fare,
        )


class RiderTrustResponse(BaseModel):
    rider_id: str
    total_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    cancellation_rate: float
    trust_score: float
    is_blocked: bool
    last_booking_time: Optional[datetime] = None
    admission: str

    @classmethod
    def from_trust(cls, trust: RiderTrust, admission: str) -> RiderTrustResponse:
        return cls(
            rider_id=trust.rider_id,
            total_bookings=trust.total_bookings,
            completed_bookings=trust.completed_bookings,
            cancelled_bookings=trust.cancelled_bookings,
            cancellation_rate=round(trust.cancellation_rate, 4),
            trust_score=trust.trust_score,
            is_blocked=trust.is_blocked,
            last_booking_time=trust.last_booking_time,
            admission=admission,
        )


class ChannelResponse(BaseModel):
    booking_id: str
    channel_id: str


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    reason: Optional[str] = None
