"""
Booking endpoints
=================

POST /api/v1/bookings                 -- request a ride (201, or 422 with the refusal reason)
POST /api/v1/bookings/quote           -- fare breakdown for a prospective trip
GET  /api/v1/bookings/active          -- every non-terminal booking
GET  /api/v1/bookings/{id}            -- current state of one booking
POST /api/v1/bookings/{id}/accept     -- driver takes the booking (409 if already taken)
POST /api/v1/bookings/{id}/reject     -- operator turns the request down
POST /api/v1/bookings/{id}/start      -- rider picked up
POST /api/v1/bookings/{id}/complete   -- trip finished
POST /api/v1/bookings/{id}/cancel     -- rider / driver / operator cancels
POST /api/v1/bookings/{id}/channel    -- (re)open the rider/driver chat channel
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from toda_dispatch.api.dependencies import get_coordinator
from toda_dispatch.api.middleware import limiter
from toda_dispatch.api.schemas import (
    AcceptRequest,
    BookingCreateRequest,
    BookingResponse,
    CancelRequest,
    ChannelResponse,
    CompleteRequest,
    ErrorResponse,
    FareBreakdownResponse,
    QuoteRequest,
)
from toda_dispatch.services.dispatch import BookingRequest, DispatchCoordinator

router = APIRouter(prefix="/bookings", tags=["bookings"])

_TRANSITION_ERRORS = {
    404: {"model": ErrorResponse, "description": "Booking not found"},
    409: {"model": ErrorResponse, "description": "Illegal transition or lost race"},
}


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Request a ride",
    responses={422: {"model": ErrorResponse, "description": "Booking refused"}},
)
@limiter.limit("30/minute")
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    booking = await coordinator.request_booking(
        BookingRequest(
            rider_id=body.rider_id,
            rider_name=body.rider_name,
            rider_phone=body.rider_phone,
            pickup=body.pickup.to_coordinate(),
            dropoff=body.dropoff.to_coordinate(),
            pickup_label=body.pickup_label,
            dropoff_label=body.dropoff_label,
        )
    )
    return BookingResponse.from_booking(booking)


@router.post(
    "/quote",
    response_model=FareBreakdownResponse,
    summary="Fare breakdown for a prospective trip",
)
@limiter.limit("100/minute")
async def quote_fare(
    request: Request,
    body: QuoteRequest,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    driver_location = (
        body.driver_location.to_coordinate() if body.driver_location else None
    )
    breakdown = coordinator.quote(
        body.pickup.to_coordinate(), body.dropoff.to_coordinate(), driver_location
    )
    return FareBreakdownResponse.from_breakdown(breakdown)


@router.get(
    "/active",
    response_model=list[BookingResponse],
    summary="List active bookings",
)
@limiter.limit("100/minute")
async def list_active_bookings(
    request: Request,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return [BookingResponse.from_booking(b) for b in await coordinator.active_bookings()]


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking status",
    responses={404: _TRANSITION_ERRORS[404]},
)
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    booking_id: str,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return BookingResponse.from_booking(await coordinator.get_booking(booking_id))


@router.post(
    "/{booking_id}/accept",
    response_model=BookingResponse,
    summary="Accept a pending booking",
    description=(
        "Assigns the driver and moves the booking to ACCEPTED.  Only one "
        "driver can win; every other accept gets 409.  Opens the chat "
        "channel between rider and driver."
    ),
    responses=_TRANSITION_ERRORS,
)
@limiter.limit("100/minute")
async def accept_booking(
    request: Request,
    booking_id: str,
    body: AcceptRequest,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    booking = await coordinator.accept(booking_id, body.driver_id, body.tricycle_id)
    return BookingResponse.from_booking(booking)


@router.post(
    "/{booking_id}/reject",
    response_model=BookingResponse,
    summary="Reject a pending booking",
    responses=_TRANSITION_ERRORS,
)
@limiter.limit("100/minute")
async def reject_booking(
    request: Request,
    booking_id: str,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return BookingResponse.from_booking(await coordinator.reject(booking_id))


@router.post(
    "/{booking_id}/start",
    response_model=BookingResponse,
    summary="Start an accepted trip",
    responses=_TRANSITION_ERRORS,
)
@limiter.limit("100/minute")
async def start_booking(
    request: Request,
    booking_id: str,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return BookingResponse.from_booking(await coordinator.start(booking_id))


@router.post(
    "/{booking_id}/complete",
    response_model=BookingResponse,
    summary="Complete a trip",
    responses=_TRANSITION_ERRORS,
)
@limiter.limit("100/minute")
async def complete_booking(
    request: Request,
    booking_id: str,
    body: Optional[CompleteRequest] = None,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    actual_fare = body.actual_fare if body else None
    return BookingResponse.from_booking(
        await coordinator.complete(booking_id, actual_fare)
    )


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    responses=_TRANSITION_ERRORS,
)
@limiter.limit("100/minute")
async def cancel_booking(
    request: Request,
    booking_id: str,
    body: Optional[CancelRequest] = None,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    actor = (body or CancelRequest()).actor
    return BookingResponse.from_booking(await coordinator.cancel(booking_id, actor))


@router.post(
    "/{booking_id}/channel",
    response_model=ChannelResponse,
    summary="Open the rider/driver chat channel (idempotent)",
    responses=_TRANSITION_ERRORS,
)
@limiter.limit("100/minute")
async def open_channel(
    request: Request,
    booking_id: str,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    channel_id = await coordinator.open_channel(booking_id)
    return ChannelResponse(booking_id=booking_id, channel_id=channel_id)
