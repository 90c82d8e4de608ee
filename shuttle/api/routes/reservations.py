"""
Reservation endpoints
=====================

POST  /api/v1/reservations                  -- book one seat on a trip (201)
GET   /api/v1/reservations/{reservation_id} -- the reservation and its cost
PATCH /api/v1/reservations/{reservation_id}/cancel -- cancel and refund
"""

from fastapi import APIRouter, Depends, Request

from shuttle.api.dependencies import current_account_id, get_booking_service
from shuttle.api.middleware import limiter
from shuttle.api.schemas import (
    CancellationResponse,
    ErrorResponse,
    ReservationCreateRequest,
    ReservationResponse,
)
from shuttle.services.booking import BookingService

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post(
    "",
    status_code=201,
    response_model=ReservationResponse,
    summary="Book a seat on a trip",
    description=(
        "Debits the per-person price for the new passenger count. "
        "Earlier passengers on the trip are refunded down to the same price."
    ),
    responses={
        402: {"model": ErrorResponse, "description": "Insufficient credits"},
        409: {"model": ErrorResponse, "description": "Full, duplicate or not bookable"},
    },
)
@limiter.limit("100/minute")
async def create_reservation(
    request: Request,
    body: ReservationCreateRequest,
    account_id: int = Depends(current_account_id),
    service: BookingService = Depends(get_booking_service),
):
    return await service.create_reservation(
        account_id=account_id,
        trip_id=body.trip_id,
        pickup_location_id=body.pickup_location_id,
        dropoff_location_id=body.dropoff_location_id,
        rider_id=body.rider_id,
    )


@router.get(
    "/{reservation_id}",
    response_model=ReservationResponse,
    summary="Get a reservation",
)
@limiter.limit("100/minute")
async def get_reservation(
    request: Request,
    reservation_id: int,
    account_id: int = Depends(current_account_id),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_reservation(reservation_id, account_id)


@router.patch(
    "/{reservation_id}/cancel",
    response_model=CancellationResponse,
    summary="Cancel a reservation",
    description=(
        "Transitions a CONFIRMED reservation to CANCELLED and refunds what "
        "its holder currently pays. Other passengers keep their price."
    ),
)
@limiter.limit("100/minute")
async def cancel_reservation(
    request: Request,
    reservation_id: int,
    account_id: int = Depends(current_account_id),
    service: BookingService = Depends(get_booking_service),
):
    result = await service.cancel_reservation(reservation_id, account_id)
    return CancellationResponse(
        reservation=ReservationResponse.model_validate(result.reservation),
        refunded=result.refunded,
    )
