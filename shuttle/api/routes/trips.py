"""
Trip endpoints
==============

GET /api/v1/trips/{trip_id}/pricing -- tier table and the price of the next seat
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from shuttle.api.dependencies import get_booking_service
from shuttle.api.middleware import limiter
from shuttle.api.schemas import TripPricingResponse
from shuttle.services.booking import BookingService

router = APIRouter(prefix="/trips", tags=["trips"])


@router.get(
    "/{trip_id}/pricing",
    response_model=TripPricingResponse,
    summary="Pricing for a trip",
)
@limiter.limit("100/minute")
async def get_trip_pricing(
    request: Request,
    trip_id: int,
    passenger_count: Optional[int] = Query(
        None, ge=1, description="Defaults to current occupancy + 1."
    ),
    service: BookingService = Depends(get_booking_service),
):
    return await service.quote(trip_id, passenger_count)
