"""
Admin / observability endpoints
===============================

POST /api/v1/admin/locations                       -- create a location with tiers
PUT  /api/v1/admin/locations/{location_id}/pricing -- replace its pricing tiers
POST /api/v1/admin/trips                           -- schedule a trip
POST /api/v1/admin/trips/{trip_id}/cancel          -- cancel a trip and refund everyone
PATCH /api/v1/admin/trips/{trip_id}/status         -- start or complete a trip
POST /api/v1/admin/credits/adjust                  -- signed balance adjustment
POST /api/v1/admin/packages                        -- create a credit package
GET  /api/v1/admin/reconcile                       -- balances that drifted from the ledger
GET  /api/v1/admin/health                          -- simple health check

Every route except ``/health`` requires an admin account.
"""

from fastapi import APIRouter, Depends, Request

from shuttle.api.dependencies import (
    current_account_id,
    get_admin_service,
    get_booking_service,
)
from shuttle.api.middleware import limiter
from shuttle.api.schemas import (
    BalanceMismatchResponse,
    BalanceResponse,
    CreditAdjustRequest,
    HealthResponse,
    LocationCreateRequest,
    LocationResponse,
    PackageCreateRequest,
    PackageResponse,
    PricingTiersRequest,
    TripCancellationResponse,
    TripCreateRequest,
    TripResponse,
    TripStatusRequest,
)
from shuttle.services.admin import AdminService
from shuttle.services.booking import BookingService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/locations",
    status_code=201,
    response_model=LocationResponse,
    summary="Create a location",
)
@limiter.limit("100/minute")
async def create_location(
    request: Request,
    body: LocationCreateRequest,
    account_id: int = Depends(current_account_id),
    service: AdminService = Depends(get_admin_service),
):
    return await service.create_location(
        account_id,
        name=body.name,
        address=body.address,
        default_duration_minutes=body.default_duration_minutes,
        tiers=[(t.passenger_count, t.cost_per_person) for t in body.pricing_tiers],
    )


@router.put(
    "/locations/{location_id}/pricing",
    response_model=LocationResponse,
    summary="Replace a location's pricing tiers",
)
@limiter.limit("100/minute")
async def set_pricing_tiers(
    request: Request,
    location_id: int,
    body: PricingTiersRequest,
    account_id: int = Depends(current_account_id),
    service: AdminService = Depends(get_admin_service),
):
    return await service.set_pricing_tiers(
        account_id,
        location_id,
        [(t.passenger_count, t.cost_per_person) for t in body.pricing_tiers],
    )


@router.post(
    "/trips",
    status_code=201,
    response_model=TripResponse,
    summary="Schedule a trip",
)
@limiter.limit("100/minute")
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    account_id: int = Depends(current_account_id),
    service: BookingService = Depends(get_booking_service),
):
    return await service.create_trip(
        account_id,
        destination_id=body.destination_id,
        start_time=body.start_time,
        end_time=body.end_time,
        max_passengers=body.max_passengers,
    )


@router.post(
    "/trips/{trip_id}/cancel",
    response_model=TripCancellationResponse,
    summary="Cancel a trip",
    description="Cancels every confirmed reservation on the trip and refunds its holder.",
)
@limiter.limit("100/minute")
async def cancel_trip(
    request: Request,
    trip_id: int,
    account_id: int = Depends(current_account_id),
    service: BookingService = Depends(get_booking_service),
):
    result = await service.cancel_trip(trip_id, account_id)
    return TripCancellationResponse.model_validate(result)


@router.patch(
    "/trips/{trip_id}/status",
    response_model=TripResponse,
    summary="Start or complete a trip",
)
@limiter.limit("100/minute")
async def set_trip_status(
    request: Request,
    trip_id: int,
    body: TripStatusRequest,
    account_id: int = Depends(current_account_id),
    service: BookingService = Depends(get_booking_service),
):
    return await service.set_trip_status(trip_id, account_id, body.status)


@router.post(
    "/credits/adjust",
    response_model=BalanceResponse,
    summary="Adjust an account's credits",
)
@limiter.limit("100/minute")
async def adjust_credits(
    request: Request,
    body: CreditAdjustRequest,
    account_id: int = Depends(current_account_id),
    service: AdminService = Depends(get_admin_service),
):
    credits = await service.adjust_credits(
        account_id, body.account_id, body.amount, body.reason
    )
    return BalanceResponse(account_id=body.account_id, credits=credits)


@router.post(
    "/packages",
    status_code=201,
    response_model=PackageResponse,
    summary="Create a credit package",
)
@limiter.limit("100/minute")
async def create_package(
    request: Request,
    body: PackageCreateRequest,
    account_id: int = Depends(current_account_id),
    service: AdminService = Depends(get_admin_service),
):
    return await service.create_package(
        account_id, name=body.name, credits=body.credits, price=body.price
    )


@router.get(
    "/reconcile",
    response_model=list[BalanceMismatchResponse],
    summary="Accounts whose cached balance differs from the ledger",
)
@limiter.limit("100/minute")
async def reconcile(
    request: Request,
    account_id: int = Depends(current_account_id),
    service: AdminService = Depends(get_admin_service),
):
    mismatches = await service.reconcile(account_id)
    return [BalanceMismatchResponse.model_validate(m) for m in mismatches]


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
