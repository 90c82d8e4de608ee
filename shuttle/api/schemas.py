"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from shuttle.domain.enums import TripStatus


# ── Requests ──────────────────────────────────────────────────────────


class ReservationCreateRequest(BaseModel):
    trip_id: int
    pickup_location_id: int
    dropoff_location_id: int
    rider_id: Optional[int] = Field(
        None, description="Book for a rider profile owned by the account."
    )


class PurchaseRequest(BaseModel):
    package_id: int


class TierIn(BaseModel):
    passenger_count: int = Field(..., ge=1)
    cost_per_person: int = Field(..., ge=0)


class LocationCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    address: str = Field(..., min_length=1, max_length=255)
    default_duration_minutes: Optional[int] = Field(None, ge=1)
    pricing_tiers: list[TierIn] = []


class PricingTiersRequest(BaseModel):
    pricing_tiers: list[TierIn]


class TripCreateRequest(BaseModel):
    destination_id: int
    start_time: datetime
    end_time: datetime
    max_passengers: int = Field(4, ge=1, le=60)

    @model_validator(mode="after")
    def _ends_after_start(self) -> "TripCreateRequest":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TripStatusRequest(BaseModel):
    status: TripStatus


class CreditAdjustRequest(BaseModel):
    account_id: int
    amount: int = Field(..., description="Signed; negative removes credits.")
    reason: str = Field(..., min_length=1, max_length=200)


class PackageCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    credits: int = Field(..., gt=0)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


# ── Responses ─────────────────────────────────────────────────────────


class ReservationResponse(BaseModel):
    id: int
    trip_id: int
    account_id: int
    rider_id: Optional[int] = None
    pickup_location_id: int
    dropoff_location_id: int
    passenger_count: int
    credits_cost: int
    original_cost: Optional[int] = None
    status: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CancellationResponse(BaseModel):
    reservation: ReservationResponse
    refunded: int


class PricingQuote(BaseModel):
    cost_per_person: int
    total_cost: int
    passenger_count: int
    savings: Optional[int] = None

    model_config = {"from_attributes": True}


class PricingRow(BaseModel):
    passengers: int
    cost_per_person: int
    total_cost: int
    savings: Optional[int] = None


class TripPricingResponse(BaseModel):
    trip_id: int
    destination: str
    current_passengers: int
    seats_remaining: int
    has_dynamic_pricing: bool
    quote: PricingQuote
    table: list[PricingRow]

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    destination_id: int
    start_time: datetime
    end_time: datetime
    max_passengers: int
    status: str

    model_config = {"from_attributes": True}


class TripCancellationResponse(BaseModel):
    trip: TripResponse
    reservations_cancelled: int
    credits_refunded: int

    model_config = {"from_attributes": True}


class TierResponse(BaseModel):
    passenger_count: int
    cost_per_person: int

    model_config = {"from_attributes": True}


class LocationResponse(BaseModel):
    id: int
    name: str
    address: str
    default_duration_minutes: Optional[int] = None
    pricing_tiers: list[TierResponse] = []

    model_config = {"from_attributes": True}


class LedgerEntryResponse(BaseModel):
    id: int
    type: str
    amount: int
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CreditSummaryResponse(BaseModel):
    account_id: int
    credits: int
    unlimited: bool
    entries: list[LedgerEntryResponse]

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    account_id: int
    credits: int


class PackageResponse(BaseModel):
    id: int
    name: str
    credits: int
    price: Decimal
    is_active: bool

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    merchant_txn_id: str
    account_id: int
    package_id: Optional[int] = None
    status: str
    credits: int
    amount: Decimal
    gateway_payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PurchaseResponse(BaseModel):
    payment: PaymentResponse
    payment_url: str
    package_name: str


class BalanceMismatchResponse(BaseModel):
    account_id: int
    cached: int
    ledger_total: int

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
