"""
SQLAlchemy ORM models.

Tables
------
* ``accounts``             -- booking accounts (users and admins)
* ``riders``               -- dependent profiles an account books for
* ``locations``            -- pickup points and destinations
* ``pricing_tiers``        -- per-destination (passenger count -> price) table
* ``trips``                -- scheduled departures with a seat capacity
* ``reservations``         -- one seat held on a trip
* ``credit_balances``      -- cached per-account credit balance
* ``ledger_entries``       -- append-only signed credit movements
* ``credit_packages``      -- purchasable credit bundles
* ``payment_transactions`` -- external gateway purchases
* ``audit_logs``           -- best-effort audit trail

Indexes
-------
* **B-Tree** on ``status`` and the foreign keys used by the booking engine
  (``trip_id``, ``account_id``) and on ``merchant_txn_id`` for settlement.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from shuttle.domain.entities import OriginalCost, original_cost_from, record_first, Recorded
from shuttle.domain.enums import (
    AccountRole,
    AccountStatus,
    LedgerEntryType,
    PaymentStatus,
    ReservationStatus,
    TripStatus,
)


class AccountModel(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=True)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(Enum(AccountRole), default=AccountRole.USER, nullable=False)
    status = Column(Enum(AccountStatus), default=AccountStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    @property
    def is_suspended(self) -> bool:
        return self.status == AccountStatus.SUSPENDED


class RiderModel(Base):
    __tablename__ = "riders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    name = Column(String(120), nullable=False)
    phone = Column(String(40), nullable=True)

    __table_args__ = (Index("idx_riders_account", "account_id"),)


class LocationModel(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    address = Column(String(255), nullable=False)
    default_duration_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    pricing_tiers = relationship(
        "PricingTierModel",
        order_by="PricingTierModel.passenger_count",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class PricingTierModel(Base):
    __tablename__ = "pricing_tiers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    passenger_count = Column(Integer, nullable=False)
    cost_per_person = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("location_id", "passenger_count", name="uq_tier_location_count"),
    )


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    destination_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    max_passengers = Column(Integer, default=4, nullable=False)
    status = Column(Enum(TripStatus), default=TripStatus.SCHEDULED, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    destination = relationship("LocationModel", lazy="selectin")

    __table_args__ = (
        Index("idx_trips_status", "status"),
        Index("idx_trips_start", "start_time"),
    )


class ReservationModel(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    rider_id = Column(Integer, ForeignKey("riders.id"), nullable=True)
    pickup_location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    dropoff_location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    passenger_count = Column(Integer, default=1, nullable=False)
    credits_cost = Column(Integer, nullable=False)
    # Set once, never overwritten; see ``record_original_cost``
    original_cost = Column(Integer, nullable=True)
    status = Column(
        Enum(ReservationStatus), default=ReservationStatus.CONFIRMED, nullable=False
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_reservations_trip_status", "trip_id", "status"),
        Index("idx_reservations_account", "account_id"),
    )

    @property
    def original_cost_state(self) -> OriginalCost:
        return original_cost_from(self.original_cost)

    def record_original_cost(self, value: int) -> None:
        state = record_first(self.original_cost_state, value)
        if isinstance(state, Recorded):
            self.original_cost = state.value


class CreditBalanceModel(Base):
    __tablename__ = "credit_balances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), unique=True, nullable=False)
    credits = Column(Integer, default=0, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class LedgerEntryModel(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    type = Column(Enum(LedgerEntryType), nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_ledger_account", "account_id"),
        Index("idx_ledger_type", "type"),
    )


class CreditPackageModel(Base):
    __tablename__ = "credit_packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), unique=True, nullable=False)
    credits = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PaymentTransactionModel(Base):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    package_id = Column(Integer, ForeignKey("credit_packages.id"), nullable=True)
    merchant_txn_id = Column(String(64), unique=True, nullable=False)
    gateway_payment_id = Column(String(64), nullable=True)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    credits = Column(Integer, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    signature = Column(String(64), nullable=True)
    itn_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_payments_merchant_txn", "merchant_txn_id"),
        Index("idx_payments_status", "status"),
    )


class AuditLogModel(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, nullable=True)
    action = Column(String(40), nullable=False)
    resource = Column(String(40), nullable=False)
    resource_id = Column(String(64), nullable=True)
    new_values = Column(JSON, nullable=True)
    description = Column(String(255), nullable=True)
    success = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_audit_resource", "resource", "resource_id"),)
