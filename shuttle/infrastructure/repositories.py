"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``*_for_update`` queries take row locks
(``SELECT ... FOR UPDATE``) and refresh any copy already in the identity
map, so checks made after them see committed state.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AccountModel,
    AuditLogModel,
    CreditBalanceModel,
    CreditPackageModel,
    LedgerEntryModel,
    LocationModel,
    PaymentTransactionModel,
    PricingTierModel,
    ReservationModel,
    RiderModel,
    TripModel,
)
from shuttle.domain.enums import PaymentStatus, ReservationStatus


class AccountRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, account: AccountModel) -> AccountModel:
        self.session.add(account)
        await self.session.flush()
        return account

    async def get_by_id(self, account_id: int) -> Optional[AccountModel]:
        return await self.session.get(AccountModel, account_id)

    async def get_rider(self, rider_id: int, account_id: int) -> Optional[RiderModel]:
        result = await self.session.execute(
            select(RiderModel).where(
                RiderModel.id == rider_id, RiderModel.account_id == account_id
            )
        )
        return result.scalar_one_or_none()


class LocationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, location: LocationModel) -> LocationModel:
        self.session.add(location)
        await self.session.flush()
        return location

    async def get_by_id(self, location_id: int) -> Optional[LocationModel]:
        return await self.session.get(LocationModel, location_id)

    async def get_tiers(self, location_id: int) -> list[PricingTierModel]:
        result = await self.session.execute(
            select(PricingTierModel)
            .where(PricingTierModel.location_id == location_id)
            .order_by(PricingTierModel.passenger_count)
        )
        return list(result.scalars().all())

    async def replace_tiers(
        self, location: LocationModel, tiers: list[tuple[int, int]]
    ) -> list[PricingTierModel]:
        location.pricing_tiers.clear()
        await self.session.flush()
        location.pricing_tiers.extend(
            PricingTierModel(passenger_count=count, cost_per_person=cost)
            for count, cost in sorted(tiers)
        )
        await self.session.flush()
        return list(location.pricing_tiers)


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_for_update(self, trip_id: int) -> Optional[TripModel]:
        """Lock the trip row for the rest of the unit of work."""
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class ReservationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, reservation: ReservationModel) -> ReservationModel:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def get_by_id(self, reservation_id: int) -> Optional[ReservationModel]:
        return await self.session.get(ReservationModel, reservation_id)

    async def get_confirmed_on_trip(self, trip_id: int) -> list[ReservationModel]:
        result = await self.session.execute(
            select(ReservationModel)
            .where(
                ReservationModel.trip_id == trip_id,
                ReservationModel.status == ReservationStatus.CONFIRMED,
            )
            .order_by(ReservationModel.created_at, ReservationModel.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_passengers(self, trip_id: int) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(ReservationModel.passenger_count), 0)).where(
                ReservationModel.trip_id == trip_id,
                ReservationModel.status == ReservationStatus.CONFIRMED,
            )
        )
        return int(result.scalar() or 0)

    async def find_confirmed(
        self, trip_id: int, account_id: int, rider_id: int | None
    ) -> Optional[ReservationModel]:
        rider_clause = (
            ReservationModel.rider_id.is_(None)
            if rider_id is None
            else ReservationModel.rider_id == rider_id
        )
        result = await self.session.execute(
            select(ReservationModel)
            .where(
                ReservationModel.trip_id == trip_id,
                ReservationModel.account_id == account_id,
                rider_clause,
                ReservationModel.status == ReservationStatus.CONFIRMED,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()


class CreditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_balance(self, account_id: int) -> Optional[CreditBalanceModel]:
        result = await self.session.execute(
            select(CreditBalanceModel).where(CreditBalanceModel.account_id == account_id)
        )
        return result.scalar_one_or_none()

    async def get_balance_for_update(self, account_id: int) -> CreditBalanceModel:
        """Locked balance row; created at zero if the account has none yet."""
        result = await self.session.execute(
            select(CreditBalanceModel)
            .where(CreditBalanceModel.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            balance = CreditBalanceModel(account_id=account_id, credits=0)
            self.session.add(balance)
            await self.session.flush()
        return balance

    async def add_entry(self, entry: LedgerEntryModel) -> LedgerEntryModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_entries(
        self, account_id: int, limit: int | None = None
    ) -> list[LedgerEntryModel]:
        query = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.account_id == account_id)
            .order_by(LedgerEntryModel.created_at.desc(), LedgerEntryModel.id.desc())
        )
        if limit:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def sum_entries(self, account_id: int) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(LedgerEntryModel.amount), 0)).where(
                LedgerEntryModel.account_id == account_id
            )
        )
        return int(result.scalar() or 0)

    async def balance_mismatches(self) -> list[tuple[int, int, int]]:
        """``(account_id, cached credits, ledger sum)`` for every drifted account."""
        totals = (
            select(
                LedgerEntryModel.account_id.label("account_id"),
                func.sum(LedgerEntryModel.amount).label("total"),
            )
            .group_by(LedgerEntryModel.account_id)
            .subquery()
        )
        ledger_total = func.coalesce(totals.c.total, 0)
        result = await self.session.execute(
            select(CreditBalanceModel.account_id, CreditBalanceModel.credits, ledger_total)
            .outerjoin(totals, totals.c.account_id == CreditBalanceModel.account_id)
            .where(CreditBalanceModel.credits != ledger_total)
            .order_by(CreditBalanceModel.account_id)
        )
        mismatches = [(row[0], row[1], int(row[2])) for row in result.all()]

        # entries without any cached balance row
        orphaned = await self.session.execute(
            select(totals.c.account_id, totals.c.total)
            .outerjoin(
                CreditBalanceModel, CreditBalanceModel.account_id == totals.c.account_id
            )
            .where(CreditBalanceModel.id.is_(None), totals.c.total != 0)
        )
        mismatches.extend((row[0], 0, int(row[1])) for row in orphaned.all())
        return mismatches

    async def get_package(self, package_id: int) -> Optional[CreditPackageModel]:
        return await self.session.get(CreditPackageModel, package_id)

    async def create_package(self, package: CreditPackageModel) -> CreditPackageModel:
        self.session.add(package)
        await self.session.flush()
        return package


class PaymentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, txn: PaymentTransactionModel) -> PaymentTransactionModel:
        self.session.add(txn)
        await self.session.flush()
        return txn

    async def get_by_merchant_txn_id(
        self, merchant_txn_id: str
    ) -> Optional[PaymentTransactionModel]:
        result = await self.session.execute(
            select(PaymentTransactionModel).where(
                PaymentTransactionModel.merchant_txn_id == merchant_txn_id
            )
        )
        return result.scalar_one_or_none()

    async def get_pending_for_update(
        self, merchant_txn_id: str
    ) -> Optional[PaymentTransactionModel]:
        """The transaction, locked, only while it is still PENDING."""
        result = await self.session.execute(
            select(PaymentTransactionModel)
            .where(
                PaymentTransactionModel.merchant_txn_id == merchant_txn_id,
                PaymentTransactionModel.status == PaymentStatus.PENDING,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class AuditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, entry: AuditLogModel) -> AuditLogModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for(self, resource: str, resource_id: str) -> list[AuditLogModel]:
        result = await self.session.execute(
            select(AuditLogModel)
            .where(
                AuditLogModel.resource == resource,
                AuditLogModel.resource_id == resource_id,
            )
            .order_by(AuditLogModel.id)
        )
        return list(result.scalars().all())
