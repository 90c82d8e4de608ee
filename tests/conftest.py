"""
Shared test fixtures.

Every test gets its own SQLite file (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  A file rather than ``:memory:`` lets several
connections share the database, which the concurrency tests need; writers
are serialised by ``BEGIN IMMEDIATE`` exactly as in ``build_engine``.
Redis is replaced by an ``AsyncMock`` publisher.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shuttle.domain.payfast import PayFastConfig
from shuttle.domain.enums import AccountRole, AccountStatus, LedgerEntryType, TripStatus
from shuttle.infrastructure.database import Base, build_engine, build_session_factory
from shuttle.infrastructure.models import (
    AccountModel,
    CreditPackageModel,
    LocationModel,
    PricingTierModel,
    RiderModel,
    TripModel,
)
from shuttle.infrastructure.repositories import CreditRepository
from shuttle.services.admin import AdminService
from shuttle.services.booking import BookingService
from shuttle.services.credits import CreditService
from shuttle.services.effects import SideEffects
from shuttle.services.ledger import CreditLedger
from shuttle.services.payments import PaymentService

TEST_PAYFAST = PayFastConfig(
    merchant_id="10000100",
    merchant_key="46f0cd694581a",
    passphrase="jt7NOE43FZPn",
    sandbox=True,
    return_url="https://shuttle.test/payment/success",
    cancel_url="https://shuttle.test/payment/cancel",
    notify_url="https://shuttle.test/api/v1/payments/notify",
)


class Factory:
    """Creates committed fixture rows through the real session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._seq = 0

    async def _save(self, *objects):
        async with self.session_factory() as session:
            session.add_all(objects)
            await session.commit()
        return objects[0]

    async def account(
        self,
        credits: int = 0,
        role: AccountRole = AccountRole.USER,
        status: AccountStatus = AccountStatus.ACTIVE,
    ) -> AccountModel:
        self._seq += 1
        account = await self._save(
            AccountModel(
                name=f"Account {self._seq}",
                email=f"account{self._seq}@example.com",
                role=role,
                status=status,
            )
        )
        if credits:
            async with self.session_factory() as session:
                await CreditLedger(CreditRepository(session)).credit(
                    account.id, LedgerEntryType.PURCHASE, credits, "Test credits"
                )
                await session.commit()
        return account

    async def admin(self) -> AccountModel:
        return await self.account(role=AccountRole.ADMIN)

    async def rider(self, account: AccountModel) -> RiderModel:
        return await self._save(RiderModel(account_id=account.id, name="Dependent"))

    async def location(self, tiers: dict[int, int] | None = None) -> LocationModel:
        self._seq += 1
        return await self._save(
            LocationModel(
                name=f"Location {self._seq}",
                address=f"{self._seq} Test Street",
                pricing_tiers=[
                    PricingTierModel(passenger_count=count, cost_per_person=cost)
                    for count, cost in sorted((tiers or {}).items())
                ],
            )
        )

    async def trip(
        self,
        destination: LocationModel,
        max_passengers: int = 4,
        status: TripStatus = TripStatus.SCHEDULED,
    ) -> TripModel:
        start = datetime.now(timezone.utc) + timedelta(days=1)
        return await self._save(
            TripModel(
                destination_id=destination.id,
                start_time=start,
                end_time=start + timedelta(hours=1),
                max_passengers=max_passengers,
                status=status,
            )
        )

    async def package(
        self,
        credits: int = 100,
        price: Decimal = Decimal("99.00"),
        active: bool = True,
    ) -> CreditPackageModel:
        self._seq += 1
        return await self._save(
            CreditPackageModel(
                name=f"Package {self._seq}",
                credits=credits,
                price=price,
                is_active=active,
            )
        )

    async def ledger_state(self, account_id: int) -> tuple[int, int]:
        """``(cached balance, sum of ledger entries)`` for one account."""
        async with self.session_factory() as session:
            credits = CreditRepository(session)
            balance = await credits.get_balance(account_id)
            return (balance.credits if balance else 0), await credits.sum_entries(account_id)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh SQLite file, then dispose of the engine."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
def publisher() -> AsyncMock:
    publisher = AsyncMock()
    publisher.publish = AsyncMock(return_value=1)
    return publisher


@pytest.fixture
def effects(session_factory, publisher) -> SideEffects:
    return SideEffects(session_factory, publisher)


@pytest.fixture
def factory(session_factory) -> Factory:
    return Factory(session_factory)


@pytest.fixture
def booking(session_factory, effects) -> BookingService:
    return BookingService(session_factory, effects)


@pytest.fixture
def payments(session_factory, effects) -> PaymentService:
    return PaymentService(session_factory, effects, lambda: TEST_PAYFAST)


@pytest.fixture
def admin_service(session_factory, effects) -> AdminService:
    return AdminService(session_factory, effects)


@pytest.fixture
def credit_service(session_factory) -> CreditService:
    return CreditService(session_factory)


@pytest_asyncio.fixture
async def airport(factory) -> LocationModel:
    """Destination priced 100 / 90 / 80 / 70 for 1-4 passengers."""
    return await factory.location({1: 100, 2: 90, 3: 80, 4: 70})


@pytest_asyncio.fixture
async def pickup(factory) -> LocationModel:
    return await factory.location()


@pytest.fixture
def payfast_config() -> PayFastConfig:
    return TEST_PAYFAST
