"""Administrator operations against SQLite."""

from decimal import Decimal

import pytest
from sqlalchemy import update

from shuttle.domain.enums import LedgerEntryType
from shuttle.domain.errors import (
    Forbidden,
    InsufficientCredits,
    NotFoundError,
    ValidationError,
)
from shuttle.infrastructure.models import CreditBalanceModel
from shuttle.infrastructure.unit_of_work import UnitOfWork
from shuttle.services.ledger import BalanceMismatch


class TestLocations:
    @pytest.mark.asyncio
    async def test_create_with_tiers(self, admin_service, factory, session_factory):
        admin = await factory.admin()

        location = await admin_service.create_location(
            admin.id, name="Airport", address="Airport Rd", tiers=[(2, 90), (1, 100)]
        )

        async with UnitOfWork(session_factory) as uow:
            tiers = await uow.locations.get_tiers(location.id)
        assert [(t.passenger_count, t.cost_per_person) for t in tiers] == [(1, 100), (2, 90)]

    @pytest.mark.asyncio
    async def test_replace_tiers(self, admin_service, factory, session_factory, airport):
        admin = await factory.admin()

        await admin_service.set_pricing_tiers(admin.id, airport.id, [(1, 50), (3, 30)])

        async with UnitOfWork(session_factory) as uow:
            tiers = await uow.locations.get_tiers(airport.id)
        assert [(t.passenger_count, t.cost_per_person) for t in tiers] == [(1, 50), (3, 30)]

    @pytest.mark.parametrize(
        "tiers",
        [[(1, 100), (1, 90)], [(0, 100)], [(1, -5)]],
    )
    @pytest.mark.asyncio
    async def test_rejects_bad_tiers(self, admin_service, factory, airport, tiers):
        admin = await factory.admin()
        with pytest.raises(ValidationError):
            await admin_service.set_pricing_tiers(admin.id, airport.id, tiers)

    @pytest.mark.asyncio
    async def test_unknown_location(self, admin_service, factory):
        admin = await factory.admin()
        with pytest.raises(NotFoundError):
            await admin_service.set_pricing_tiers(admin.id, 9999, [(1, 10)])

    @pytest.mark.asyncio
    async def test_requires_admin(self, admin_service, factory):
        user = await factory.account()
        with pytest.raises(Forbidden):
            await admin_service.create_location(user.id, name="X", address="Y")


class TestPackages:
    @pytest.mark.asyncio
    async def test_create_package(self, admin_service, factory):
        admin = await factory.admin()
        package = await admin_service.create_package(
            admin.id, name="Starter", credits=100, price=Decimal("99.00")
        )
        assert package.id is not None
        assert package.is_active

    @pytest.mark.asyncio
    async def test_rejects_empty_package(self, admin_service, factory):
        admin = await factory.admin()
        with pytest.raises(ValidationError):
            await admin_service.create_package(
                admin.id, name="Empty", credits=0, price=Decimal("10.00")
            )


class TestCreditAdjustments:
    @pytest.mark.asyncio
    async def test_adjust_both_ways(self, admin_service, factory, session_factory):
        admin = await factory.admin()
        account = await factory.account(credits=50)

        assert await admin_service.adjust_credits(admin.id, account.id, 25, "Goodwill") == 75
        assert await admin_service.adjust_credits(admin.id, account.id, -70, "Correction") == 5
        assert await factory.ledger_state(account.id) == (5, 5)

        async with UnitOfWork(session_factory) as uow:
            latest = (await uow.credits.list_entries(account.id))[0]
        assert latest.type == LedgerEntryType.ADMIN_ADJUSTMENT
        assert latest.amount == -70
        assert latest.description == "Admin adjustment: Correction"

    @pytest.mark.asyncio
    async def test_cannot_go_negative(self, admin_service, factory):
        admin = await factory.admin()
        account = await factory.account(credits=10)

        with pytest.raises(InsufficientCredits):
            await admin_service.adjust_credits(admin.id, account.id, -11, "Too much")
        assert await factory.ledger_state(account.id) == (10, 10)

    @pytest.mark.asyncio
    async def test_zero_and_unknown_target(self, admin_service, factory):
        admin = await factory.admin()
        account = await factory.account()

        with pytest.raises(ValidationError):
            await admin_service.adjust_credits(admin.id, account.id, 0, "Nothing")
        with pytest.raises(NotFoundError):
            await admin_service.adjust_credits(admin.id, 9999, 5, "Ghost")

    @pytest.mark.asyncio
    async def test_adjustment_is_audited(self, admin_service, factory, session_factory):
        admin = await factory.admin()
        account = await factory.account()

        await admin_service.adjust_credits(admin.id, account.id, 40, "Promo")

        async with UnitOfWork(session_factory) as uow:
            [entry] = await uow.audit.list_for("credits", str(account.id))
        assert entry.action == "ADJUST"
        assert entry.account_id == admin.id
        assert entry.new_values == {"amount": 40}


class TestReconcile:
    @pytest.mark.asyncio
    async def test_reports_drift(self, admin_service, factory, session_factory):
        admin = await factory.admin()
        clean = await factory.account(credits=100)
        drifted = await factory.account(credits=100)
        async with session_factory() as session:
            await session.execute(
                update(CreditBalanceModel)
                .where(CreditBalanceModel.account_id == drifted.id)
                .values(credits=120)
            )
            await session.commit()

        mismatches = await admin_service.reconcile(admin.id)

        assert mismatches == [BalanceMismatch(drifted.id, 120, 100)]
        assert clean.id not in [m.account_id for m in mismatches]
