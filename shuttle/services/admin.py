"""Administrator operations: locations, pricing tiers, packages and credit adjustments."""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shuttle.domain.errors import Forbidden, NotFoundError, ValidationError
from shuttle.infrastructure.models import (
    AccountModel,
    CreditPackageModel,
    LocationModel,
    PricingTierModel,
)
from shuttle.infrastructure.unit_of_work import UnitOfWork
from shuttle.services.booking import load_actor
from shuttle.services.effects import SideEffects
from shuttle.services.ledger import BalanceMismatch, CreditLedger

logger = logging.getLogger(__name__)


def _check_tiers(tiers: list[tuple[int, int]]) -> None:
    counts = [count for count, _ in tiers]
    if len(set(counts)) != len(counts):
        raise ValidationError("Duplicate passenger count in pricing tiers")
    for count, cost in tiers:
        if count < 1:
            raise ValidationError("Passenger count must be at least 1")
        if cost < 0:
            raise ValidationError("Cost per person cannot be negative")


async def require_admin(uow: UnitOfWork, account_id: int) -> AccountModel:
    actor = await load_actor(uow, account_id)
    if not actor.is_admin:
        raise Forbidden("Admin access required")
    return actor


class AdminService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        effects: SideEffects,
    ):
        self._session_factory = session_factory
        self._effects = effects

    async def create_location(
        self,
        account_id: int,
        *,
        name: str,
        address: str,
        default_duration_minutes: int | None = None,
        tiers: list[tuple[int, int]] | None = None,
    ) -> LocationModel:
        tiers = tiers or []
        _check_tiers(tiers)
        async with UnitOfWork(self._session_factory) as uow:
            actor = await require_admin(uow, account_id)
            location = await uow.locations.create(
                LocationModel(
                    name=name,
                    address=address,
                    default_duration_minutes=default_duration_minutes,
                    pricing_tiers=[
                        PricingTierModel(passenger_count=count, cost_per_person=cost)
                        for count, cost in sorted(tiers)
                    ],
                )
            )
            uow.after_commit(
                partial(
                    self._effects.audit,
                    account_id=actor.id,
                    action="CREATE",
                    resource="location",
                    resource_id=location.id,
                    new_values={"name": name, "tiers": dict(tiers)},
                )
            )
        return location

    async def set_pricing_tiers(
        self, account_id: int, location_id: int, tiers: list[tuple[int, int]]
    ) -> LocationModel:
        """Replace the destination's whole tier table."""
        _check_tiers(tiers)
        async with UnitOfWork(self._session_factory) as uow:
            actor = await require_admin(uow, account_id)
            location = await uow.locations.get_by_id(location_id)
            if location is None:
                raise NotFoundError("Location not found")
            await uow.locations.replace_tiers(location, tiers)
            logger.info("Location %d now has %d pricing tier(s)", location.id, len(tiers))
            uow.after_commit(
                partial(
                    self._effects.audit,
                    account_id=actor.id,
                    action="UPDATE",
                    resource="pricing_tiers",
                    resource_id=location.id,
                    new_values={str(count): cost for count, cost in tiers},
                )
            )
        return location

    async def create_package(
        self, account_id: int, *, name: str, credits: int, price: Decimal
    ) -> CreditPackageModel:
        if credits <= 0:
            raise ValidationError("Package must contain credits")
        if price <= 0:
            raise ValidationError("Package price must be positive")
        async with UnitOfWork(self._session_factory) as uow:
            actor = await require_admin(uow, account_id)
            package = await uow.credits.create_package(
                CreditPackageModel(name=name, credits=credits, price=price, is_active=True)
            )
            uow.after_commit(
                partial(
                    self._effects.audit,
                    account_id=actor.id,
                    action="CREATE",
                    resource="credit_package",
                    resource_id=package.id,
                    new_values={"name": name, "credits": credits, "price": str(price)},
                )
            )
        return package

    async def adjust_credits(
        self, account_id: int, target_account_id: int, amount: int, reason: str
    ) -> int:
        """Signed adjustment of another account's balance; returns the new balance."""
        async with UnitOfWork(self._session_factory) as uow:
            actor = await require_admin(uow, account_id)
            if await uow.accounts.get_by_id(target_account_id) is None:
                raise NotFoundError("Account not found")
            description = f"Admin adjustment: {reason}"
            ledger = CreditLedger(uow.credits)
            await ledger.adjust(target_account_id, amount, description)
            new_balance = await ledger.balance(target_account_id)
            uow.after_commit(
                partial(
                    self._effects.credits_adjusted,
                    actor.id,
                    target_account_id,
                    amount,
                    description,
                )
            )
        return new_balance

    async def reconcile(self, account_id: int) -> list[BalanceMismatch]:
        async with UnitOfWork(self._session_factory) as uow:
            await require_admin(uow, account_id)
            mismatches = await CreditLedger(uow.credits).reconcile()
        for mismatch in mismatches:
            logger.error(
                "Balance drift on account %d: cached %d, ledger %d",
                mismatch.account_id,
                mismatch.cached,
                mismatch.ledger_total,
            )
        return mismatches
