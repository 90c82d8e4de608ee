"""Read side of the credit ledger for account holders."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shuttle.infrastructure.models import LedgerEntryModel
from shuttle.infrastructure.unit_of_work import UnitOfWork
from shuttle.services.booking import load_actor
from shuttle.services.ledger import CreditLedger


@dataclass(frozen=True)
class CreditSummary:
    account_id: int
    credits: int
    unlimited: bool
    entries: list[LedgerEntryModel]


class CreditService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def summary(self, account_id: int, limit: int = 50) -> CreditSummary:
        async with UnitOfWork(self._session_factory) as uow:
            account = await load_actor(uow, account_id)
            ledger = CreditLedger(uow.credits)
            return CreditSummary(
                account_id=account.id,
                credits=await ledger.balance(account.id),
                unlimited=account.is_admin,
                entries=await ledger.history(account.id, limit=limit),
            )
