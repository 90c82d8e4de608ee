"""
Credit Ledger
=============

Per-account balance plus an append-only log of signed entries.

Invariant: ``credit_balances.credits == SUM(ledger_entries.amount)`` for
every account.  Each balance change in this module is paired, in the same
unit of work, with exactly one new entry of the same signed amount.
Entries are never updated or deleted; corrections are new entries.

The balance row is locked (``FOR UPDATE``) before it is read, so two
concurrent debits cannot both pass the sufficiency check.  Administrators'
unlimited credit is decided by the callers; the ledger itself never lets a
balance go negative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from shuttle.domain.enums import LedgerEntryType
from shuttle.domain.errors import InsufficientCredits, ValidationError
from shuttle.infrastructure.models import CreditBalanceModel, LedgerEntryModel
from shuttle.infrastructure.repositories import CreditRepository

logger = logging.getLogger(__name__)

CREDIT_TYPES = frozenset(
    {
        LedgerEntryType.PURCHASE,
        LedgerEntryType.REFUND,
        LedgerEntryType.REFUND_ADJUSTMENT,
    }
)


@dataclass(frozen=True)
class BalanceMismatch:
    account_id: int
    cached: int
    ledger_total: int


class CreditLedger:
    def __init__(self, credits: CreditRepository):
        self.credits = credits

    async def debit(
        self,
        account_id: int,
        amount: int,
        description: str,
    ) -> LedgerEntryModel:
        if amount <= 0:
            raise ValidationError("Debit amount must be positive")
        balance = await self.credits.get_balance_for_update(account_id)
        if balance.credits < amount:
            raise InsufficientCredits()
        return await self._apply(balance, LedgerEntryType.USAGE, -amount, description)

    async def credit(
        self,
        account_id: int,
        entry_type: LedgerEntryType,
        amount: int,
        description: str,
    ) -> LedgerEntryModel:
        if entry_type not in CREDIT_TYPES:
            raise ValidationError(f"{entry_type.value} is not a credit entry type")
        if amount <= 0:
            raise ValidationError("Credit amount must be positive")
        balance = await self.credits.get_balance_for_update(account_id)
        return await self._apply(balance, entry_type, amount, description)

    async def adjust(
        self, account_id: int, amount: int, description: str
    ) -> LedgerEntryModel:
        """Signed admin adjustment; cannot take the balance below zero."""
        if amount == 0:
            raise ValidationError("Invalid amount")
        balance = await self.credits.get_balance_for_update(account_id)
        if balance.credits + amount < 0:
            raise InsufficientCredits("Cannot reduce credits below zero")
        return await self._apply(
            balance, LedgerEntryType.ADMIN_ADJUSTMENT, amount, description
        )

    async def balance(self, account_id: int) -> int:
        row = await self.credits.get_balance(account_id)
        return row.credits if row else 0

    async def history(self, account_id: int, limit: int = 50) -> list[LedgerEntryModel]:
        return await self.credits.list_entries(account_id, limit=limit)

    async def reconcile(self) -> list[BalanceMismatch]:
        return [
            BalanceMismatch(account_id, cached, total)
            for account_id, cached, total in await self.credits.balance_mismatches()
        ]

    async def _apply(
        self,
        balance: CreditBalanceModel,
        entry_type: LedgerEntryType,
        signed_amount: int,
        description: str,
    ) -> LedgerEntryModel:
        balance.credits += signed_amount
        entry = await self.credits.add_entry(
            LedgerEntryModel(
                account_id=balance.account_id,
                type=entry_type,
                amount=signed_amount,
                description=description,
            )
        )
        logger.info(
            "Ledger %s %+d for account %d (balance %d)",
            entry_type.value,
            signed_amount,
            balance.account_id,
            balance.credits,
        )
        return entry
