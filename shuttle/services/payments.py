"""
Payment Settlement Gateway
==========================

Turns PayFast ITNs (instant transaction notifications, delivered at least
once) into credited balances exactly once.

State machine per payment transaction::

    PENDING -> COMPLETED | FAILED | CANCELLED      (terminal)

``handle_notification`` only ever acts on a transaction that is still
PENDING, read under a row lock.  A re-delivered notification finds no
pending row and is reported as ``PaymentTransactionNotFound`` with
``already_settled=True``; nothing is credited twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shuttle.config import settings
from shuttle.domain import payfast
from shuttle.domain.entities import ensure_transition
from shuttle.domain.enums import PAYMENT_TRANSITIONS, LedgerEntryType, PaymentStatus
from shuttle.domain.errors import (
    NotFoundError,
    PaymentTransactionNotFound,
    ValidationError,
)
from shuttle.infrastructure.models import PaymentTransactionModel
from shuttle.infrastructure.unit_of_work import UnitOfWork
from shuttle.services.booking import load_actor
from shuttle.services.effects import SideEffects
from shuttle.services.ledger import CreditLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseInitiation:
    transaction: PaymentTransactionModel
    payment_url: str
    package_name: str


def _config_from_settings() -> payfast.PayFastConfig:
    return payfast.PayFastConfig.from_settings(settings)


class PaymentService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        effects: SideEffects,
        config_provider: Callable[[], payfast.PayFastConfig] = _config_from_settings,
    ):
        self._session_factory = session_factory
        self._effects = effects
        self._config_provider = config_provider

    async def initiate_purchase(self, account_id: int, package_id: int) -> PurchaseInitiation:
        config = self._config_provider()

        async with UnitOfWork(self._session_factory) as uow:
            account = await load_actor(uow, account_id)
            package = await uow.credits.get_package(package_id)
            if package is None or not package.is_active:
                raise NotFoundError("Credit package not found or inactive")

            merchant_txn_id = payfast.generate_payment_id()
            data = payfast.prepare_payment_data(
                config,
                amount=package.price,
                item_name=f"Credit Package: {package.name}",
                item_description=f"{package.credits} credits for {package.name}",
                payment_id=merchant_txn_id,
                account_id=account.id,
                package_id=package.id,
            )
            signature = payfast.generate_signature(data, config.passphrase)

            txn = await uow.payments.create(
                PaymentTransactionModel(
                    account_id=account.id,
                    package_id=package.id,
                    merchant_txn_id=merchant_txn_id,
                    status=PaymentStatus.PENDING,
                    credits=package.credits,
                    amount=package.price,
                    signature=signature,
                )
            )
            logger.info(
                "Account %d initiated payment %s for %s (R%s)",
                account.id,
                merchant_txn_id,
                package.name,
                package.price,
            )
            url = payfast.payment_url(config, data, signature)
            package_name = package.name

        return PurchaseInitiation(txn, url, package_name)

    async def handle_notification(self, payload: Mapping[str, str]) -> PaymentStatus:
        """Validate and apply one ITN; returns the transaction's new status."""
        config = self._config_provider()
        itn = {key: str(value) for key, value in payload.items()}
        merchant_txn_id = itn.get("m_payment_id")
        gateway_status = itn.get("payment_status")
        logger.info("Received ITN for %s (status %s)", merchant_txn_id, gateway_status)

        payfast.validate_itn(itn, config)
        if not merchant_txn_id or not gateway_status:
            raise ValidationError("Missing required fields")
        new_status = payfast.map_gateway_status(gateway_status)

        async with UnitOfWork(self._session_factory) as uow:
            txn = await uow.payments.get_pending_for_update(merchant_txn_id)
            if txn is None:
                existing = await uow.payments.get_by_merchant_txn_id(merchant_txn_id)
                raise PaymentTransactionNotFound(
                    f"No pending payment {merchant_txn_id}",
                    already_settled=existing is not None,
                )

            if new_status == PaymentStatus.PENDING:
                logger.info("Payment %s still pending at gateway", merchant_txn_id)
                return PaymentStatus.PENDING

            txn.status = ensure_transition(txn.status, new_status, PAYMENT_TRANSITIONS)
            txn.gateway_payment_id = itn.get("pf_payment_id")
            txn.itn_data = itn
            txn.completed_at = datetime.now(timezone.utc)

            if new_status == PaymentStatus.COMPLETED:
                await CreditLedger(uow.credits).credit(
                    txn.account_id,
                    LedgerEntryType.PURCHASE,
                    txn.credits,
                    f"PayFast payment: {itn.get('item_name', '')} - "
                    f"Payment ID: {txn.gateway_payment_id}",
                )
                uow.after_commit(
                    partial(
                        self._effects.payment_settled,
                        {
                            "merchant_txn_id": txn.merchant_txn_id,
                            "account_id": txn.account_id,
                            "credits": txn.credits,
                            "amount": str(txn.amount),
                        },
                    )
                )
                logger.info(
                    "Payment %s settled: %d credits to account %d",
                    merchant_txn_id,
                    txn.credits,
                    txn.account_id,
                )
            else:
                logger.info(
                    "Payment %s %s - no credits added",
                    merchant_txn_id,
                    new_status.value.lower(),
                )

        return new_status

    async def get_transaction(
        self, merchant_txn_id: str, account_id: int
    ) -> PaymentTransactionModel:
        async with UnitOfWork(self._session_factory) as uow:
            actor = await uow.accounts.get_by_id(account_id)
            txn = await uow.payments.get_by_merchant_txn_id(merchant_txn_id)
            if txn is None or actor is None or (
                txn.account_id != actor.id and not actor.is_admin
            ):
                raise NotFoundError("Payment not found")
            return txn
