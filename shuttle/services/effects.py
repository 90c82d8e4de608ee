"""
Best-effort collaborators run after a unit of work commits.

* **Audit log**      -- a row in ``audit_logs`` written in its own session.
* **Calendar sync**  -- a ``calendar.sync`` event for the trip.
* **Notifications**  -- ``booking.*``, ``refund.issued``, ``payment.settled``
  and ``trip.cancelled`` events for the e-mail / in-app dispatchers.

Every call here swallows and logs its own failure, so one broken
collaborator never stops the others and never reaches the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shuttle.infrastructure.events import RedisEventPublisher
from shuttle.infrastructure.models import AuditLogModel
from shuttle.infrastructure.repositories import AuditRepository

logger = logging.getLogger(__name__)


class SideEffects:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: Optional[RedisEventPublisher] = None,
    ):
        self._session_factory = session_factory
        self._publisher = publisher or RedisEventPublisher()

    async def audit(
        self,
        *,
        account_id: Optional[int],
        action: str,
        resource: str,
        resource_id: Any,
        new_values: Optional[dict[str, Any]] = None,
        description: Optional[str] = None,
        success: bool = True,
    ) -> None:
        try:
            async with self._session_factory() as session:
                await AuditRepository(session).add(
                    AuditLogModel(
                        account_id=account_id,
                        action=action,
                        resource=resource,
                        resource_id=str(resource_id),
                        new_values=new_values,
                        description=description
                        or f"{action.title()} {resource} {resource_id}",
                        success=success,
                    )
                )
                await session.commit()
        except Exception:
            logger.exception("Failed to create audit log for %s %s", resource, resource_id)

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        try:
            await self._publisher.publish(topic, payload)
        except Exception:
            logger.exception("Failed to publish %s event", topic)

    # ── Booking engine ────────────────────────────────────────────

    async def booking_created(
        self, reservation: dict[str, Any], refunds: Iterable[dict[str, Any]] = ()
    ) -> None:
        await self.publish("booking.created", reservation)
        await self.publish("calendar.sync", {"trip_id": reservation["trip_id"]})
        for refund in refunds:
            await self.publish("refund.issued", refund)
        await self.audit(
            account_id=reservation["account_id"],
            action="CREATE",
            resource="reservation",
            resource_id=reservation["id"],
            new_values=reservation,
        )

    async def booking_cancelled(self, reservation: dict[str, Any], refunded: int) -> None:
        await self.publish("booking.cancelled", {**reservation, "refunded": refunded})
        await self.publish("calendar.sync", {"trip_id": reservation["trip_id"]})
        await self.audit(
            account_id=reservation["account_id"],
            action="CANCEL",
            resource="reservation",
            resource_id=reservation["id"],
            new_values={"status": reservation["status"], "refunded": refunded},
        )

    async def trip_cancelled(
        self, actor_id: int, trip_id: int, cancelled: list[dict[str, Any]]
    ) -> None:
        await self.publish("trip.cancelled", {"trip_id": trip_id, "reservations": cancelled})
        await self.publish("calendar.sync", {"trip_id": trip_id})
        await self.audit(
            account_id=actor_id,
            action="CANCEL",
            resource="trip",
            resource_id=trip_id,
            new_values={"cancelled_reservations": len(cancelled)},
        )

    # ── Ledger / payments ─────────────────────────────────────────

    async def payment_settled(self, payment: dict[str, Any]) -> None:
        await self.publish("payment.settled", payment)
        await self.audit(
            account_id=payment["account_id"],
            action="SETTLE",
            resource="payment",
            resource_id=payment["merchant_txn_id"],
            new_values=payment,
        )

    async def credits_adjusted(
        self, actor_id: int, account_id: int, amount: int, description: str
    ) -> None:
        await self.audit(
            account_id=actor_id,
            action="ADJUST",
            resource="credits",
            resource_id=account_id,
            new_values={"amount": amount},
            description=description,
        )
