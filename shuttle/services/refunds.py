"""
Retroactive Refund Distributor
==============================

Runs inside the booking unit of work, right after a new reservation is
stored.  When the new passenger unlocks a cheaper tier, every earlier
CONFIRMED reservation on the trip is brought down to the new per-person
price and the difference goes back to its holder as a
``REFUND_ADJUSTMENT`` ledger entry.

Per reservation (the new one excluded):

    refund = credits_cost - new_price
    refund > 0   -> credit the holder, credits_cost = new_price
    refund <= 0  -> nothing (refunds are never negative)

``original_cost`` is recorded once from the first price seen and never
overwritten.  The refund is taken against ``credits_cost`` (what the holder
has effectively paid so far), so a reservation refunded on an earlier pass
is only topped up by the further drop.  Running the pass twice is a no-op
the second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from shuttle.domain.enums import LedgerEntryType
from shuttle.domain.pricing import resolve_price
from shuttle.infrastructure.models import TripModel
from shuttle.services.ledger import CreditLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundLine:
    reservation_id: int
    account_id: int
    previous_cost: int
    new_cost: int
    amount: int
    credited: bool = True

    def as_event(self) -> dict:
        return {
            "reservation_id": self.reservation_id,
            "account_id": self.account_id,
            "original_cost": self.previous_cost,
            "new_cost": self.new_cost,
            "refund_amount": self.amount,
        }


@dataclass
class RefundResult:
    trip_id: int
    passenger_count: int
    cost_per_person: int
    refunds: list[RefundLine] = field(default_factory=list)

    @property
    def refunds_processed(self) -> int:
        return len(self.refunds)

    @property
    def total_refunded(self) -> int:
        return sum(line.amount for line in self.refunds if line.credited)


class RefundDistributor:
    def __init__(self, uow):
        self.uow = uow
        self.ledger = CreditLedger(uow.credits)

    async def redistribute(self, trip: TripModel, new_reservation_id: int) -> RefundResult:
        passengers = await self.uow.reservations.count_passengers(trip.id)
        destination = trip.destination
        new_price = resolve_price(destination.pricing_tiers, passengers)
        result = RefundResult(trip.id, passengers, new_price)

        logger.info(
            "Redistributing trip %d: %d passengers at %d per person",
            trip.id,
            passengers,
            new_price,
        )

        for reservation in await self.uow.reservations.get_confirmed_on_trip(trip.id):
            if reservation.id == new_reservation_id:
                if reservation.credits_cost != new_price:
                    logger.warning(
                        "Reservation %d charged %d but trip price is %d; correcting",
                        reservation.id,
                        reservation.credits_cost,
                        new_price,
                    )
                    reservation.record_original_cost(reservation.credits_cost)
                    reservation.credits_cost = new_price
                continue

            previous = reservation.credits_cost
            reservation.record_original_cost(previous)
            refund = previous - new_price
            if refund <= 0:
                continue

            holder = await self.uow.accounts.get_by_id(reservation.account_id)
            # admins were never debited, so there is nothing to give back
            credited = holder is None or not holder.is_admin
            if credited:
                await self.ledger.credit(
                    reservation.account_id,
                    LedgerEntryType.REFUND_ADJUSTMENT,
                    refund,
                    f"Price reduction refund for {destination.name} "
                    f"({passengers} passengers)",
                )
            reservation.credits_cost = new_price
            result.refunds.append(
                RefundLine(
                    reservation_id=reservation.id,
                    account_id=reservation.account_id,
                    previous_cost=previous,
                    new_cost=new_price,
                    amount=refund,
                    credited=credited,
                )
            )

        if result.refunds:
            logger.info(
                "Trip %d: %d refund(s) totalling %d credits",
                trip.id,
                result.refunds_processed,
                result.total_refunded,
            )
        return result
