"""
Capacity / Booking Engine
=========================

``create_reservation`` runs as one unit of work:

1. Lock the trip row; it must exist and be SCHEDULED.
2. Reject a second CONFIRMED reservation for (trip, holder, rider).
3. Re-read occupancy under the lock; reject if the seat would overflow
   ``max_passengers``.
4. Price the seat at the tier for ``occupancy + 1`` passengers.
5. Debit the holder (admins and zero-price seats book without a debit).
6. Store the reservation with ``credits_cost = original_cost = price``.
7. Run the refund distributor for the earlier passengers.

Any failure rolls back all of it.  Calendar sync, notifications and audit
are registered as post-commit hooks and cannot affect the result.

Concurrency
-----------
The trip row lock (``SELECT ... FOR UPDATE`` on PostgreSQL,
``BEGIN IMMEDIATE`` on SQLite) serialises bookings and cancellations of
the same trip, so two concurrent requests can never both see the last
free seat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shuttle.domain.entities import Occupancy, ensure_transition
from shuttle.domain.enums import (
    RESERVATION_TRANSITIONS,
    TRIP_TRANSITIONS,
    LedgerEntryType,
    ReservationStatus,
    TripStatus,
)
from shuttle.domain.errors import (
    AccountSuspended,
    CapacityExceeded,
    DuplicateReservation,
    Forbidden,
    NotFoundError,
    TripNotBookable,
    ValidationError,
)
from shuttle.domain.pricing import (
    PricingInfo,
    has_dynamic_pricing,
    price_info,
    pricing_table,
    resolve_price,
)
from shuttle.infrastructure.models import AccountModel, ReservationModel, TripModel
from shuttle.infrastructure.unit_of_work import UnitOfWork
from shuttle.services.effects import SideEffects
from shuttle.services.ledger import CreditLedger
from shuttle.services.refunds import RefundDistributor

logger = logging.getLogger(__name__)

# One reservation holds one seat
SEATS_PER_RESERVATION = 1


@dataclass(frozen=True)
class Cancellation:
    reservation: ReservationModel
    refunded: int


@dataclass(frozen=True)
class TripCancellation:
    trip: TripModel
    reservations_cancelled: int
    credits_refunded: int


@dataclass(frozen=True)
class TripPricing:
    trip_id: int
    destination: str
    current_passengers: int
    seats_remaining: int
    has_dynamic_pricing: bool
    quote: PricingInfo
    table: list[dict]


def reservation_snapshot(reservation: ReservationModel) -> dict:
    return {
        "id": reservation.id,
        "trip_id": reservation.trip_id,
        "account_id": reservation.account_id,
        "rider_id": reservation.rider_id,
        "pickup_location_id": reservation.pickup_location_id,
        "dropoff_location_id": reservation.dropoff_location_id,
        "passenger_count": reservation.passenger_count,
        "credits_cost": reservation.credits_cost,
        "status": reservation.status.value,
    }


def has_departed(trip: TripModel, now: Optional[datetime] = None) -> bool:
    start = trip.start_time
    # SQLite hands back naive datetimes; they are stored as UTC
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return start <= (now or datetime.now(timezone.utc))


async def load_actor(uow: UnitOfWork, account_id: int) -> AccountModel:
    account = await uow.accounts.get_by_id(account_id)
    if account is None:
        raise NotFoundError("Account not found")
    if account.is_suspended:
        raise AccountSuspended()
    return account


class BookingService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        effects: SideEffects,
    ):
        self._session_factory = session_factory
        self._effects = effects

    async def create_reservation(
        self,
        *,
        account_id: int,
        trip_id: int,
        pickup_location_id: int,
        dropoff_location_id: int,
        rider_id: Optional[int] = None,
    ) -> ReservationModel:
        async with UnitOfWork(self._session_factory) as uow:
            account = await load_actor(uow, account_id)

            trip = await uow.trips.get_for_update(trip_id)
            if trip is None:
                raise NotFoundError("Trip not found")
            if trip.status != TripStatus.SCHEDULED:
                raise TripNotBookable(f"Trip is {trip.status.value.lower()}")

            if rider_id is not None and await uow.accounts.get_rider(rider_id, account.id) is None:
                raise NotFoundError("Rider not found")
            for location_id in (pickup_location_id, dropoff_location_id):
                if await uow.locations.get_by_id(location_id) is None:
                    raise NotFoundError("Location not found")

            if await uow.reservations.find_confirmed(trip.id, account.id, rider_id):
                who = "Rider is" if rider_id is not None else "You are"
                raise DuplicateReservation(f"{who} already booked for this trip")

            current = await uow.reservations.count_passengers(trip.id)
            occupancy = Occupancy(current, trip.max_passengers)
            if not occupancy.can_accommodate(SEATS_PER_RESERVATION):
                raise CapacityExceeded()

            destination = trip.destination
            price = resolve_price(destination.pricing_tiers, current + SEATS_PER_RESERVATION)
            logger.info(
                "Booking trip %d to %s: %d -> %d passengers, cost %d",
                trip.id,
                destination.name,
                current,
                current + SEATS_PER_RESERVATION,
                price,
            )

            if not account.is_admin and price > 0:
                await CreditLedger(uow.credits).debit(
                    account.id, price, f"Booking for {destination.name}"
                )

            reservation = ReservationModel(
                trip_id=trip.id,
                account_id=account.id,
                rider_id=rider_id,
                pickup_location_id=pickup_location_id,
                dropoff_location_id=dropoff_location_id,
                passenger_count=SEATS_PER_RESERVATION,
                credits_cost=price,
                status=ReservationStatus.CONFIRMED,
            )
            reservation.record_original_cost(price)
            await uow.reservations.create(reservation)

            refunds = await RefundDistributor(uow).redistribute(trip, reservation.id)

            uow.after_commit(
                partial(
                    self._effects.booking_created,
                    reservation_snapshot(reservation),
                    [line.as_event() for line in refunds.refunds if line.credited],
                )
            )

        return reservation

    async def get_reservation(self, reservation_id: int, account_id: int) -> ReservationModel:
        async with UnitOfWork(self._session_factory) as uow:
            actor = await uow.accounts.get_by_id(account_id)
            reservation = await uow.reservations.get_by_id(reservation_id)
            # other holders' reservations are reported as missing
            if reservation is None or actor is None or (
                reservation.account_id != actor.id and not actor.is_admin
            ):
                raise NotFoundError("Reservation not found")
            return reservation

    async def cancel_reservation(self, reservation_id: int, account_id: int) -> Cancellation:
        """
        Cancel a reservation and refund what its holder currently pays.

        The remaining passengers are not re-priced: their discount stays.
        Holders may only cancel before a SCHEDULED trip departs; admins may
        cancel at any time.
        """
        async with UnitOfWork(self._session_factory) as uow:
            actor = await load_actor(uow, account_id)
            reservation = await uow.reservations.get_by_id(reservation_id)
            if reservation is None or (
                reservation.account_id != actor.id and not actor.is_admin
            ):
                raise NotFoundError("Reservation not found")

            trip = await uow.trips.get_for_update(reservation.trip_id)
            if not actor.is_admin:
                if trip.status != TripStatus.SCHEDULED:
                    raise TripNotBookable(f"Trip is {trip.status.value.lower()}")
                if has_departed(trip):
                    raise TripNotBookable("Trip has already departed")
            await uow.session.refresh(reservation)
            reservation.status = ensure_transition(
                reservation.status, ReservationStatus.CANCELLED, RESERVATION_TRANSITIONS
            )
            refunded = await self._refund_cancelled(
                uow, reservation, f"Cancellation refund for reservation {reservation.id}"
            )

            uow.after_commit(
                partial(
                    self._effects.booking_cancelled,
                    reservation_snapshot(reservation),
                    refunded,
                )
            )

        return Cancellation(reservation, refunded)

    async def cancel_trip(self, trip_id: int, account_id: int) -> TripCancellation:
        async with UnitOfWork(self._session_factory) as uow:
            actor = await load_actor(uow, account_id)
            if not actor.is_admin:
                raise Forbidden("Admin access required")

            trip = await uow.trips.get_for_update(trip_id)
            if trip is None:
                raise NotFoundError("Trip not found")
            trip.status = ensure_transition(trip.status, TripStatus.CANCELLED, TRIP_TRANSITIONS)

            cancelled: list[dict] = []
            refunded_total = 0
            for reservation in await uow.reservations.get_confirmed_on_trip(trip.id):
                reservation.status = ReservationStatus.CANCELLED
                refunded_total += await self._refund_cancelled(
                    uow, reservation, "Refund for cancelled trip"
                )
                cancelled.append(reservation_snapshot(reservation))

            logger.info(
                "Trip %d cancelled: %d reservation(s), %d credits refunded",
                trip.id,
                len(cancelled),
                refunded_total,
            )
            uow.after_commit(
                partial(self._effects.trip_cancelled, actor.id, trip.id, cancelled)
            )

        return TripCancellation(trip, len(cancelled), refunded_total)

    async def set_trip_status(
        self, trip_id: int, account_id: int, status: TripStatus
    ) -> TripModel:
        """Move a trip along SCHEDULED -> IN_PROGRESS -> COMPLETED."""
        if status == TripStatus.CANCELLED:
            raise ValidationError("Use trip cancellation to cancel a trip")
        async with UnitOfWork(self._session_factory) as uow:
            actor = await load_actor(uow, account_id)
            if not actor.is_admin:
                raise Forbidden("Admin access required")

            trip = await uow.trips.get_for_update(trip_id)
            if trip is None:
                raise NotFoundError("Trip not found")
            previous = trip.status
            trip.status = ensure_transition(trip.status, status, TRIP_TRANSITIONS)
            logger.info("Trip %d: %s -> %s", trip.id, previous.value, status.value)
            uow.after_commit(
                partial(
                    self._effects.audit,
                    account_id=actor.id,
                    action="UPDATE",
                    resource="trip",
                    resource_id=trip.id,
                    new_values={"status": status.value},
                )
            )
        return trip

    async def create_trip(
        self,
        account_id: int,
        *,
        destination_id: int,
        start_time: datetime,
        end_time: datetime,
        max_passengers: int,
    ) -> TripModel:
        if end_time <= start_time:
            raise ValidationError("Trip must end after it starts")
        if max_passengers < 1:
            raise ValidationError("Trip needs at least one seat")

        async with UnitOfWork(self._session_factory) as uow:
            actor = await load_actor(uow, account_id)
            if not actor.is_admin:
                raise Forbidden("Admin access required")
            if await uow.locations.get_by_id(destination_id) is None:
                raise NotFoundError("Destination not found")
            trip = await uow.trips.create(
                TripModel(
                    destination_id=destination_id,
                    start_time=start_time,
                    end_time=end_time,
                    max_passengers=max_passengers,
                    status=TripStatus.SCHEDULED,
                )
            )
            uow.after_commit(
                partial(
                    self._effects.audit,
                    account_id=actor.id,
                    action="CREATE",
                    resource="trip",
                    resource_id=trip.id,
                    new_values={
                        "destination_id": destination_id,
                        "max_passengers": max_passengers,
                    },
                )
            )
        return trip

    async def quote(
        self, trip_id: int, passenger_count: Optional[int] = None
    ) -> TripPricing:
        """Price for *passenger_count* passengers, default: the next seat."""
        if passenger_count is not None and passenger_count < 1:
            raise ValidationError("Passenger count must be at least 1")
        async with UnitOfWork(self._session_factory) as uow:
            trip = await uow.trips.get_by_id(trip_id)
            if trip is None:
                raise NotFoundError("Trip not found")
            current = await uow.reservations.count_passengers(trip.id)
            tiers = trip.destination.pricing_tiers
            return TripPricing(
                trip_id=trip.id,
                destination=trip.destination.name,
                current_passengers=current,
                seats_remaining=Occupancy(current, trip.max_passengers).remaining,
                has_dynamic_pricing=has_dynamic_pricing(tiers),
                quote=price_info(tiers, passenger_count or current + 1),
                table=pricing_table(tiers),
            )

    async def _refund_cancelled(
        self, uow: UnitOfWork, reservation: ReservationModel, description: str
    ) -> int:
        holder = await uow.accounts.get_by_id(reservation.account_id)
        if holder is None or holder.is_admin or reservation.credits_cost <= 0:
            return 0
        await CreditLedger(uow.credits).credit(
            holder.id, LedgerEntryType.REFUND, reservation.credits_cost, description
        )
        return reservation.credits_cost
