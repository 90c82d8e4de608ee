"""Retroactive refund distributor, exercised directly inside a unit of work."""

import pytest

from shuttle.domain.enums import LedgerEntryType, ReservationStatus
from shuttle.infrastructure.models import ReservationModel
from shuttle.infrastructure.unit_of_work import UnitOfWork
from shuttle.services.refunds import RefundDistributor


async def _seat(session_factory, trip, account, pickup, cost, status=ReservationStatus.CONFIRMED):
    async with session_factory() as session:
        reservation = ReservationModel(
            trip_id=trip.id,
            account_id=account.id,
            pickup_location_id=pickup.id,
            dropoff_location_id=trip.destination_id,
            passenger_count=1,
            credits_cost=cost,
            status=status,
        )
        reservation.record_original_cost(cost)
        session.add(reservation)
        await session.commit()
        return reservation


async def _redistribute(session_factory, trip_id, new_reservation_id):
    async with UnitOfWork(session_factory) as uow:
        trip = await uow.trips.get_for_update(trip_id)
        return await RefundDistributor(uow).redistribute(trip, new_reservation_id)


@pytest.mark.asyncio
async def test_refund_conservation(factory, session_factory, airport, pickup):
    trip = await factory.trip(airport)
    a, b, c = [await factory.account() for _ in range(3)]
    await _seat(session_factory, trip, a, pickup, 100)
    await _seat(session_factory, trip, b, pickup, 90)
    newest = await _seat(session_factory, trip, c, pickup, 80)

    result = await _redistribute(session_factory, trip.id, newest.id)

    assert result.cost_per_person == 80
    assert result.passenger_count == 3
    assert {line.account_id: line.amount for line in result.refunds} == {a.id: 20, b.id: 10}
    assert result.total_refunded == sum(line.previous_cost - 80 for line in result.refunds)
    assert await factory.ledger_state(a.id) == (20, 20)
    assert await factory.ledger_state(b.id) == (10, 10)


@pytest.mark.asyncio
async def test_second_pass_is_a_no_op(factory, session_factory, airport, pickup):
    trip = await factory.trip(airport)
    a, b = await factory.account(), await factory.account()
    await _seat(session_factory, trip, a, pickup, 100)
    newest = await _seat(session_factory, trip, b, pickup, 90)

    first = await _redistribute(session_factory, trip.id, newest.id)
    second = await _redistribute(session_factory, trip.id, newest.id)

    assert first.total_refunded == 10
    assert second.refunds == []
    assert await factory.ledger_state(a.id) == (10, 10)


@pytest.mark.asyncio
async def test_never_charges_cheaper_reservations(factory, session_factory, airport, pickup):
    # a reservation already below the trip price is left alone
    trip = await factory.trip(airport)
    a, b = await factory.account(), await factory.account()
    cheap = await _seat(session_factory, trip, a, pickup, 50)
    newest = await _seat(session_factory, trip, b, pickup, 90)

    result = await _redistribute(session_factory, trip.id, newest.id)

    assert result.refunds == []
    async with session_factory() as session:
        assert (await session.get(ReservationModel, cheap.id)).credits_cost == 50


@pytest.mark.asyncio
async def test_cancelled_reservations_are_ignored(factory, session_factory, airport, pickup):
    trip = await factory.trip(airport)
    a, b, c = [await factory.account() for _ in range(3)]
    await _seat(session_factory, trip, a, pickup, 100, status=ReservationStatus.CANCELLED)
    await _seat(session_factory, trip, b, pickup, 100)
    newest = await _seat(session_factory, trip, c, pickup, 90)

    result = await _redistribute(session_factory, trip.id, newest.id)

    assert [line.account_id for line in result.refunds] == [b.id]
    assert await factory.ledger_state(a.id) == (0, 0)


@pytest.mark.asyncio
async def test_admin_holder_repriced_without_credit(factory, session_factory, airport, pickup):
    trip = await factory.trip(airport)
    admin, user = await factory.admin(), await factory.account()
    seat = await _seat(session_factory, trip, admin, pickup, 100)
    newest = await _seat(session_factory, trip, user, pickup, 90)

    result = await _redistribute(session_factory, trip.id, newest.id)

    assert len(result.refunds) == 1
    assert result.refunds[0].credited is False
    assert result.total_refunded == 0
    assert await factory.ledger_state(admin.id) == (0, 0)
    async with session_factory() as session:
        stored = await session.get(ReservationModel, seat.id)
    assert stored.credits_cost == 90
    assert stored.original_cost == 100


@pytest.mark.asyncio
async def test_refund_entry_description(factory, session_factory, airport, pickup):
    trip = await factory.trip(airport)
    a, b = await factory.account(), await factory.account()
    await _seat(session_factory, trip, a, pickup, 100)
    newest = await _seat(session_factory, trip, b, pickup, 90)

    await _redistribute(session_factory, trip.id, newest.id)

    async with UnitOfWork(session_factory) as uow:
        [entry] = await uow.credits.list_entries(a.id)
    assert entry.type == LedgerEntryType.REFUND_ADJUSTMENT
    assert entry.description == f"Price reduction refund for {airport.name} (2 passengers)"
