"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 admin and 5 sample accounts (each with a starting credit grant)
  - 1 rider profile
  - 1 pickup point and 3 destinations with pricing tiers
  - 4 scheduled trips over the next days
  - 3 credit packages
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.domain.enums import AccountRole, LedgerEntryType, TripStatus
from shuttle.infrastructure.database import async_session_factory, engine
from shuttle.infrastructure.models import (
    AccountModel,
    CreditPackageModel,
    LocationModel,
    PricingTierModel,
    RiderModel,
    TripModel,
)
from shuttle.infrastructure.repositories import CreditRepository
from shuttle.services.ledger import CreditLedger

STARTING_CREDITS = 300

ACCOUNTS = [
    {"name": "Thandi Nkosi", "email": "thandi@example.com"},
    {"name": "Pieter van Wyk", "email": "pieter@example.com"},
    {"name": "Aisha Patel", "email": "aisha@example.com"},
    {"name": "Sipho Dlamini", "email": "sipho@example.com"},
    {"name": "Lerato Mokoena", "email": "lerato@example.com"},
]

PICKUP = {"name": "Campus Main Gate", "address": "1 University Ave"}

DESTINATIONS = [
    {
        "name": "International Airport",
        "address": "Airport Rd",
        "duration": 45,
        "tiers": {1: 100, 2: 90, 3: 80, 4: 70},
    },
    {
        "name": "Waterfront",
        "address": "Dock Rd",
        "duration": 25,
        "tiers": {1: 60, 2: 50, 3: 45, 4: 40, 5: 35, 6: 30},
    },
    # no tiers: flat rate
    {"name": "City Library", "address": "Library Sq", "duration": 15, "tiers": {}},
]

PACKAGES = [
    {"name": "Starter", "credits": 100, "price": Decimal("99.00")},
    {"name": "Regular", "credits": 500, "price": Decimal("449.00")},
    {"name": "Frequent", "credits": 1200, "price": Decimal("999.00")},
]


async def seed(session: AsyncSession) -> bool:
    """Insert the sample data; returns False if the database is already seeded."""
    existing = await session.execute(select(func.count()).select_from(AccountModel))
    if existing.scalar() > 0:
        return False

    # ── Accounts ──────────────────────────────────────────────────────
    admin = AccountModel(
        name="Shuttle Admin", email="admin@example.com", role=AccountRole.ADMIN
    )
    users = [AccountModel(name=a["name"], email=a["email"]) for a in ACCOUNTS]
    session.add_all([admin, *users])
    await session.flush()

    ledger = CreditLedger(CreditRepository(session))
    for user in users:
        await ledger.credit(
            user.id, LedgerEntryType.PURCHASE, STARTING_CREDITS, "Welcome credits"
        )
    session.add(RiderModel(account_id=users[0].id, name="Nomsa Nkosi"))
    print(f"  Created {len(users) + 1} accounts")

    # ── Locations ─────────────────────────────────────────────────────
    session.add(LocationModel(name=PICKUP["name"], address=PICKUP["address"]))
    destinations = [
        LocationModel(
            name=d["name"],
            address=d["address"],
            default_duration_minutes=d["duration"],
            pricing_tiers=[
                PricingTierModel(passenger_count=count, cost_per_person=cost)
                for count, cost in sorted(d["tiers"].items())
            ],
        )
        for d in DESTINATIONS
    ]
    session.add_all(destinations)
    await session.flush()
    print(f"  Created {len(destinations) + 1} locations")

    # ── Trips ─────────────────────────────────────────────────────────
    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).replace(
        hour=8, minute=0, second=0, microsecond=0
    )
    trips = []
    for day, destination in enumerate([*destinations, destinations[0]]):
        start = tomorrow + timedelta(days=day)
        trips.append(
            TripModel(
                destination_id=destination.id,
                start_time=start,
                end_time=start
                + timedelta(minutes=destination.default_duration_minutes or 30),
                max_passengers=4 if destination.pricing_tiers else 10,
                status=TripStatus.SCHEDULED,
            )
        )
    session.add_all(trips)
    print(f"  Created {len(trips)} trips")

    # ── Credit packages ───────────────────────────────────────────────
    session.add_all(CreditPackageModel(**p, is_active=True) for p in PACKAGES)
    print(f"  Created {len(PACKAGES)} credit packages")

    await session.flush()
    return True


async def main():
    print("Seeding database...")
    async with async_session_factory() as session:
        if await seed(session):
            await session.commit()
            print("\nSeed complete!")
        else:
            print("Database already seeded. Skipping.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
