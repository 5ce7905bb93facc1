"""Seed the database with the two gym courts, a price catalog and packages.

Run with: python -m scripts.seed
The rule catalog covers every half hour of every day, so no booking ever
falls through to the pricing fallback.
"""

import asyncio

from sqlalchemy import select

from gymcourt.core.database import async_session_factory, engine
from gymcourt.models import Base, Court, Package, PriceRule, PriceTier, Profile, UserRole

ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]
WEEKDAYS = [1, 2, 3, 4, 5]
WEEKEND = [0, 6]

COURTS = [
    {"slug": "pink", "name": "Pink Court", "color": "#db2777", "sort_order": 0},
    {"slug": "mint", "name": "Mint Court", "color": "#059669", "sort_order": 1},
]

# Shared by both courts (court_id NULL). Base rules are split at midnight:
# a rule's range never wraps, so 00:00-06:00 is its own row.
RULES = [
    {"name": "Base (day)", "tier": PriceTier.BASE, "days_of_week": ALL_DAYS,
     "start_time": "06:00", "end_time": "24:00", "price_per_hour": 60000, "priority": 0},
    {"name": "Base (overnight)", "tier": PriceTier.NIGHT, "days_of_week": ALL_DAYS,
     "start_time": "00:00", "end_time": "06:00", "price_per_hour": 50000, "priority": 0},
    {"name": "Weekday evening", "tier": PriceTier.A, "days_of_week": WEEKDAYS,
     "start_time": "18:00", "end_time": "22:00", "price_per_hour": 90000, "priority": 10},
    {"name": "Weekday prime", "tier": PriceTier.S, "days_of_week": WEEKDAYS,
     "start_time": "19:00", "end_time": "21:00", "price_per_hour": 110000, "priority": 20},
    {"name": "Friday prime", "tier": PriceTier.SS, "days_of_week": [5],
     "start_time": "19:00", "end_time": "22:00", "price_per_hour": 130000, "priority": 30},
    {"name": "Weekend day", "tier": PriceTier.WEEKEND, "days_of_week": WEEKEND,
     "start_time": "09:00", "end_time": "18:00", "price_per_hour": 100000, "priority": 10},
    {"name": "Weekday morning", "tier": PriceTier.B, "days_of_week": WEEKDAYS,
     "start_time": "06:00", "end_time": "09:00", "price_per_hour": 50000, "priority": 5},
]

PACKAGES = [
    {"court": "pink", "name": "Weekend morning block", "days_of_week": WEEKEND,
     "start_time": "06:00", "end_time": "09:00", "total_price": 150000, "badge_text": "Best value",
     "description": "Three hours of the pink court before 9 am on Saturday or Sunday."},
    {"court": "mint", "name": "Late evening block", "days_of_week": None,
     "start_time": "21:00", "end_time": "24:00", "total_price": 180000, "badge_text": "Night owl",
     "description": "The mint court from 9 pm to midnight, any day."},
]


async def seed():
    # Create tables (in dev; production uses migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        # Check if already seeded
        result = await db.execute(select(Court).where(Court.slug == "pink"))
        if result.scalar_one_or_none():
            print("Database already seeded, skipping.")
            return

        courts = {}
        for court_data in COURTS:
            court = Court(**court_data)
            db.add(court)
            courts[court.slug] = court
        await db.flush()

        for rule_data in RULES:
            db.add(PriceRule(**rule_data))

        for package_data in PACKAGES:
            package_data = dict(package_data)
            court = courts[package_data.pop("court")]
            db.add(Package(court_id=court.id, **package_data))

        db.add(Profile(id="seed-admin", email="admin@gymcourt.test", name="Test Admin", role=UserRole.ADMIN))
        db.add(Profile(id="seed-member", email="member@example.com", name="Test Member", phone="010-1234-5678"))

        await db.commit()

        print(f"Seeded: {len(COURTS)} courts, {len(RULES)} price rules, {len(PACKAGES)} packages")
        print("  2 test profiles (token subject): seed-admin, seed-member")


if __name__ == "__main__":
    asyncio.run(seed())
