"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 8 sample users (3 drivers, 5 passengers)
  - 5 sample rides between nearby cities
  - a handful of bookings made through the lifecycle service, so seat
    counts, statuses and rosters are consistent from the start
"""

import asyncio
from datetime import date, time, timedelta

from sqlalchemy import text

from rideshare.domain.entities import Location, VehicleInfo
from rideshare.infrastructure.database import async_session_factory, engine
from rideshare.infrastructure.repositories import RideRepository, UserRepository
from rideshare.services.booking_lifecycle import BookingLifecycleService


USERS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com", "phone": "+91 90000 00001"},
    {"name": "Priya Patel", "email": "priya@example.com", "phone": "+91 90000 00002"},
    {"name": "Rohan Mehta", "email": "rohan@example.com", "phone": "+91 90000 00003"},
    {"name": "Sneha Gupta", "email": "sneha@example.com"},
    {"name": "Vikram Singh", "email": "vikram@example.com"},
    {"name": "Ananya Reddy", "email": "ananya@example.com"},
    {"name": "Karan Joshi", "email": "karan@example.com"},
    {"name": "Meera Nair", "email": "meera@example.com"},
]

CITIES = {
    "mumbai": Location("Chhatrapati Shivaji Terminus", "Mumbai", "Maharashtra", "India", 18.9398, 72.8355),
    "pune": Location("Pune Railway Station", "Pune", "Maharashtra", "India", 18.5286, 73.8743),
    "nashik": Location("Nashik Road", "Nashik", "Maharashtra", "India", 19.9475, 73.8417),
    "surat": Location("Surat Central", "Surat", "Gujarat", "India", 21.2050, 72.8407),
}

# (driver index, origin, destination, days ahead, departure, seats, price)
RIDES = [
    (0, "mumbai", "pune", 1, time(8, 30), 3, 450.0),
    (0, "pune", "mumbai", 2, time(18, 0), 3, 450.0),
    (1, "mumbai", "nashik", 1, time(7, 0), 2, 380.0),
    (1, "nashik", "mumbai", 3, time(16, 45), 4, 380.0),
    (2, "mumbai", "surat", 2, time(6, 15), 4, 600.0),
]

# (ride index, passenger index, seats)
BOOKINGS = [
    (0, 3, 1),
    (0, 4, 2),
    (2, 5, 2),
    (4, 6, 1),
    (4, 7, 2),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        users = UserRepository(session)
        user_models = [await users.create(**u) for u in USERS]
        print(f"  Created {len(user_models)} users")

        # ── Rides ─────────────────────────────────────────────────────
        rides = RideRepository(session)
        ride_models = []
        for driver, origin, destination, days, departure, seats, price in RIDES:
            ride_models.append(
                await rides.create_ride(
                    driver_id=user_models[driver].id,
                    origin=CITIES[origin],
                    destination=CITIES[destination],
                    ride_date=date.today() + timedelta(days=days),
                    ride_time=departure,
                    seats=seats,
                    price=price,
                    vehicle=VehicleInfo("Maruti", "Ertiga", 2022, "white", f"MH01AB{1000 + driver}"),
                )
            )
        print(f"  Created {len(ride_models)} rides")

        await session.commit()
        ride_ids = [r.id for r in ride_models]
        user_ids = [u.id for u in user_models]

    # ── Bookings (through the lifecycle service) ──────────────────────
    service = BookingLifecycleService(async_session_factory)
    for ride_idx, passenger_idx, seats in BOOKINGS:
        result = await service.create_booking(
            ride_ids[ride_idx], user_ids[passenger_idx], seats
        )
        if not result.success:
            print(f"  Booking failed: {result.error.value} ({result.message})")
    print(f"  Created {len(BOOKINGS)} bookings")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
