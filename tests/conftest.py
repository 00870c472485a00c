"""
Shared test fixtures.

Each test gets its own SQLite file database (via aiosqlite) so tests run
without Docker / PostgreSQL / Redis.  Foreign keys are enforced as they are
on PostgreSQL.  A file rather than ``:memory:`` gives every session its own
connection, which lets tests interleave two transactions the way concurrent
requests would.
"""

from datetime import date, time
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rideshare.domain.entities import Booking, Location, Ride, VehicleInfo
from rideshare.infrastructure.database import Base
from rideshare.infrastructure.repositories import (
    BookingRepository,
    RideRepository,
    UserRepository,
)
from rideshare.services.booking_lifecycle import BookingLifecycleService


class RecordingNotifier:
    """Collects notifier calls instead of queueing them."""

    def __init__(self):
        self.events: list[tuple] = []

    async def booking_created(self, booking: Booking, ride: Ride) -> None:
        self.events.append(("booking_created", booking, ride))

    async def booking_cancelled(
        self, booking: Booking, ride: Ride, cancelled_by: str
    ) -> None:
        self.events.append(("booking_cancelled", booking, ride, cancelled_by))

    async def ride_cancelled(self, ride: Ride, bookings: list[Booking]) -> None:
        self.events.append(("ride_cancelled", ride, bookings))

    def names(self) -> list[str]:
        return [e[0] for e in self.events]


class StubVerifier:
    def __init__(self, verified: bool):
        self.verified = verified
        self.calls: list[tuple[str, str]] = []

    async def is_ride_verified(self, ride_id: str, user_id: str) -> bool:
        self.calls.append((ride_id, user_id))
        return self.verified


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a fresh database file, yield a factory, then dispose."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enforce_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def users(session_factory) -> dict[str, str]:
    """A driver and four passengers; returns name -> user id."""
    names = ["driver", "alice", "bob", "carol", "dave"]
    async with session_factory() as session:
        repo = UserRepository(session)
        created = {
            name: await repo.create(name=name.title(), email=f"{name}@example.com")
            for name in names
        }
        await session.commit()
    return {name: user.id for name, user in created.items()}


@pytest.fixture
def make_ride(session_factory, users):
    """Factory: persist a scheduled ride owned by the driver, return its id."""

    async def _make(seats: int = 3, driver_id: str | None = None, **kwargs) -> str:
        async with session_factory() as session:
            ride = await RideRepository(session).create_ride(
                driver_id=driver_id or users["driver"],
                origin=kwargs.pop("origin", Location("1 Main St", "Springfield")),
                destination=kwargs.pop(
                    "destination", Location("9 Elm St", "Shelbyville")
                ),
                ride_date=kwargs.pop("ride_date", date(2026, 11, 2)),
                ride_time=kwargs.pop("ride_time", time(9, 30)),
                seats=seats,
                price=kwargs.pop("price", 25.0),
                vehicle=kwargs.pop("vehicle", VehicleInfo("Toyota", "Prius")),
                **kwargs,
            )
            await session.commit()
            return ride.id

    return _make


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(session_factory, notifier) -> BookingLifecycleService:
    """Lifecycle service with the verification gate switched off."""
    return BookingLifecycleService(
        session_factory, notifier=notifier, require_verification=False
    )


async def load_ride(session_factory, ride_id: str) -> Ride:
    """Read the committed ride, roster included."""
    async with session_factory() as session:
        model = await RideRepository(session).get_by_id(ride_id)
        booked_by = await BookingRepository(session).passenger_ids_for_ride(ride_id)
        return RideRepository.to_entity(model, booked_by)
