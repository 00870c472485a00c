"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid driver-initiated lifecycle
  transitions (SCHEDULED/BOOKED -> IN_PROGRESS -> COMPLETED, or CANCELLED).
- ``Ride.reserve_seats`` / ``Ride.release_seats`` encapsulate the seat
  inventory invariants: ``0 <= available_seats <= capacity_seats`` and
  ``available_seats == 0`` <=> ``BOOKED`` for a ride that has not started.
- ``booked_by`` is derived from live bookings by the repository layer and
  never edited in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from .enums import OPEN_STATUSES, RIDE_TRANSITIONS, RideStatus
from .errors import InsufficientSeats, InvalidStateTransition, RideClosed


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    address: str
    city: str
    state: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass(frozen=True)
class VehicleInfo:
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    license_plate: Optional[str] = None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[str] = None
    driver_id: str = ""
    origin: Location = field(default_factory=lambda: Location("", ""))
    destination: Location = field(default_factory=lambda: Location("", ""))
    date: Optional[date] = None
    time: Optional[time] = None
    capacity_seats: int = 1
    available_seats: int = 1
    price: float = 0.0
    status: RideStatus = RideStatus.SCHEDULED
    vehicle: Optional[VehicleInfo] = None
    description: Optional[str] = None
    booked_by: frozenset[str] = frozenset()
    created_at: Optional[datetime] = None

    @property
    def booked_seats(self) -> int:
        return self.capacity_seats - self.available_seats

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = RIDE_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def reserve_seats(self, seats: int) -> None:
        if not self.is_open:
            raise RideClosed(f"Ride is {self.status.value} and no longer bookable")
        if seats > self.available_seats:
            raise InsufficientSeats(seats, self.available_seats)
        self.available_seats -= seats
        if self.available_seats == 0:
            self.status = RideStatus.BOOKED

    def release_seats(self, seats: int) -> None:
        """Give *seats* back, never exceeding the capacity offered at creation."""
        self.available_seats = min(self.capacity_seats, self.available_seats + seats)
        if self.status == RideStatus.BOOKED and self.available_seats > 0:
            self.status = RideStatus.SCHEDULED

    def release_all(self) -> None:
        self.available_seats = self.capacity_seats


@dataclass
class Booking:
    id: Optional[str] = None
    ride_id: str = ""
    passenger_id: str = ""
    seats: int = 1
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
