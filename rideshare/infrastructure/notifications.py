"""
Notification outbox.

Lifecycle operations never talk to email/SMS providers directly: after a
commit they hand an event to ``OutboxNotifier`` which pushes it onto a
Redis list.  ``rideshare.workers.notifier`` drains that list in the
background.  Enqueue failures propagate to the caller, which logs and
swallows them so a booking never fails because a notification could not
be queued.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as aioredis
from pydantic import BaseModel, Field

from rideshare.domain.entities import Booking, Ride

OUTBOX_KEY = "rideshare:notifications:outbox"
DEAD_LETTER_KEY = "rideshare:notifications:failed"


class EventType(str, enum.Enum):
    BOOKING_CREATED = "booking.created"
    BOOKING_CANCELLED = "booking.cancelled"
    RIDE_CANCELLED = "ride.cancelled"


class BookingSummary(BaseModel):
    id: str
    passenger_id: str
    seats: int
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None


class RideSummary(BaseModel):
    id: str
    driver_id: str
    origin_city: str
    destination_city: str
    date: Optional[str] = None
    time: Optional[str] = None
    price: float
    status: str
    available_seats: int


class NotificationEvent(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: EventType
    ride: RideSummary
    bookings: list[BookingSummary] = []
    actor_id: Optional[str] = None
    recipients: list[str] = []
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


def summarize_ride(ride: Ride) -> RideSummary:
    return RideSummary(
        id=ride.id,
        driver_id=ride.driver_id,
        origin_city=ride.origin.city,
        destination_city=ride.destination.city,
        date=ride.date.isoformat() if ride.date else None,
        time=ride.time.strftime("%H:%M") if ride.time else None,
        price=ride.price,
        status=ride.status.value,
        available_seats=ride.available_seats,
    )


def summarize_booking(booking: Booking) -> BookingSummary:
    return BookingSummary(
        id=booking.id,
        passenger_id=booking.passenger_id,
        seats=booking.seats,
        contact_phone=booking.contact_phone,
        notes=booking.notes,
        payment_method=booking.payment_method,
    )


class OutboxNotifier:
    """Implements the lifecycle notifier protocol on top of a Redis list."""

    def __init__(self, client: aioredis.Redis, key: str = OUTBOX_KEY):
        self.redis = client
        self.key = key

    async def booking_created(self, booking: Booking, ride: Ride) -> None:
        await self._push(
            NotificationEvent(
                type=EventType.BOOKING_CREATED,
                ride=summarize_ride(ride),
                bookings=[summarize_booking(booking)],
                actor_id=booking.passenger_id,
                recipients=[ride.driver_id, booking.passenger_id],
            )
        )

    async def booking_cancelled(
        self, booking: Booking, ride: Ride, cancelled_by: str
    ) -> None:
        await self._push(
            NotificationEvent(
                type=EventType.BOOKING_CANCELLED,
                ride=summarize_ride(ride),
                bookings=[summarize_booking(booking)],
                actor_id=cancelled_by,
                recipients=[ride.driver_id, booking.passenger_id],
            )
        )

    async def ride_cancelled(self, ride: Ride, bookings: list[Booking]) -> None:
        await self._push(
            NotificationEvent(
                type=EventType.RIDE_CANCELLED,
                ride=summarize_ride(ride),
                bookings=[summarize_booking(b) for b in bookings],
                actor_id=ride.driver_id,
                recipients=sorted({b.passenger_id for b in bookings}),
            )
        )

    async def _push(self, event: NotificationEvent) -> None:
        await self.redis.lpush(self.key, event.model_dump_json())
