"""
Booking Lifecycle Service
=========================

The only code allowed to create or cancel bookings and to move a ride
through its status machine.

Consistency model
-----------------
Each operation is a single database transaction:

1. the ride row is loaded ``FOR UPDATE`` (blocks concurrent writers on
   PostgreSQL);
2. all validation happens before anything is written -- a rejection rolls
   the transaction back, so there is never a partial effect;
3. seats and status are written in one UPDATE carrying the ride's
   ``version`` (optimistic check).  If another writer got there first the
   UPDATE matches no row, SQLAlchemy raises ``StaleDataError`` and the whole
   operation is retried from step 1 on a fresh transaction;
4. booking rows are inserted / deleted inside the same transaction.

``booked_by`` is recomputed from booking rows inside the transaction, never
spliced.  Notifications go out only after commit, and their failures are
logged and swallowed.

All public operations return ``OperationResult`` instead of raising.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from rideshare.domain.entities import Booking, Ride
from rideshare.domain.enums import DRIVER_TARGETS, RideStatus
from rideshare.domain.errors import (
    BookingNotFound,
    ConcurrentModification,
    DuplicateBooking,
    InsufficientSeats,
    InvalidStateTransition,
    LifecycleError,
    NotAuthorized,
    RideClosed,
    RideNotFound,
    StoreUnavailable,
    ValidationFailed,
    VerificationRequired,
)
from rideshare.domain.results import OperationResult
from rideshare.infrastructure.repositories import (
    BookingRepository,
    RideRepository,
    UserRepository,
    VerificationRepository,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RideVerifier(Protocol):
    async def is_ride_verified(self, ride_id: str, user_id: str) -> bool: ...


class BookingNotifier(Protocol):
    async def booking_created(self, booking: Booking, ride: Ride) -> None: ...

    async def booking_cancelled(
        self, booking: Booking, ride: Ride, cancelled_by: str
    ) -> None: ...

    async def ride_cancelled(self, ride: Ride, bookings: list[Booking]) -> None: ...


class BookingLifecycleService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Optional[BookingNotifier] = None,
        verifier: Optional[RideVerifier] = None,
        *,
        max_retries: int = 3,
        require_verification: bool = True,
        cascade_ride_cancellation: bool = True,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._verifier = verifier
        self.max_retries = max(1, max_retries)
        self.require_verification = require_verification
        self.cascade_ride_cancellation = cascade_ride_cancellation

    # ── Queries ───────────────────────────────────────────────────────

    async def has_existing_booking(self, ride_id: str, passenger_id: str) -> bool:
        async with self._session_factory() as session:
            return await BookingRepository(session).exists(ride_id, passenger_id)

    # ── Create ────────────────────────────────────────────────────────

    async def create_booking(
        self,
        ride_id: str,
        passenger_id: str,
        seats: int,
        contact_phone: Optional[str] = None,
        notes: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> OperationResult:
        if seats < 1:
            return OperationResult.failed(
                ValidationFailed("At least one seat must be requested")
            )

        async def work(session: AsyncSession) -> tuple[Booking, Ride]:
            rides = RideRepository(session)
            bookings = BookingRepository(session)

            model = await rides.get_for_update(ride_id)
            if model is None:
                raise RideNotFound(ride_id)
            if model.driver_id == passenger_id:
                raise NotAuthorized("You cannot book your own ride")

            ride = rides.to_entity(model)
            if not ride.is_open:
                raise RideClosed(f"Ride is {ride.status.value} and no longer bookable")
            if seats > ride.available_seats:
                raise InsufficientSeats(seats, ride.available_seats)
            if await bookings.exists(ride_id, passenger_id):
                raise DuplicateBooking(ride_id, passenger_id)
            if await UserRepository(session).get_by_id(passenger_id) is None:
                raise ValidationFailed(
                    f"Passenger {passenger_id} has no profile; create one first"
                )

            ride.reserve_seats(seats)
            await rides.save_inventory(model, ride)
            try:
                row = await bookings.create(
                    ride_id=ride_id,
                    passenger_id=passenger_id,
                    seats=seats,
                    contact_phone=contact_phone,
                    notes=notes,
                    payment_method=payment_method,
                )
            except IntegrityError as exc:
                # Only uq_bookings_ride_passenger means a duplicate; the
                # competing booking is committed, so a fresh session sees it.
                if await self.has_existing_booking(ride_id, passenger_id):
                    raise DuplicateBooking(ride_id, passenger_id) from exc
                raise ValidationFailed(
                    "Booking rejected by the store: passenger or ride record is missing"
                ) from exc

            ride.booked_by = frozenset(await bookings.passenger_ids_for_ride(ride_id))
            return bookings.to_entity(row), ride

        try:
            booking, ride = await self._transact("create_booking", work)
        except LifecycleError as exc:
            logger.info(
                "Booking rejected: ride=%s passenger=%s reason=%s",
                ride_id, passenger_id, exc.message,
            )
            return OperationResult.failed(exc)
        except SQLAlchemyError:
            logger.exception("Store failure while booking ride %s", ride_id)
            return OperationResult.failed(StoreUnavailable())

        logger.info(
            "Booking %s created: ride=%s passenger=%s seats=%d remaining=%d",
            booking.id, ride_id, passenger_id, seats, ride.available_seats,
        )
        await self._notify("booking_created", booking, ride)
        return OperationResult.ok(ride, booking_id=booking.id)

    # ── Cancel ────────────────────────────────────────────────────────

    async def cancel_booking(
        self, booking_id: str, requesting_user_id: str
    ) -> OperationResult:
        async def work(session: AsyncSession) -> tuple[Booking, Ride]:
            rides = RideRepository(session)
            bookings = BookingRepository(session)

            row = await bookings.get_by_id(booking_id)
            if row is None:
                raise BookingNotFound(booking_id)
            model = await rides.get_for_update(row.ride_id)
            if model is None:
                raise RideNotFound(row.ride_id)
            if requesting_user_id not in (row.passenger_id, model.driver_id):
                raise NotAuthorized("You are not authorized to cancel this booking")

            ride = rides.to_entity(model)
            if not ride.is_open:
                raise RideClosed(
                    f"Ride is {ride.status.value}; its bookings can no longer be cancelled"
                )

            booking = bookings.to_entity(row)
            ride.release_seats(booking.seats)
            await rides.save_inventory(model, ride)
            await bookings.delete(row)

            ride.booked_by = frozenset(
                await bookings.passenger_ids_for_ride(ride.id)
            )
            return booking, ride

        try:
            booking, ride = await self._transact("cancel_booking", work)
        except LifecycleError as exc:
            logger.info(
                "Cancellation rejected: booking=%s user=%s reason=%s",
                booking_id, requesting_user_id, exc.message,
            )
            return OperationResult.failed(exc)
        except SQLAlchemyError:
            logger.exception("Store failure while cancelling booking %s", booking_id)
            return OperationResult.failed(StoreUnavailable())

        logger.info(
            "Booking %s cancelled by %s: ride=%s restored=%d available=%d",
            booking_id, requesting_user_id, ride.id, booking.seats,
            ride.available_seats,
        )
        await self._notify("booking_cancelled", booking, ride, requesting_user_id)
        return OperationResult.ok(ride, booking_id=booking.id)

    # ── Ride status ───────────────────────────────────────────────────

    async def transition_ride(
        self, ride_id: str, requesting_user_id: str, target: RideStatus
    ) -> OperationResult:
        try:
            target = RideStatus(target)
        except ValueError:
            return OperationResult.failed(
                ValidationFailed(f"Unknown ride status {target!r}")
            )
        if target not in DRIVER_TARGETS:
            return OperationResult.failed(
                InvalidStateTransition(
                    f"{target.value} cannot be requested directly"
                )
            )

        async def work(session: AsyncSession) -> tuple[Ride, list[Booking]]:
            rides = RideRepository(session)
            bookings = BookingRepository(session)

            model = await rides.get_for_update(ride_id)
            if model is None:
                raise RideNotFound(ride_id)
            if model.driver_id != requesting_user_id:
                raise NotAuthorized("Only the driver can change the ride status")

            ride = rides.to_entity(model)
            ride.transition_to(target)

            if target == RideStatus.IN_PROGRESS and self.require_verification:
                if not await self._is_verified(session, ride_id, requesting_user_id):
                    raise VerificationRequired(
                        "Passenger verification must succeed before the ride starts"
                    )

            dropped: list[Booking] = []
            if (
                target == RideStatus.CANCELLED
                and self.cascade_ride_cancellation
            ):
                for row in await bookings.list_by_ride(ride_id):
                    dropped.append(bookings.to_entity(row))
                    await bookings.delete(row)
                ride.release_all()

            await rides.save_inventory(model, ride)
            ride.booked_by = frozenset(await bookings.passenger_ids_for_ride(ride_id))
            return ride, dropped

        try:
            ride, dropped = await self._transact("transition_ride", work)
        except LifecycleError as exc:
            logger.info(
                "Transition to %s rejected: ride=%s user=%s reason=%s",
                target.value, ride_id, requesting_user_id, exc.message,
            )
            return OperationResult.failed(exc)
        except SQLAlchemyError:
            logger.exception("Store failure while updating ride %s", ride_id)
            return OperationResult.failed(StoreUnavailable())

        logger.info("Ride %s is now %s", ride_id, ride.status.value)
        if dropped:
            logger.info(
                "Ride %s cancellation dropped %d booking(s)", ride_id, len(dropped)
            )
            await self._notify("ride_cancelled", ride, dropped)
        return OperationResult.ok(ride)

    # ── Repair ────────────────────────────────────────────────────────

    async def reconcile_ride(self, ride_id: str) -> OperationResult:
        """
        Recompute ``available_seats`` from live bookings and re-derive
        ``scheduled`` / ``booked`` for rides that have not started.
        """

        async def work(session: AsyncSession) -> Ride:
            rides = RideRepository(session)
            bookings = BookingRepository(session)

            model = await rides.get_for_update(ride_id)
            if model is None:
                raise RideNotFound(ride_id)
            ride = rides.to_entity(model)

            booked = await bookings.booked_seats_for_ride(ride_id)
            if booked > ride.capacity_seats:
                logger.warning(
                    "Ride %s is oversold: %d seats booked, capacity %d",
                    ride_id, booked, ride.capacity_seats,
                )
            expected = max(0, ride.capacity_seats - booked)
            if expected != ride.available_seats:
                logger.warning(
                    "Ride %s seat counter drifted: stored=%d expected=%d",
                    ride_id, ride.available_seats, expected,
                )
            ride.available_seats = expected
            if ride.is_open:
                ride.status = (
                    RideStatus.BOOKED if expected == 0 else RideStatus.SCHEDULED
                )

            await rides.save_inventory(model, ride)
            ride.booked_by = frozenset(await bookings.passenger_ids_for_ride(ride_id))
            return ride

        try:
            ride = await self._transact("reconcile_ride", work)
        except LifecycleError as exc:
            return OperationResult.failed(exc)
        except SQLAlchemyError:
            logger.exception("Store failure while reconciling ride %s", ride_id)
            return OperationResult.failed(StoreUnavailable())
        return OperationResult.ok(ride)

    # ── Internals ─────────────────────────────────────────────────────

    async def _transact(
        self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]
    ) -> T:
        """Run *work* in its own transaction, retrying on a stale ride version."""
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await work(session)
            except StaleDataError:
                logger.info(
                    "%s: ride modified concurrently (attempt %d/%d)",
                    operation, attempt, self.max_retries,
                )
        raise ConcurrentModification(
            "The ride was modified by another request, please retry"
        )

    async def _is_verified(
        self, session: AsyncSession, ride_id: str, user_id: str
    ) -> bool:
        if self._verifier is not None:
            return await self._verifier.is_ride_verified(ride_id, user_id)
        return await VerificationRepository(session).is_ride_verified(ride_id, user_id)

    async def _notify(self, event: str, *args) -> None:
        if self._notifier is None:
            return
        try:
            await getattr(self._notifier, event)(*args)
        except Exception:
            logger.exception("Failed to dispatch %s notification", event)
