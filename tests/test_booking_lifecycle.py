"""
Booking lifecycle tests against a real (SQLite) database.

Covers the end-to-end booking scenarios, the create / cancel round trip,
the ride status machine with its verification gate and cancellation
cascade, and the guarantee that notifier failures never fail an operation.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from rideshare.domain.enums import RideStatus
from rideshare.domain.errors import ErrorCode
from rideshare.infrastructure.models import (
    BookingModel,
    RideModel,
    VerificationCodeModel,
)
from rideshare.services.booking_lifecycle import BookingLifecycleService
from tests.conftest import StubVerifier, load_ride


async def _booking_count(session_factory, ride_id: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(BookingModel).where(
                BookingModel.ride_id == ride_id
            )
        )
        return result.scalar()


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_booking_until_full(self, service, make_ride, users):
        ride_id = await make_ride(seats=3)

        first = await service.create_booking(ride_id, users["alice"], 2)
        assert first.success
        assert first.booking_id
        assert first.ride.available_seats == 1
        assert first.ride.booked_by == {users["alice"]}
        assert first.ride.status == RideStatus.SCHEDULED

        second = await service.create_booking(ride_id, users["bob"], 1)
        assert second.success
        assert second.ride.available_seats == 0
        assert second.ride.booked_by == {users["alice"], users["bob"]}
        assert second.ride.status == RideStatus.BOOKED

    @pytest.mark.asyncio
    async def test_passenger_without_profile_is_rejected(
        self, service, notifier, session_factory, make_ride
    ):
        ride_id = await make_ride(seats=3)

        result = await service.create_booking(ride_id, "token-user-without-profile", 1)

        assert result.error == ErrorCode.VALIDATION
        assert "no profile" in result.message
        assert (await load_ride(session_factory, ride_id)).available_seats == 3
        assert await _booking_count(session_factory, ride_id) == 0
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_result_matches_committed_state(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=3)
        result = await service.create_booking(
            ride_id, users["alice"], 1, contact_phone="555-0100", notes="two bags"
        )

        stored = await load_ride(session_factory, ride_id)
        assert stored.available_seats == result.ride.available_seats == 2
        assert stored.booked_by == result.ride.booked_by

        async with session_factory() as session:
            booking = await session.get(BookingModel, result.booking_id)
        assert booking.contact_phone == "555-0100"
        assert booking.notes == "two bags"

    @pytest.mark.asyncio
    async def test_driver_cannot_book_own_ride(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=3)
        result = await service.create_booking(ride_id, users["driver"], 1)

        assert not result.success
        assert result.error == ErrorCode.FORBIDDEN
        assert (await load_ride(session_factory, ride_id)).available_seats == 3

    @pytest.mark.asyncio
    async def test_more_seats_than_available_is_rejected(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=3)
        await service.create_booking(ride_id, users["bob"], 2)

        result = await service.create_booking(ride_id, users["alice"], 2)

        assert not result.success
        assert result.error == ErrorCode.CAPACITY
        assert result.message == "Only 1 seats available, 2 requested"
        stored = await load_ride(session_factory, ride_id)
        assert stored.available_seats == 1
        assert stored.booked_by == {users["bob"]}

    @pytest.mark.asyncio
    async def test_second_booking_by_same_passenger_is_duplicate(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=3)

        first = await service.create_booking(ride_id, users["alice"], 1)
        second = await service.create_booking(ride_id, users["alice"], 1)

        assert first.success
        assert not second.success
        assert second.error == ErrorCode.DUPLICATE_BOOKING
        assert await _booking_count(session_factory, ride_id) == 1
        assert (await load_ride(session_factory, ride_id)).available_seats == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seats", [0, -1])
    async def test_non_positive_seats_rejected_before_store_access(
        self, notifier, users, seats
    ):
        def exploding_factory():
            raise AssertionError("store must not be touched")

        service = BookingLifecycleService(exploding_factory, notifier=notifier)
        result = await service.create_booking("any-ride", users["alice"], seats)

        assert result.error == ErrorCode.VALIDATION
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_unknown_ride(self, service, users):
        result = await service.create_booking("missing", users["alice"], 1)
        assert result.error == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_cannot_book_cancelled_ride(self, service, make_ride, users):
        ride_id = await make_ride(seats=3)
        await service.transition_ride(ride_id, users["driver"], RideStatus.CANCELLED)

        result = await service.create_booking(ride_id, users["alice"], 1)

        assert result.error == ErrorCode.RIDE_CLOSED

    @pytest.mark.asyncio
    async def test_full_ride_rejects_further_bookings(self, service, make_ride, users):
        ride_id = await make_ride(seats=1)
        await service.create_booking(ride_id, users["alice"], 1)

        result = await service.create_booking(ride_id, users["bob"], 1)

        assert result.error == ErrorCode.CAPACITY

    @pytest.mark.asyncio
    async def test_has_existing_booking(self, service, make_ride, users):
        ride_id = await make_ride(seats=2)
        assert not await service.has_existing_booking(ride_id, users["alice"])
        await service.create_booking(ride_id, users["alice"], 1)
        assert await service.has_existing_booking(ride_id, users["alice"])


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_cancel_reverts_booked_ride(self, service, make_ride, users):
        ride_id = await make_ride(seats=3)
        a = await service.create_booking(ride_id, users["alice"], 2)
        await service.create_booking(ride_id, users["bob"], 1)

        result = await service.cancel_booking(a.booking_id, users["alice"])

        assert result.success
        assert result.ride.available_seats == 2
        assert result.ride.booked_by == {users["bob"]}
        assert result.ride.status == RideStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_round_trip_restores_exact_state(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=4)
        await service.create_booking(ride_id, users["bob"], 1)
        before = await load_ride(session_factory, ride_id)

        created = await service.create_booking(ride_id, users["alice"], 3)
        assert created.ride.status == RideStatus.BOOKED
        await service.cancel_booking(created.booking_id, users["alice"])

        after = await load_ride(session_factory, ride_id)
        assert after.available_seats == before.available_seats
        assert after.booked_by == before.booked_by
        assert after.status == before.status

    @pytest.mark.asyncio
    async def test_driver_may_cancel_a_passenger_booking(
        self, service, notifier, make_ride, users
    ):
        ride_id = await make_ride(seats=2)
        booking = await service.create_booking(ride_id, users["alice"], 1)

        result = await service.cancel_booking(booking.booking_id, users["driver"])

        assert result.success
        _, cancelled, _, cancelled_by = notifier.events[-1]
        assert cancelled.passenger_id == users["alice"]
        assert cancelled_by == users["driver"]

    @pytest.mark.asyncio
    async def test_stranger_cannot_cancel(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=2)
        booking = await service.create_booking(ride_id, users["alice"], 1)

        result = await service.cancel_booking(booking.booking_id, users["bob"])

        assert result.error == ErrorCode.FORBIDDEN
        assert await _booking_count(session_factory, ride_id) == 1

    @pytest.mark.asyncio
    async def test_unknown_booking(self, service, users):
        result = await service.cancel_booking("missing", users["alice"])
        assert result.error == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_cannot_cancel_once_ride_started(self, service, make_ride, users):
        ride_id = await make_ride(seats=2)
        booking = await service.create_booking(ride_id, users["alice"], 1)
        await service.transition_ride(ride_id, users["driver"], RideStatus.IN_PROGRESS)

        result = await service.cancel_booking(booking.booking_id, users["alice"])

        assert result.error == ErrorCode.RIDE_CLOSED

    @pytest.mark.asyncio
    async def test_cancelled_booking_can_be_rebooked(self, service, make_ride, users):
        ride_id = await make_ride(seats=2)
        booking = await service.create_booking(ride_id, users["alice"], 1)
        await service.cancel_booking(booking.booking_id, users["alice"])

        again = await service.create_booking(ride_id, users["alice"], 2)

        assert again.success
        assert again.ride.status == RideStatus.BOOKED


class TestRideTransitions:
    @pytest.mark.asyncio
    async def test_scheduled_cannot_jump_to_completed(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride()
        result = await service.transition_ride(
            ride_id, users["driver"], RideStatus.COMPLETED
        )

        assert result.error == ErrorCode.ILLEGAL_TRANSITION
        assert (await load_ride(session_factory, ride_id)).status == RideStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_full_trip(self, service, make_ride, users):
        ride_id = await make_ride()
        started = await service.transition_ride(
            ride_id, users["driver"], RideStatus.IN_PROGRESS
        )
        finished = await service.transition_ride(
            ride_id, users["driver"], "completed"
        )

        assert started.ride.status == RideStatus.IN_PROGRESS
        assert finished.ride.status == RideStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_only_driver_changes_status(self, service, make_ride, users):
        ride_id = await make_ride()
        result = await service.transition_ride(
            ride_id, users["alice"], RideStatus.CANCELLED
        )
        assert result.error == ErrorCode.FORBIDDEN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [RideStatus.SCHEDULED, RideStatus.BOOKED])
    async def test_inventory_statuses_cannot_be_requested(
        self, service, make_ride, users, target
    ):
        ride_id = await make_ride()
        result = await service.transition_ride(ride_id, users["driver"], target)
        assert result.error == ErrorCode.ILLEGAL_TRANSITION

    @pytest.mark.asyncio
    async def test_unknown_target_is_validation_error(self, service, make_ride, users):
        ride_id = await make_ride()
        result = await service.transition_ride(ride_id, users["driver"], "teleported")
        assert result.error == ErrorCode.VALIDATION

    @pytest.mark.asyncio
    async def test_unknown_ride(self, service, users):
        result = await service.transition_ride(
            "missing", users["driver"], RideStatus.CANCELLED
        )
        assert result.error == ErrorCode.NOT_FOUND


class TestVerificationGate:
    @pytest.mark.asyncio
    async def test_unverified_ride_cannot_start(
        self, session_factory, notifier, make_ride, users
    ):
        service = BookingLifecycleService(session_factory, notifier=notifier)
        ride_id = await make_ride()

        result = await service.transition_ride(
            ride_id, users["driver"], RideStatus.IN_PROGRESS
        )

        assert result.error == ErrorCode.NOT_VERIFIED
        assert (await load_ride(session_factory, ride_id)).status == RideStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_verified_code_opens_the_gate(
        self, session_factory, notifier, make_ride, users
    ):
        service = BookingLifecycleService(session_factory, notifier=notifier)
        ride_id = await make_ride()
        async with session_factory() as session:
            session.add(
                VerificationCodeModel(
                    ride_id=ride_id,
                    user_id=users["driver"],
                    code="482913",
                    expires_at=datetime.now(timezone.utc) + timedelta(minutes=10),
                    verified=True,
                )
            )
            await session.commit()

        result = await service.transition_ride(
            ride_id, users["driver"], RideStatus.IN_PROGRESS
        )

        assert result.success
        assert result.ride.status == RideStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_injected_verifier_is_consulted(
        self, session_factory, make_ride, users
    ):
        verifier = StubVerifier(verified=False)
        service = BookingLifecycleService(session_factory, verifier=verifier)
        ride_id = await make_ride()

        result = await service.transition_ride(
            ride_id, users["driver"], RideStatus.IN_PROGRESS
        )

        assert result.error == ErrorCode.NOT_VERIFIED
        assert verifier.calls == [(ride_id, users["driver"])]

    @pytest.mark.asyncio
    async def test_gate_only_applies_to_starting(
        self, session_factory, make_ride, users
    ):
        verifier = StubVerifier(verified=False)
        service = BookingLifecycleService(session_factory, verifier=verifier)
        ride_id = await make_ride()

        result = await service.transition_ride(
            ride_id, users["driver"], RideStatus.CANCELLED
        )

        assert result.success
        assert verifier.calls == []


class TestRideCancellation:
    @pytest.mark.asyncio
    async def test_cancel_cascades_to_bookings(
        self, service, notifier, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=3)
        await service.create_booking(ride_id, users["alice"], 2)
        await service.create_booking(ride_id, users["bob"], 1)

        result = await service.transition_ride(
            ride_id, users["driver"], RideStatus.CANCELLED
        )

        assert result.success
        assert result.ride.status == RideStatus.CANCELLED
        assert result.ride.available_seats == 3
        assert result.ride.booked_by == frozenset()
        assert await _booking_count(session_factory, ride_id) == 0

        name, ride, dropped = notifier.events[-1]
        assert name == "ride_cancelled"
        assert {b.passenger_id for b in dropped} == {users["alice"], users["bob"]}

    @pytest.mark.asyncio
    async def test_cancel_without_cascade_keeps_bookings(
        self, session_factory, notifier, make_ride, users
    ):
        service = BookingLifecycleService(
            session_factory,
            notifier=notifier,
            require_verification=False,
            cascade_ride_cancellation=False,
        )
        ride_id = await make_ride(seats=3)
        await service.create_booking(ride_id, users["alice"], 1)

        result = await service.transition_ride(
            ride_id, users["driver"], RideStatus.CANCELLED
        )

        assert result.success
        assert result.ride.booked_by == {users["alice"]}
        assert "ride_cancelled" not in notifier.names()

    @pytest.mark.asyncio
    async def test_cancelling_empty_ride_sends_nothing(
        self, service, notifier, make_ride, users
    ):
        ride_id = await make_ride()
        await service.transition_ride(ride_id, users["driver"], RideStatus.CANCELLED)
        assert notifier.events == []


class TestNotifications:
    @pytest.mark.asyncio
    async def test_create_and_cancel_notify(self, service, notifier, make_ride, users):
        ride_id = await make_ride(seats=2)
        booking = await service.create_booking(ride_id, users["alice"], 1)
        await service.cancel_booking(booking.booking_id, users["alice"])

        assert notifier.names() == ["booking_created", "booking_cancelled"]
        _, created, ride = notifier.events[0]
        assert created.id == booking.booking_id
        assert ride.available_seats == 1

    @pytest.mark.asyncio
    async def test_rejections_do_not_notify(self, service, notifier, make_ride, users):
        ride_id = await make_ride(seats=1)
        await service.create_booking(ride_id, users["driver"], 1)
        await service.create_booking(ride_id, users["alice"], 2)
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_notifier_failure_is_swallowed(
        self, session_factory, make_ride, users
    ):
        class BrokenNotifier:
            async def booking_created(self, booking, ride):
                raise ConnectionError("smtp down")

        service = BookingLifecycleService(
            session_factory, notifier=BrokenNotifier(), require_verification=False
        )
        ride_id = await make_ride(seats=2)

        result = await service.create_booking(ride_id, users["alice"], 1)

        assert result.success
        assert (await load_ride(session_factory, ride_id)).available_seats == 1


class TestReconcile:
    @pytest.mark.asyncio
    async def test_reconcile_repairs_drifted_counter(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=3)
        await service.create_booking(ride_id, users["alice"], 2)
        async with session_factory() as session:
            model = await session.get(RideModel, ride_id)
            model.available_seats = 3
            await session.commit()

        result = await service.reconcile_ride(ride_id)

        assert result.success
        assert result.ride.available_seats == 1
        assert result.ride.booked_by == {users["alice"]}

    @pytest.mark.asyncio
    async def test_reconcile_marks_full_ride_booked(
        self, service, session_factory, make_ride, users
    ):
        ride_id = await make_ride(seats=1)
        await service.create_booking(ride_id, users["alice"], 1)
        async with session_factory() as session:
            model = await session.get(RideModel, ride_id)
            model.available_seats = 1
            model.status = RideStatus.SCHEDULED
            await session.commit()

        result = await service.reconcile_ride(ride_id)

        assert result.ride.available_seats == 0
        assert result.ride.status == RideStatus.BOOKED

    @pytest.mark.asyncio
    async def test_reconcile_unknown_ride(self, service):
        result = await service.reconcile_ride("missing")
        assert result.error == ErrorCode.NOT_FOUND
