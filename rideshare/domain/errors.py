"""
Domain error taxonomy.

Every lifecycle rejection carries an ``ErrorCode`` so the service can turn
it into a plain failure result and the API can map it to an HTTP status
without inspecting message text.
"""

from __future__ import annotations

import enum


class ErrorCode(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CAPACITY = "capacity"
    DUPLICATE_BOOKING = "duplicate_booking"
    RIDE_CLOSED = "ride_closed"
    ILLEGAL_TRANSITION = "illegal_transition"
    NOT_VERIFIED = "not_verified"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"


class LifecycleError(Exception):
    """Base class for rejections raised before any change is committed."""

    code: ErrorCode = ErrorCode.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(LifecycleError):
    code = ErrorCode.VALIDATION


class RideNotFound(LifecycleError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, ride_id: str):
        super().__init__(f"Ride {ride_id} not found")
        self.ride_id = ride_id


class BookingNotFound(LifecycleError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, booking_id: str):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class NotAuthorized(LifecycleError):
    code = ErrorCode.FORBIDDEN


class InsufficientSeats(LifecycleError):
    code = ErrorCode.CAPACITY

    def __init__(self, requested: int, remaining: int):
        super().__init__(
            f"Only {remaining} seats available, {requested} requested"
        )
        self.requested = requested
        self.remaining = remaining


class DuplicateBooking(LifecycleError):
    code = ErrorCode.DUPLICATE_BOOKING

    def __init__(self, ride_id: str, passenger_id: str):
        super().__init__(f"Passenger {passenger_id} already booked ride {ride_id}")
        self.ride_id = ride_id
        self.passenger_id = passenger_id


class RideClosed(LifecycleError):
    code = ErrorCode.RIDE_CLOSED


class InvalidStateTransition(LifecycleError):
    """Raised when a ride status change violates the state machine."""

    code = ErrorCode.ILLEGAL_TRANSITION


class VerificationRequired(LifecycleError):
    code = ErrorCode.NOT_VERIFIED


class ConcurrentModification(LifecycleError):
    code = ErrorCode.CONFLICT


class StoreUnavailable(LifecycleError):
    code = ErrorCode.UNAVAILABLE

    def __init__(self, message: str = "Storage is temporarily unavailable"):
        super().__init__(message)
