"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    BOOKED = "booked"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Driver-initiated moves: maps current status -> set of valid next statuses.
# SCHEDULED <-> BOOKED follows seat inventory and is never requested directly.
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.SCHEDULED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.BOOKED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

DRIVER_TARGETS = frozenset(
    {RideStatus.IN_PROGRESS, RideStatus.COMPLETED, RideStatus.CANCELLED}
)

# Seats can only move while the ride has not started
OPEN_STATUSES = frozenset({RideStatus.SCHEDULED, RideStatus.BOOKED})


class RideRequestStatus(str, enum.Enum):
    OPEN = "open"
    MATCHED = "matched"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


RIDE_REQUEST_TRANSITIONS: dict[RideRequestStatus, set[RideRequestStatus]] = {
    RideRequestStatus.OPEN: {
        RideRequestStatus.MATCHED,
        RideRequestStatus.CANCELLED,
        RideRequestStatus.EXPIRED,
    },
    RideRequestStatus.MATCHED: {RideRequestStatus.CANCELLED},
    RideRequestStatus.CANCELLED: set(),
    RideRequestStatus.EXPIRED: set(),
}
