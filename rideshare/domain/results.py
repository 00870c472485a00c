"""Plain success / failure results returned by lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .entities import Ride
from .errors import ErrorCode, LifecycleError


@dataclass(frozen=True)
class OperationResult:
    success: bool
    booking_id: Optional[str] = None
    ride: Optional[Ride] = None
    error: Optional[ErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, ride: Ride, booking_id: Optional[str] = None) -> "OperationResult":
        return cls(success=True, booking_id=booking_id, ride=ride)

    @classmethod
    def failed(cls, exc: LifecycleError) -> "OperationResult":
        return cls(success=False, error=exc.code, message=exc.message)
