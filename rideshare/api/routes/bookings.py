"""
Booking endpoints
=================

DELETE /api/v1/bookings/{booking_id} -- cancel a booking (passenger or driver)
GET    /api/v1/bookings/mine         -- bookings held by the caller
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import (
    get_current_user_id,
    get_db,
    get_lifecycle_service,
)
from rideshare.api.errors import raise_for_failure
from rideshare.api.middleware import RATE_LIMIT, limiter
from rideshare.api.schemas import (
    BookingCancelledResponse,
    BookingResponse,
    RideResponse,
)
from rideshare.infrastructure.repositories import BookingRepository
from rideshare.services.booking_lifecycle import BookingLifecycleService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.delete(
    "/{booking_id}",
    response_model=BookingCancelledResponse,
    summary="Cancel a booking and release its seats",
)
@limiter.limit(RATE_LIMIT)
async def cancel_booking(
    request: Request,
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = await service.cancel_booking(booking_id, user_id)
    raise_for_failure(result)
    return BookingCancelledResponse(
        booking_id=booking_id, ride=RideResponse.from_entity(result.ride)
    )


@router.get(
    "/mine",
    response_model=list[BookingResponse],
    summary="List the caller's bookings",
)
@limiter.limit(RATE_LIMIT)
async def my_bookings(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    repo = BookingRepository(db)
    return [
        BookingResponse.from_entity(repo.to_entity(b))
        for b in await repo.list_by_passenger(user_id)
    ]
