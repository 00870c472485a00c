"""
Ride endpoints
==============

POST /api/v1/rides                          -- driver offers a ride
GET  /api/v1/rides                          -- list rides (driver / status / dates)
GET  /api/v1/rides/{ride_id}                -- ride with its current roster
POST /api/v1/rides/{ride_id}/status         -- start, complete or cancel a ride
POST /api/v1/rides/{ride_id}/bookings       -- book seats
GET  /api/v1/rides/{ride_id}/bookings       -- bookings on the ride (driver only)
GET  /api/v1/rides/{ride_id}/booking-status -- has the caller booked this ride?
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import (
    get_current_user_id,
    get_db,
    get_lifecycle_service,
    get_profile_user_id,
)
from rideshare.api.errors import error, raise_for_failure
from rideshare.api.middleware import RATE_LIMIT, limiter
from rideshare.api.schemas import (
    BookingCreateRequest,
    BookingCreatedResponse,
    BookingResponse,
    BookingStatusResponse,
    RideCreateRequest,
    RideResponse,
    RideStatusRequest,
)
from rideshare.domain.enums import RideStatus
from rideshare.domain.errors import ErrorCode
from rideshare.infrastructure.repositories import BookingRepository, RideRepository
from rideshare.services.booking_lifecycle import BookingLifecycleService

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Offer a ride",
)
@limiter.limit(RATE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_profile_user_id),
):
    repo = RideRepository(db)
    ride = await repo.create_ride(
        driver_id=user_id,
        origin=body.origin.to_entity(),
        destination=body.destination.to_entity(),
        ride_date=body.date,
        ride_time=body.time,
        seats=body.seats,
        price=body.price,
        vehicle=body.vehicle.to_entity() if body.vehicle else None,
        description=body.description,
    )
    return RideResponse.from_entity(repo.to_entity(ride))


@router.get(
    "",
    response_model=list[RideResponse],
    summary="List rides",
)
@limiter.limit(RATE_LIMIT)
async def list_rides(
    request: Request,
    driver_id: Optional[str] = None,
    status: Optional[RideStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    repo = RideRepository(db)
    rides = await repo.list_rides(
        driver_id=driver_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    roster = await BookingRepository(db).passenger_ids_for_rides(r.id for r in rides)
    return [
        RideResponse.from_entity(repo.to_entity(r, roster.get(r.id, ())))
        for r in rides
    ]


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get a ride with its current seats, status and roster",
)
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: str,
    db: AsyncSession = Depends(get_db),
):
    repo = RideRepository(db)
    ride = await repo.get_by_id(ride_id)
    if not ride:
        raise error(ErrorCode.NOT_FOUND, "Ride not found")
    booked_by = await BookingRepository(db).passenger_ids_for_ride(ride_id)
    return RideResponse.from_entity(repo.to_entity(ride, booked_by))


@router.post(
    "/{ride_id}/status",
    response_model=RideResponse,
    summary="Start, complete or cancel a ride",
    description=(
        "Driver only. Starting requires a successful passenger verification; "
        "cancelling also cancels every booking on the ride."
    ),
)
@limiter.limit(RATE_LIMIT)
async def change_ride_status(
    request: Request,
    ride_id: str,
    body: RideStatusRequest,
    user_id: str = Depends(get_current_user_id),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = await service.transition_ride(ride_id, user_id, body.target)
    raise_for_failure(result)
    return RideResponse.from_entity(result.ride)


@router.post(
    "/{ride_id}/bookings",
    status_code=201,
    response_model=BookingCreatedResponse,
    summary="Book seats on a ride",
)
@limiter.limit(RATE_LIMIT)
async def book_ride(
    request: Request,
    ride_id: str,
    body: BookingCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = await service.create_booking(
        ride_id,
        user_id,
        body.seats,
        contact_phone=body.contact_phone,
        notes=body.notes,
        payment_method=body.payment_method,
    )
    raise_for_failure(result)
    return BookingCreatedResponse(
        booking_id=result.booking_id, ride=RideResponse.from_entity(result.ride)
    )


@router.get(
    "/{ride_id}/bookings",
    response_model=list[BookingResponse],
    summary="List bookings on a ride (driver only)",
)
@limiter.limit(RATE_LIMIT)
async def list_ride_bookings(
    request: Request,
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if not ride:
        raise error(ErrorCode.NOT_FOUND, "Ride not found")
    if ride.driver_id != user_id:
        raise error(ErrorCode.FORBIDDEN, "Only the driver can see the bookings")
    repo = BookingRepository(db)
    return [
        BookingResponse.from_entity(repo.to_entity(b))
        for b in await repo.list_by_ride(ride_id)
    ]


@router.get(
    "/{ride_id}/booking-status",
    response_model=BookingStatusResponse,
    summary="Whether the caller already holds a booking on the ride",
)
@limiter.limit(RATE_LIMIT)
async def booking_status(
    request: Request,
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    booking = await BookingRepository(db).get_by_ride_and_passenger(ride_id, user_id)
    return BookingStatusResponse(
        has_booking=booking is not None,
        booking_id=booking.id if booking else None,
    )
