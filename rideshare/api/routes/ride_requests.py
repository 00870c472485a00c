"""
Ride request endpoints
======================

POST  /api/v1/ride-requests              -- a passenger asks for a ride
GET   /api/v1/ride-requests/mine         -- the caller's requests
PATCH /api/v1/ride-requests/{id}/cancel  -- withdraw a request
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import (
    get_current_user_id,
    get_db,
    get_profile_user_id,
)
from rideshare.api.errors import error
from rideshare.api.middleware import RATE_LIMIT, limiter
from rideshare.api.schemas import RideRequestCreateRequest, RideRequestResponse
from rideshare.domain.enums import RIDE_REQUEST_TRANSITIONS, RideRequestStatus
from rideshare.domain.errors import ErrorCode
from rideshare.infrastructure.models import RideRequestModel
from rideshare.infrastructure.repositories import RideRequestRepository

router = APIRouter(prefix="/ride-requests", tags=["ride-requests"])


@router.post(
    "",
    status_code=201,
    response_model=RideRequestResponse,
    summary="Post a ride request",
)
@limiter.limit(RATE_LIMIT)
async def create_ride_request(
    request: Request,
    body: RideRequestCreateRequest,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_profile_user_id),
):
    return await RideRequestRepository(db).create(
        RideRequestModel(
            user_id=user_id,
            start_address=body.origin.address,
            start_city=body.origin.city,
            start_state=body.origin.state,
            end_address=body.destination.address,
            end_city=body.destination.city,
            end_state=body.destination.state,
            date=body.date,
            time=body.time,
            number_of_seats=body.number_of_seats,
            max_price=body.max_price,
            description=body.description,
            status=RideRequestStatus.OPEN,
        )
    )


@router.get(
    "/mine",
    response_model=list[RideRequestResponse],
    summary="List the caller's ride requests",
)
@limiter.limit(RATE_LIMIT)
async def my_ride_requests(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await RideRequestRepository(db).list_by_user(user_id)


@router.patch(
    "/{request_id}/cancel",
    response_model=RideRequestResponse,
    summary="Withdraw a ride request",
)
@limiter.limit(RATE_LIMIT)
async def cancel_ride_request(
    request: Request,
    request_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    ride_request = await RideRequestRepository(db).get_by_id(request_id)
    if not ride_request:
        raise error(ErrorCode.NOT_FOUND, "Ride request not found")
    if ride_request.user_id != user_id:
        raise error(ErrorCode.FORBIDDEN, "Only the requester can cancel it")

    current = RideRequestStatus(ride_request.status)
    if RideRequestStatus.CANCELLED not in RIDE_REQUEST_TRANSITIONS.get(current, set()):
        raise error(
            ErrorCode.ILLEGAL_TRANSITION,
            f"Cannot cancel a ride request in '{current.value}' state",
        )

    ride_request.status = RideRequestStatus.CANCELLED
    await db.flush()
    return ride_request
