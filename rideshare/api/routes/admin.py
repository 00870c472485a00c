"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health                     -- simple health check
POST /api/v1/admin/rides/{ride_id}/reconcile  -- recount seats from bookings

Reconcile rewrites the ride's inventory, so it is open only to the ride's
driver and to the ids listed in ``ADMIN_USER_IDS``.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import (
    get_current_user_id,
    get_db,
    get_lifecycle_service,
)
from rideshare.api.errors import error, raise_for_failure
from rideshare.api.middleware import RATE_LIMIT, limiter
from rideshare.api.schemas import HealthResponse, RideResponse
from rideshare.config import settings
from rideshare.domain.errors import ErrorCode
from rideshare.infrastructure.repositories import RideRepository
from rideshare.services.booking_lifecycle import BookingLifecycleService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/rides/{ride_id}/reconcile",
    response_model=RideResponse,
    summary="Recompute a ride's seats and status from its bookings",
)
@limiter.limit(RATE_LIMIT)
async def reconcile_ride(
    request: Request,
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    if user_id not in settings.admin_user_ids:
        ride = await RideRepository(db).get_by_id(ride_id)
        if ride is None:
            raise error(ErrorCode.NOT_FOUND, f"Ride {ride_id} not found")
        if ride.driver_id != user_id:
            raise error(
                ErrorCode.FORBIDDEN, "Only the driver or an admin can reconcile a ride"
            )

    result = await service.reconcile_ride(ride_id)
    raise_for_failure(result)
    return RideResponse.from_entity(result.ride)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
