"""
User profile endpoints
======================

GET /api/v1/users/me  -- the caller's profile
PUT /api/v1/users/me  -- create or update the caller's profile

Profiles are keyed by the bearer token's ``sub``.  Offering a ride, posting
a ride request and booking seats all need one.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import get_current_user_id, get_db
from rideshare.api.errors import error
from rideshare.api.middleware import RATE_LIMIT, limiter
from rideshare.api.schemas import UserProfileRequest, UserResponse
from rideshare.domain.errors import ErrorCode
from rideshare.infrastructure.repositories import UserRepository

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse, summary="The caller's profile")
@limiter.limit(RATE_LIMIT)
async def my_profile(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise error(ErrorCode.NOT_FOUND, "Profile not found")
    return user


@router.put("/me", response_model=UserResponse, summary="Create or update a profile")
@limiter.limit(RATE_LIMIT)
async def upsert_my_profile(
    request: Request,
    body: UserProfileRequest,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return await UserRepository(db).upsert_profile(
            user_id, name=body.name, email=body.email, phone=body.phone
        )
    except IntegrityError:
        raise error(ErrorCode.CONFLICT, f"Email {body.email} is already in use")
