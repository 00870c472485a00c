"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.errors import error
from rideshare.config import settings
from rideshare.domain.errors import ErrorCode
from rideshare.infrastructure.database import async_session_factory
from rideshare.infrastructure.notifications import OutboxNotifier
from rideshare.infrastructure.redis_client import get_redis
from rideshare.infrastructure.repositories import UserRepository
from rideshare.services.booking_lifecycle import BookingLifecycleService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Return the ``sub`` claim of the identity provider's bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        )
    return user_id


async def get_lifecycle_service() -> BookingLifecycleService:
    """Wire the lifecycle service to the shared session factory and outbox."""
    return BookingLifecycleService(
        async_session_factory,
        notifier=OutboxNotifier(await get_redis()),
        max_retries=settings.lifecycle_max_retries,
        require_verification=settings.require_verification_to_start,
        cascade_ride_cancellation=settings.cascade_ride_cancellation,
    )


async def get_profile_user_id(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Like ``get_current_user_id`` but the caller must have a profile row."""
    if await UserRepository(db).get_by_id(user_id) is None:
        raise error(
            ErrorCode.VALIDATION,
            "Create your profile with PUT /api/v1/users/me first",
        )
    return user_id
