"""
FastAPI application factory.

* Registers routes for rides, bookings, ride requests, user profiles and
  admin.
* Starts / stops the notification dispatch worker via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rideshare.api.middleware import limiter
from rideshare.api.routes import admin, bookings, ride_requests, rides, users
from rideshare.config import settings
from rideshare.infrastructure.redis_client import close_redis
from rideshare.workers import notifier as _notifier

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the notification worker on startup; stop it and Redis on shutdown."""
    await _notifier.start_dispatch_loop()
    yield
    await _notifier.stop_dispatch_loop()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Drivers offer rides with a fixed number of seats and passengers "
            "book them.  Seat counts, ride status and the passenger roster "
            "stay consistent under concurrent bookings and cancellations."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(ride_requests.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
