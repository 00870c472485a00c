"""Rate limiting shared by all routers (in-memory storage, keyed by client IP)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from rideshare.config import settings

limiter = Limiter(key_func=get_remote_address)

# Applied per endpoint with ``@limiter.limit(RATE_LIMIT)``
RATE_LIMIT = settings.rate_limit
