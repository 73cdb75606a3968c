# taskboard/middleware/rate_limiting.py - Rate limiting setup
from fastapi import FastAPI
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from loguru import logger

from taskboard.core.config import settings
from taskboard.exceptions.handlers import rate_limit_exceeded_handler

# Per-client limit applied to every route
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.DEFAULT_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
    headers_enabled=True
)


def setup_rate_limiting(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    if settings.RATE_LIMIT_ENABLED:
        logger.info(f"Rate limiting enabled: {settings.DEFAULT_RATE_LIMIT} per client")
    else:
        logger.info("Rate limiting disabled")
