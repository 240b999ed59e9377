# backend/portfolio_tracker/middleware/rate_limit.py
"""
Per-client rate limiting with slowapi.

The default limit (RATE_LIMIT_DEFAULT, e.g. "200/minute") applies to every
route through SlowAPIMiddleware and is keyed by client IP. Market data
lookups fan out to the upstream provider, so this also caps how hard one
client can drive the provider. Storage is in-memory (single instance).

Disabled with RATE_LIMIT_ENABLED=false, and always in the test environment.
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from portfolio_tracker.config import settings
from portfolio_tracker.schemas.errors import ErrorDetail

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the standard error format, with a Retry-After header."""
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}: {limit_info}")
    return JSONResponse(
        status_code=429,
        content=ErrorDetail(
            error="RateLimitError",
            message=f"Too many requests. {limit_info}",
            details={"retry_after": RETRY_AFTER_SECONDS},
        ).model_dump(),
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


__all__ = ["limiter", "rate_limit_exceeded_handler", "SlowAPIMiddleware", "RateLimitExceeded"]
