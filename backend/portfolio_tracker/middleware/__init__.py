# backend/portfolio_tracker/middleware/__init__.py
"""
ASGI middleware: correlation IDs for request tracing, slowapi rate limiting.

Usage:
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
"""

from portfolio_tracker.middleware.correlation import CorrelationIdMiddleware
from portfolio_tracker.middleware.rate_limit import (
    RateLimitExceeded,
    SlowAPIMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)

__all__ = [
    "CorrelationIdMiddleware",
    "RateLimitExceeded",
    "SlowAPIMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
]
