# backend/portfolio_tracker/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application (tables are created on startup)
- Registers global exception handlers
- Registers all routers
- Defines the health endpoint
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_tracker.config import settings
from portfolio_tracker.database import check_database_health, init_db
from portfolio_tracker.dependencies import get_gateway, get_provider
from portfolio_tracker.middleware import (
    CorrelationIdMiddleware,
    RateLimitExceeded,
    SlowAPIMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from portfolio_tracker.routers import cash, dividends, portfolio, stocks
from portfolio_tracker.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_tracker.services.circuit_breaker import CircuitState
from portfolio_tracker.services.exceptions import (
    InsufficientCashError,
    InsufficientSharesError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from portfolio_tracker.services.market_data import MarketDataGateway
from portfolio_tracker.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(
        f"{settings.app_name} started (environment={settings.environment}, "
        f"base currency={settings.base_currency}, provider={settings.market_data_provider})"
    )
    yield
    # Only close a provider that was actually created
    if get_provider.cache_info().currsize:
        await get_provider().aclose()


app = FastAPI(
    title=settings.app_name,
    description="Portfolio valuation, currency conversion and dividend tracking API",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle missing holdings and dividends (404)."""
    logger.warning(f"Not found: {exc}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={"resource_type": exc.resource_type, "resource_id": exc.resource_id},
        ).model_dump(),
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle bookkeeping validation errors, including bad statuses (400)."""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={"field": exc.field} if exc.field else None,
        ).model_dump(),
    )


@app.exception_handler(InsufficientSharesError)
async def insufficient_shares_handler(request: Request, exc: InsufficientSharesError) -> JSONResponse:
    """Handle a sale of more shares than held (400)."""
    logger.warning(f"Insufficient shares: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="InsufficientSharesError",
            message=str(exc),
            details={
                "ticker": exc.ticker,
                "requested": str(exc.requested),
                "available": str(exc.available),
            },
        ).model_dump(),
    )


@app.exception_handler(InsufficientCashError)
async def insufficient_cash_handler(request: Request, exc: InsufficientCashError) -> JSONResponse:
    """Handle a withdrawal larger than the balance (400)."""
    logger.warning(f"Insufficient cash: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="InsufficientCashError",
            message=str(exc),
            details={"requested": str(exc.requested), "available": str(exc.available)},
        ).model_dump(),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ServiceError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handle all HTTPExceptions with consistent error format.

    Converts the default {"detail": "..."} body to ErrorDetail.
    """
    error_types = {
        400: "BadRequestError",
        401: "UnauthorizedError",
        403: "ForbiddenError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        422: "ValidationError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Converts the default 422 body to ValidationErrorDetail."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(details=errors).model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="InternalServerError",
            message="An unexpected error occurred",
            details=None,
        ).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(portfolio.router)  # /api/portfolio/*
app.include_router(dividends.router)  # /api/dividends/*
app.include_router(cash.router)  # /api/cash/*
app.include_router(stocks.router)  # /api/stocks/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check(gateway: MarketDataGateway = Depends(get_gateway)):
    """
    Liveness plus dependency status.

    - 200 with status "healthy": database reachable, market data circuit closed
    - 200 with status "degraded": market data circuit open or half-open
    - 503 with status "unhealthy": database unreachable
    """
    database = check_database_health()
    breaker = gateway.breaker
    circuit = breaker.state

    overall = "healthy"
    if circuit != CircuitState.CLOSED:
        overall = "degraded"
    if database["status"] != "healthy":
        overall = "unhealthy"

    body = {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": database,
            "market_data": {
                "provider": breaker.name,
                "circuit_breaker_state": circuit.value,
                "failure_count": breaker.failure_count,
            },
        },
    }
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body)
    return body
