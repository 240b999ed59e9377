# backend/portfolio_tracker/dependencies.py
"""
Dependency injection for FastAPI routes.

Services are process-wide singletons, created lazily on first use. They
share one provider, one circuit breaker and one exchange-rate cache, so
cached rates and breaker state apply to every request.

Order of construction:
    provider -> gateway -> rate cache -> converter -> engine / aggregator
             -> ledger -> valuation / dividend services

Tests override these with app.dependency_overrides.
"""

import hmac
import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portfolio_tracker.config import settings
from portfolio_tracker.services.circuit_breaker import CircuitBreaker
from portfolio_tracker.services.currency_converter import CurrencyConverter
from portfolio_tracker.services.dividends import (
    DividendEstimator,
    DividendService,
    DividendSummaryAggregator,
)
from portfolio_tracker.services.exceptions import TickerNotFoundError
from portfolio_tracker.services.fx_rate_cache import ExchangeRateCache
from portfolio_tracker.services.ledger_service import LedgerService
from portfolio_tracker.services.market_data import (
    MarketDataGateway,
    PriceDataProvider,
    create_provider,
)
from portfolio_tracker.services.valuation import PortfolioValuationService, ValuationEngine

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================

@lru_cache(maxsize=1)
def get_provider() -> PriceDataProvider:
    logger.debug(f"Initializing market data provider '{settings.market_data_provider}'")
    return create_provider(settings.market_data_provider, settings.stock_api_url)


@lru_cache(maxsize=1)
def get_gateway() -> MarketDataGateway:
    provider = get_provider()
    breaker = CircuitBreaker(
        name=provider.name,
        failure_threshold=settings.circuit_breaker_failure_threshold,
        recovery_timeout=settings.circuit_breaker_recovery_seconds,
        excluded_exceptions=(TickerNotFoundError,),
    )
    return MarketDataGateway(
        provider,
        timeout=settings.provider_timeout_seconds,
        fx_timeout=settings.fx_timeout_seconds,
        breaker=breaker,
    )


@lru_cache(maxsize=1)
def get_rate_cache() -> ExchangeRateCache:
    """The one exchange-rate cache shared by every converter."""
    return ExchangeRateCache(
        get_gateway(),
        base_currency=settings.base_currency,
        default_currency=settings.default_currency,
        ttl_seconds=settings.fx_cache_ttl_seconds,
    )


@lru_cache(maxsize=1)
def get_converter() -> CurrencyConverter:
    return CurrencyConverter(get_rate_cache())


@lru_cache(maxsize=1)
def get_ledger_service() -> LedgerService:
    return LedgerService(get_gateway(), get_converter(), default_currency=settings.default_currency)


@lru_cache(maxsize=1)
def get_valuation_service() -> PortfolioValuationService:
    engine = ValuationEngine(get_converter(), default_currency=settings.default_currency)
    return PortfolioValuationService(get_gateway(), engine, base_currency=settings.base_currency)


@lru_cache(maxsize=1)
def get_dividend_service() -> DividendService:
    estimator = DividendEstimator()
    aggregator = DividendSummaryAggregator(
        estimator, get_converter(), default_currency=settings.default_currency
    )
    return DividendService(get_gateway(), estimator, aggregator, get_ledger_service())


# =============================================================================
# AUTHENTICATION
# =============================================================================

def require_api_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """
    Pass/fail bearer token gate.

    When API_TOKEN is not configured every request passes (local use).

    Raises:
        HTTPException 401: Missing or wrong token
    """
    expected = settings.api_token
    if not expected:
        return
    if credentials is None or not hmac.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
