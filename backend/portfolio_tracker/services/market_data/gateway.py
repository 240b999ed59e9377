# backend/portfolio_tracker/services/market_data/gateway.py
"""
Fault-isolating wrapper around a PriceDataProvider.

Every upstream call made by the valuation, dividend and FX services goes
through MarketDataGateway, which:
- bounds the call with asyncio.wait_for (no call waits longer than its timeout)
- runs it behind a CircuitBreaker (a dead upstream fails fast)
- never raises: failures come back as FetchResult.failed(reason, detail)
  and are logged at WARNING
- makes no retries: one failed attempt is final

Fan-out helpers run independent lookups concurrently; one ticker failing
never affects another.

Usage:
    gateway = MarketDataGateway(provider, timeout=5.0, fx_timeout=3.0)
    result = await gateway.fetch_batch_quotes(["AAPL", "NOVO-B.CO"])
    quotes = result.value_or({})
"""

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar

from portfolio_tracker.services.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from portfolio_tracker.services.exceptions import (
    InvalidProviderResponseError,
    MarketDataError,
    TickerNotFoundError,
)
from portfolio_tracker.services.market_data.base import DividendData, PriceDataProvider, Quote
from portfolio_tracker.services.result import FailureReason, FetchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MarketDataGateway:
    """
    Timeout + circuit breaker + tagged-result layer over a provider.

    Args:
        provider: Upstream source
        timeout: Seconds allowed for quote and dividend calls
        fx_timeout: Seconds allowed for an exchange-rate call
        breaker: Circuit breaker shared by all calls to this provider
    """

    def __init__(
            self,
            provider: PriceDataProvider,
            timeout: float = 5.0,
            fx_timeout: float = 3.0,
            breaker: CircuitBreaker | None = None,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._fx_timeout = fx_timeout
        self._breaker = breaker or CircuitBreaker(
            name=provider.name,
            excluded_exceptions=(TickerNotFoundError,),
        )

    @property
    def provider(self) -> PriceDataProvider:
        return self._provider

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def fetch_batch_quotes(self, tickers: list[str]) -> FetchResult[dict[str, Quote]]:
        """One batched quote request for all tickers."""
        if not tickers:
            return FetchResult.ok({})
        return await self._call(
            f"batch quotes ({len(tickers)} tickers)",
            lambda: self._provider.get_batch_prices(list(tickers)),
            self._timeout,
        )

    async def fetch_quote(self, ticker: str) -> FetchResult[Quote]:
        return await self._call(
            f"quote {ticker}",
            lambda: self._provider.get_quote(ticker),
            self._timeout,
        )

    async def fetch_dividend_data(self, ticker: str) -> FetchResult[DividendData]:
        return await self._call(
            f"dividends {ticker}",
            lambda: self._provider.get_dividend_data(ticker),
            self._timeout,
        )

    async def fetch_dividend_data_many(
            self, tickers: list[str]
    ) -> dict[str, FetchResult[DividendData]]:
        """Fetch dividend data for each distinct ticker concurrently."""
        unique = list(dict.fromkeys(tickers))
        results = await asyncio.gather(*(self.fetch_dividend_data(t) for t in unique))
        return dict(zip(unique, results))

    async def fetch_exchange_rate(
            self, from_currency: str, to_currency: str
    ) -> FetchResult[Decimal]:
        """Rate such that 1 from_currency = rate to_currency. Non-positive rates fail."""
        result: FetchResult[Decimal] = await self._call(
            f"FX {from_currency}->{to_currency}",
            lambda: self._provider.get_exchange_rate(from_currency, to_currency),
            self._fx_timeout,
        )
        if result.is_ok and (result.value is None or result.value <= 0):
            logger.warning(
                f"Rejecting non-positive FX rate {from_currency}->{to_currency}: {result.value}"
            )
            return FetchResult.failed(FailureReason.INVALID_VALUE, f"rate={result.value}")
        return result

    async def fetch_quote_currency(self, ticker: str) -> FetchResult[str]:
        """Currency a ticker is quoted in, as reported by the provider."""
        result = await self.fetch_quote(ticker)
        if not result.is_ok:
            return FetchResult.failed(result.reason, result.detail)
        if not result.value.currency:
            return FetchResult.failed(FailureReason.BAD_RESPONSE, "quote has no currency")
        return FetchResult.ok(result.value.currency)

    # =========================================================================
    # CALL WRAPPER
    # =========================================================================

    async def _call(
            self,
            label: str,
            call: Callable[[], Awaitable[T]],
            timeout: float,
    ) -> FetchResult[T]:
        try:
            async with self._breaker:
                value = await asyncio.wait_for(call(), timeout=timeout)
        except CircuitBreakerOpen as e:
            return self._failed(label, FailureReason.CIRCUIT_OPEN, str(e))
        except asyncio.TimeoutError:
            return self._failed(label, FailureReason.TIMEOUT, f"no answer within {timeout}s")
        except TickerNotFoundError as e:
            return self._failed(label, FailureReason.NOT_FOUND, str(e))
        except InvalidProviderResponseError as e:
            return self._failed(label, FailureReason.BAD_RESPONSE, str(e))
        except MarketDataError as e:
            return self._failed(label, FailureReason.UNAVAILABLE, str(e))
        except Exception as e:
            # Provider bugs degrade the same way as an outage
            return self._failed(label, FailureReason.UNAVAILABLE, f"{type(e).__name__}: {e}")
        return FetchResult.ok(value)

    def _failed(self, label: str, reason: FailureReason, detail: str) -> FetchResult:
        logger.warning(f"{self._provider.name} {label} failed [{reason.value}]: {detail}")
        return FetchResult.failed(reason, detail)
