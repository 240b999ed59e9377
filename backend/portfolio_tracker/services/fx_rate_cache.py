# backend/portfolio_tracker/services/fx_rate_cache.py
"""
Exchange-rate cache: currency -> base-currency rate with a time-based expiry.

=============================================================================
RATE CONVENTION
=============================================================================

    rate(code) = "1 unit of `code` = X units of the base currency"

    base = DKK, rate("USD") = 6.8   ->   100 USD = 680 DKK
    Conversion: base_amount = amount × rate

=============================================================================

Lookup order for a currency:
1. Base currency (or a missing code): 1, no lookup.
2. Cached entry younger than the TTL: returned as is.
3. One live fetch through MarketDataGateway (timeout, circuit breaker).
4. On any failure (timeout, unreachable, bad body, rate <= 0, open circuit):
   the static fallback table. Unknown codes use the default currency's
   table entry.

Both live and fallback results are cached with a fresh timestamp, so a
failing upstream is asked at most once per currency per TTL window.

Concurrency:
- Concurrent misses for the same currency share one in-flight fetch.
- Entries are frozen dataclasses and the mapping is swapped wholesale on
  every write (copy-on-write), so a reader never sees a half-updated entry.

Usage:
    cache = ExchangeRateCache(gateway, base_currency="DKK")
    rate = await cache.rate("USD")          # Decimal
    lookup = await cache.lookup("USD")      # RateLookup with source/failure
    cache.invalidate("USD")                 # or cache.invalidate() for all
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable

from portfolio_tracker.services.constants import FALLBACK_RATES_TO_DKK, FX_CACHE_TTL_SECONDS
from portfolio_tracker.services.market_data.gateway import MarketDataGateway
from portfolio_tracker.services.result import FailureReason

logger = logging.getLogger(__name__)

ONE = Decimal("1")


class RateSource(str, Enum):
    BASE = "base"
    LIVE = "live"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class CachedRate:
    rate: Decimal
    fetched_at: float
    source: RateSource
    failure: FailureReason | None = None


@dataclass(frozen=True)
class RateLookup:
    """
    Outcome of a rate lookup.

    Attributes:
        currency: Normalized currency code
        rate: Units of base currency per unit of `currency` (always > 0)
        source: Where the rate originally came from
        from_cache: True if no fetch was needed for this lookup
        failure: Why the live fetch failed, when source is FALLBACK
    """

    currency: str
    rate: Decimal
    source: RateSource
    from_cache: bool = False
    failure: FailureReason | None = None


class ExchangeRateCache:
    """
    Shared, explicitly owned rate cache.

    One instance is created per process (see dependencies.get_rate_cache) and
    passed to every CurrencyConverter.
    """

    def __init__(
            self,
            gateway: MarketDataGateway,
            base_currency: str = "DKK",
            default_currency: str = "USD",
            ttl_seconds: float = FX_CACHE_TTL_SECONDS,
            fallback_rates: dict[str, Decimal] | None = None,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._base = base_currency.upper()
        self._default = default_currency.upper()
        self._ttl = ttl_seconds
        self._fallback_table = dict(fallback_rates or FALLBACK_RATES_TO_DKK)
        self._clock = clock
        self._entries: dict[str, CachedRate] = {}
        self._in_flight: dict[str, asyncio.Future] = {}

    @property
    def base_currency(self) -> str:
        return self._base

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def rate(self, code: str | None) -> Decimal:
        """Rate to the base currency. Never raises, never returns <= 0."""
        return (await self.lookup(code)).rate

    async def lookup(self, code: str | None) -> RateLookup:
        currency = self.normalize(code)
        if currency == self._base:
            return RateLookup(currency=currency, rate=ONE, source=RateSource.BASE)

        entry = self._entries.get(currency)
        if entry is not None and self._is_fresh(entry):
            logger.debug(f"FX cache hit for {currency}: {entry.rate} ({entry.source.value})")
            return RateLookup(
                currency=currency,
                rate=entry.rate,
                source=entry.source,
                from_cache=True,
                failure=entry.failure,
            )

        pending = self._in_flight.get(currency)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(currency))
            self._in_flight[currency] = pending
            pending.add_done_callback(lambda _f, c=currency: self._in_flight.pop(c, None))
        # Shielded so a cancelled caller does not cancel the fetch others wait on
        return await asyncio.shield(pending)

    def invalidate(self, code: str | None = None) -> None:
        """Drop one cached currency, or everything when code is None."""
        if code is None:
            self._entries = {}
            return
        currency = self.normalize(code)
        self._entries = {k: v for k, v in self._entries.items() if k != currency}

    def fallback_rate(self, code: str) -> Decimal:
        """
        Static rate to the base currency.

        The table is expressed in DKK; for another base currency both sides
        are taken from the table and divided.
        """
        currency = code.upper()
        to_dkk = self._fallback_table.get(currency)
        if to_dkk is None:
            to_dkk = self._fallback_table.get(self._default, ONE)
        base_to_dkk = self._fallback_table.get(self._base, ONE)
        return to_dkk / base_to_dkk

    def normalize(self, code: str | None) -> str:
        if code is None or not code.strip():
            return self._base
        return code.strip().upper()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _is_fresh(self, entry: CachedRate) -> bool:
        return self._clock() - entry.fetched_at < self._ttl

    async def _refresh(self, currency: str) -> RateLookup:
        result = await self._gateway.fetch_exchange_rate(currency, self._base)

        if result.is_ok:
            entry = CachedRate(rate=result.value, fetched_at=self._clock(), source=RateSource.LIVE)
            logger.debug(f"FX live rate {currency}->{self._base}: {entry.rate}")
        else:
            entry = CachedRate(
                rate=self.fallback_rate(currency),
                fetched_at=self._clock(),
                source=RateSource.FALLBACK,
                failure=result.reason,
            )
            logger.warning(
                f"Using fallback FX rate {currency}->{self._base}={entry.rate} "
                f"({result.reason.value})"
            )

        self._entries = {**self._entries, currency: entry}
        return RateLookup(
            currency=currency,
            rate=entry.rate,
            source=entry.source,
            failure=entry.failure,
        )
