# tests/services/test_fx_rate_cache.py
"""
Tests for ExchangeRateCache.

Covers:
- Base currency short-circuit
- Live rates, cache hits and TTL expiry
- Static fallback for every failure kind (unavailable, unknown pair,
  invalid rate, timeout, open circuit)
- Single-flight fetching for concurrent misses
- Invalidation
"""

import asyncio
from decimal import Decimal

import pytest

from portfolio_tracker.services.constants import FALLBACK_RATES_TO_DKK
from portfolio_tracker.services.exceptions import (
    InvalidProviderResponseError,
    ProviderUnavailableError,
)
from portfolio_tracker.services.fx_rate_cache import ExchangeRateCache, RateSource
from portfolio_tracker.services.result import FailureReason


class TestBaseCurrency:
    async def test_base_currency_is_one_without_lookup(self, rate_cache, mock_provider):
        lookup = await rate_cache.lookup("DKK")

        assert lookup.rate == Decimal("1")
        assert lookup.source == RateSource.BASE
        assert mock_provider.calls["fx"] == 0

    @pytest.mark.parametrize("code", [None, "", "  ", "dkk"])
    async def test_missing_or_lowercase_base_code(self, rate_cache, mock_provider, code):
        assert await rate_cache.rate(code) == Decimal("1")
        assert mock_provider.calls["fx"] == 0


class TestLiveRates:
    async def test_live_rate_is_used(self, rate_cache, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.9")

        lookup = await rate_cache.lookup("USD")

        assert lookup.rate == Decimal("6.9")
        assert lookup.source == RateSource.LIVE
        assert lookup.from_cache is False
        assert lookup.failure is None

    async def test_second_lookup_is_cache_hit(self, rate_cache, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.9")

        await rate_cache.lookup("USD")
        second = await rate_cache.lookup("usd")

        assert second.from_cache is True
        assert second.rate == Decimal("6.9")
        assert mock_provider.calls["fx"] == 1

    async def test_entry_expires_after_ttl(self, rate_cache, mock_provider, clock):
        mock_provider.set_rate("USD", "DKK", "6.9")
        await rate_cache.rate("USD")

        clock.advance(3599)
        await rate_cache.rate("USD")
        assert mock_provider.calls["fx"] == 1

        mock_provider.set_rate("USD", "DKK", "7.0")
        clock.advance(1)
        assert await rate_cache.rate("USD") == Decimal("7.0")
        assert mock_provider.calls["fx"] == 2

    async def test_ttl_is_per_currency(self, rate_cache, mock_provider, clock):
        mock_provider.set_rate("USD", "DKK", "6.9")
        mock_provider.set_rate("EUR", "DKK", "7.46")
        await rate_cache.rate("USD")
        clock.advance(1800)
        await rate_cache.rate("EUR")

        clock.advance(1800)
        await rate_cache.rate("USD")
        await rate_cache.rate("EUR")

        # USD expired and was refetched, EUR was still fresh
        assert mock_provider.calls["fx"] == 3


class TestFallback:
    @pytest.mark.parametrize("code", sorted(FALLBACK_RATES_TO_DKK))
    async def test_fallback_table_for_every_supported_currency(self, rate_cache, code):
        # No rates configured: every pair is unknown to the provider
        assert await rate_cache.rate(code) == FALLBACK_RATES_TO_DKK[code]

    async def test_provider_unavailable(self, rate_cache, mock_provider):
        mock_provider.fail_fx("USD", ProviderUnavailableError("mock", "connection refused"))

        lookup = await rate_cache.lookup("USD")

        assert lookup.rate == Decimal("6.8")
        assert lookup.source == RateSource.FALLBACK
        assert lookup.failure == FailureReason.UNAVAILABLE

    async def test_bad_response(self, rate_cache, mock_provider):
        mock_provider.fail_fx("EUR", InvalidProviderResponseError("mock", "no rate field"))

        lookup = await rate_cache.lookup("EUR")

        assert lookup.rate == Decimal("7.5")
        assert lookup.failure == FailureReason.BAD_RESPONSE

    @pytest.mark.parametrize("bad_rate", ["0", "-1.5"])
    async def test_non_positive_live_rate_is_rejected(self, rate_cache, mock_provider, bad_rate):
        mock_provider.set_rate("GBP", "DKK", bad_rate)

        lookup = await rate_cache.lookup("GBP")

        assert lookup.rate == Decimal("8.5")
        assert lookup.failure == FailureReason.INVALID_VALUE

    async def test_timeout(self, rate_cache, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.9")
        mock_provider.set_delay(1.0)

        lookup = await rate_cache.lookup("USD")

        assert lookup.rate == Decimal("6.8")
        assert lookup.failure == FailureReason.TIMEOUT

    async def test_open_circuit(self, rate_cache, mock_provider, breaker):
        mock_provider.set_rate("USD", "DKK", "6.9")
        for _ in range(breaker.failure_threshold):
            breaker.record_failure()

        lookup = await rate_cache.lookup("USD")

        assert lookup.failure == FailureReason.CIRCUIT_OPEN
        assert lookup.rate == Decimal("6.8")
        assert mock_provider.calls["fx"] == 0

    async def test_unknown_code_uses_default_currency_rate(self, rate_cache):
        lookup = await rate_cache.lookup("XYZ")

        assert lookup.currency == "XYZ"
        assert lookup.rate == FALLBACK_RATES_TO_DKK["USD"]
        assert lookup.failure == FailureReason.NOT_FOUND

    async def test_fallback_is_cached_for_ttl(self, rate_cache, mock_provider, clock):
        mock_provider.fail_fx("USD", ProviderUnavailableError("mock", "down"))

        await rate_cache.rate("USD")
        second = await rate_cache.lookup("USD")

        assert second.from_cache is True
        assert second.source == RateSource.FALLBACK
        assert mock_provider.calls["fx"] == 1

        clock.advance(3600)
        await rate_cache.rate("USD")
        assert mock_provider.calls["fx"] == 2

    async def test_fallback_for_non_dkk_base(self, gateway, clock):
        cache = ExchangeRateCache(gateway, base_currency="EUR", clock=clock)

        assert await cache.rate("USD") == Decimal("6.8") / Decimal("7.5")
        assert await cache.rate("DKK") == Decimal("1") / Decimal("7.5")
        assert await cache.rate("EUR") == Decimal("1")


class TestConcurrency:
    async def test_concurrent_misses_share_one_fetch(self, rate_cache, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.9")
        mock_provider.set_delay(0.05)

        rates = await asyncio.gather(*(rate_cache.rate("USD") for _ in range(10)))

        assert all(r == Decimal("6.9") for r in rates)
        assert mock_provider.calls["fx"] == 1

    async def test_distinct_currencies_fetch_independently(self, rate_cache, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.9")
        mock_provider.fail_fx("EUR", ProviderUnavailableError("mock", "down"))

        usd, eur = await asyncio.gather(rate_cache.lookup("USD"), rate_cache.lookup("EUR"))

        assert usd.source == RateSource.LIVE
        assert eur.source == RateSource.FALLBACK


class TestInvalidate:
    async def test_invalidate_one_currency(self, rate_cache, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.9")
        mock_provider.set_rate("EUR", "DKK", "7.46")
        await rate_cache.rate("USD")
        await rate_cache.rate("EUR")

        rate_cache.invalidate("usd")
        await rate_cache.rate("USD")
        await rate_cache.rate("EUR")

        assert mock_provider.calls["fx"] == 3

    async def test_invalidate_all(self, rate_cache, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.9")
        mock_provider.set_rate("EUR", "DKK", "7.46")
        await rate_cache.rate("USD")
        await rate_cache.rate("EUR")

        rate_cache.invalidate()
        await rate_cache.rate("USD")
        await rate_cache.rate("EUR")

        assert mock_provider.calls["fx"] == 4
