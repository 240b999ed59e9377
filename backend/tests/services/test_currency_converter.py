# tests/services/test_currency_converter.py
"""
Tests for CurrencyConverter: amount × rate, rounded to 2 decimals, with
missing and non-positive amounts converting to 0.
"""

from decimal import Decimal

import pytest

from portfolio_tracker.services.exceptions import ProviderUnavailableError


class TestConvert:
    async def test_base_currency_amount_is_only_rounded(self, converter, mock_provider):
        assert await converter.convert(Decimal("100"), "DKK") == Decimal("100.00")
        assert await converter.convert(Decimal("0.125"), "DKK") == Decimal("0.13")
        assert mock_provider.calls["fx"] == 0

    async def test_live_rate(self, converter, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.5")

        assert await converter.convert(Decimal("100"), "USD") == Decimal("650.00")

    async def test_fallback_rate_when_upstream_down(self, converter, mock_provider):
        mock_provider.fail_fx("USD", ProviderUnavailableError("mock", "down"))

        assert await converter.convert(Decimal("100"), "USD") == Decimal("680.00")

    @pytest.mark.parametrize("amount", [None, 0, Decimal("0"), Decimal("-5"), -5.0])
    async def test_missing_or_non_positive_amount_is_zero(self, converter, mock_provider, amount):
        result = await converter.convert(amount, "USD")

        assert result == Decimal("0.00")
        assert str(result) == "0.00"
        assert mock_provider.calls["fx"] == 0

    async def test_float_amount_is_converted_exactly(self, converter, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.8")

        # 10.1 × 6.8 = 68.68, no binary float noise
        assert await converter.convert(10.1, "USD") == Decimal("68.68")

    async def test_rounds_to_cents(self, converter, mock_provider):
        mock_provider.set_rate("EUR", "DKK", "7.5")

        # 0.003 × 7.5 = 0.0225 -> 0.02; 0.007 × 7.5 = 0.0525 -> 0.05
        assert await converter.convert(Decimal("0.003"), "EUR") == Decimal("0.02")
        assert await converter.convert(Decimal("0.007"), "EUR") == Decimal("0.05")
        # 0.0046 × 7.5 = 0.0345 -> 0.03
        assert await converter.convert(Decimal("0.0046"), "EUR") == Decimal("0.03")

    async def test_missing_currency_means_base(self, converter):
        assert await converter.convert(Decimal("42.5"), None) == Decimal("42.50")


class TestBatch:
    async def test_convert_many_preserves_order(self, converter, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.5")
        mock_provider.set_rate("EUR", "DKK", "7.5")

        results = await converter.convert_many([
            (Decimal("10"), "EUR"),
            (Decimal("10"), "USD"),
            (Decimal("10"), "DKK"),
        ])

        assert results == [Decimal("75.00"), Decimal("65.00"), Decimal("10.00")]

    async def test_warm_fetches_each_distinct_currency_once(self, converter, mock_provider):
        mock_provider.set_rate("USD", "DKK", "6.5")
        mock_provider.set_rate("EUR", "DKK", "7.5")

        await converter.warm(["USD", "usd", None, "EUR", "DKK", "EUR"])

        assert mock_provider.calls["fx"] == 2

    def test_base_currency(self, converter):
        assert converter.base_currency == "DKK"
