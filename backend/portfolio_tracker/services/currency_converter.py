# backend/portfolio_tracker/services/currency_converter.py
"""
Conversion of monetary amounts into the base currency.

    convert(amount, currency) = round(amount × rate(currency), 2)

Missing, zero and negative amounts convert to 0: the converter values
positions and incomes, neither of which is negative. Rates come from the
shared ExchangeRateCache, so conversion never fails because of the upstream.
"""

import asyncio
from decimal import Decimal
from typing import Iterable

from portfolio_tracker.services.fx_rate_cache import ExchangeRateCache
from portfolio_tracker.utils.money import ZERO, round_money, to_decimal


class CurrencyConverter:
    """Stateless apart from the cache it reads rates from."""

    def __init__(self, rate_cache: ExchangeRateCache) -> None:
        self._rates = rate_cache

    @property
    def base_currency(self) -> str:
        return self._rates.base_currency

    async def convert(self, amount: Decimal | float | int | None, currency: str | None) -> Decimal:
        value = to_decimal(amount)
        if value is None or value <= 0:
            return ZERO.quantize(Decimal("0.01"))
        rate = await self._rates.rate(currency)
        return round_money(value * rate)

    async def convert_many(
            self, items: Iterable[tuple[Decimal | float | int | None, str | None]]
    ) -> list[Decimal]:
        """Convert (amount, currency) pairs concurrently, preserving order."""
        return list(await asyncio.gather(*(self.convert(a, c) for a, c in items)))

    async def warm(self, currencies: Iterable[str | None]) -> None:
        """Resolve the rates for all distinct currencies up front, concurrently."""
        distinct = {self._rates.normalize(c) for c in currencies}
        await asyncio.gather(*(self._rates.rate(c) for c in distinct))
