# backend/portfolio_tracker/services/valuation/engine.py
"""
Position- and portfolio-level valuation in the base currency.

Per holding:
    currency      = stored currency, else ticker-suffix inference, else default
    cost/share    = convert(cost_basis_per_share, currency)
    price         = convert(quote price, currency)      (missing quote -> 0)
    cost          = cost/share × shares
    value         = price × shares
    gain          = value - cost
    gain %        = gain / cost × 100, 0 when cost is 0

Worked example (base DKK, USD->DKK 6.5):
    10 shares bought at 100 USD, quote 110 USD
    cost 6500.00, value 7150.00, gain 650.00, gain % 10.00

The engine is pure apart from the converter: it takes plain holdings and
quotes and returns plain results. Fetching quotes and deciding what to do
when the whole quote request fails is PortfolioValuationService's job.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Mapping, Sequence

from portfolio_tracker.services.currency_converter import CurrencyConverter
from portfolio_tracker.services.market_data.base import Quote
from portfolio_tracker.services.valuation.types import (
    AllocationItem,
    HoldingSnapshot,
    PortfolioSummary,
    PriceSource,
    ValuedPosition,
)
from portfolio_tracker.utils.money import ZERO, round_money
from portfolio_tracker.utils.ticker_currency import resolve_currency

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
ZERO_MONEY = round_money(ZERO)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO_MONEY
    return round_money(part / whole * HUNDRED)


class ValuationEngine:
    """
    Stateless valuation over a shared CurrencyConverter.

    Args:
        converter: Converts local amounts into the base currency
        default_currency: Currency assumed when none is stored or inferable
    """

    def __init__(self, converter: CurrencyConverter, default_currency: str = "USD") -> None:
        self._converter = converter
        self._default_currency = default_currency

    def currency_for(self, holding: HoldingSnapshot) -> str:
        return resolve_currency(holding.cost_currency, holding.ticker, self._default_currency)

    # =========================================================================
    # POSITIONS
    # =========================================================================

    async def value(
            self,
            holdings: Sequence[HoldingSnapshot],
            quotes: Mapping[str, Quote],
    ) -> list[ValuedPosition]:
        """
        Value each holding against the given quotes.

        A holding without a quote is priced at 0 and carries a warning.
        """
        await self._converter.warm(self.currency_for(h) for h in holdings)

        async def one(holding: HoldingSnapshot) -> ValuedPosition:
            quote = quotes.get(holding.ticker.upper())
            if quote is None:
                return await self._value_position(
                    holding,
                    ZERO,
                    PriceSource.MISSING,
                    [f"No quote for {holding.ticker}; valued at 0"],
                )
            warnings = []
            currency = self.currency_for(holding)
            if quote.currency and quote.currency != currency:
                warnings.append(
                    f"Quote for {holding.ticker} is in {quote.currency}, "
                    f"holding is recorded in {currency}"
                )
            return await self._value_position(holding, quote.price, PriceSource.QUOTE, warnings)

        return list(await asyncio.gather(*(one(h) for h in holdings)))

    async def value_at_cost(self, holdings: Sequence[HoldingSnapshot]) -> list[ValuedPosition]:
        """Value every holding at its own cost basis (zero gain)."""
        await self._converter.warm(self.currency_for(h) for h in holdings)
        return list(await asyncio.gather(*(
            self._value_position(
                h,
                h.cost_basis_per_share,
                PriceSource.COST_BASIS,
                [f"Prices unavailable; {h.ticker} valued at cost basis"],
            )
            for h in holdings
        )))

    async def _value_position(
            self,
            holding: HoldingSnapshot,
            price: Decimal,
            source: PriceSource,
            warnings: list[str],
    ) -> ValuedPosition:
        currency = self.currency_for(holding)
        shares = holding.shares

        cost_per_share = await self._converter.convert(holding.cost_basis_per_share, currency)
        price_in_base = await self._converter.convert(price, currency)

        cost = round_money(cost_per_share * shares)
        value = round_money(price_in_base * shares)
        gain = value - cost

        if cost <= 0:
            warnings.append(f"Zero cost basis for {holding.ticker}; gain % reported as 0")

        return ValuedPosition(
            holding=holding,
            currency_used=currency,
            original_price=price,
            cost_per_share_in_base=cost_per_share,
            current_price_in_base=price_in_base,
            cost_in_base=cost,
            current_value_in_base=value,
            gain_in_base=gain,
            gain_percent=_percent(gain, cost),
            price_source=source,
            warnings=warnings,
        )

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    @staticmethod
    def summarize(positions: Sequence[ValuedPosition]) -> PortfolioSummary:
        total_cost = sum((p.cost_in_base for p in positions), ZERO_MONEY)
        total_value = sum((p.current_value_in_base for p in positions), ZERO_MONEY)
        total_gain = total_value - total_cost
        return PortfolioSummary(
            total_cost=total_cost,
            total_value=total_value,
            total_gain=total_gain,
            gain_percent=_percent(total_gain, total_cost),
            count=len(positions),
        )

    @staticmethod
    def allocation(positions: Sequence[ValuedPosition]) -> list[AllocationItem]:
        """Share of total value per position, largest first (stable for ties)."""
        total = sum((p.current_value_in_base for p in positions), ZERO_MONEY)
        ranked = sorted(positions, key=lambda p: p.current_value_in_base, reverse=True)
        return [
            AllocationItem(
                ticker=p.ticker,
                value=p.current_value_in_base,
                percentage=_percent(p.current_value_in_base, total),
            )
            for p in ranked
        ]
