# backend/portfolio_tracker/services/dividends/summary.py
"""
Expected vs. received dividend income in the base currency.

Expected income:
    for each holding with a non-zero estimate:
        convert(annual_per_share × shares, holding currency)
    + manual expected entries for tickers NOT currently held (converted)
    monthly average = total / 12

Received income is recorded in the base currency at the moment a dividend
is marked received (it is credited to the cash ledger), so it is summed
as stored, never converted again.

Example (base DKK, USD->DKK 6.8):
    AAPL, 5 shares, dividend_rate 0.96
    -> estimated_annual_total 32.64, monthly_average 2.72
"""

import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from portfolio_tracker.services.constants import MONTHS_PER_YEAR
from portfolio_tracker.services.currency_converter import CurrencyConverter
from portfolio_tracker.services.dividends.estimator import DividendEstimator
from portfolio_tracker.services.dividends.types import (
    DividendSummary,
    ExpectedDividendPosition,
    ManualExpectedDividend,
    ReceivedDividend,
)
from portfolio_tracker.services.market_data.base import DividendData
from portfolio_tracker.services.valuation.types import HoldingSnapshot
from portfolio_tracker.utils.money import ZERO, round_money
from portfolio_tracker.utils.ticker_currency import resolve_currency

logger = logging.getLogger(__name__)


class DividendSummaryAggregator:
    def __init__(
            self,
            estimator: DividendEstimator,
            converter: CurrencyConverter,
            default_currency: str = "USD",
    ) -> None:
        self._estimator = estimator
        self._converter = converter
        self._default_currency = default_currency

    async def expected_positions(
            self,
            holdings: Sequence[HoldingSnapshot],
            dividend_data_by_ticker: Mapping[str, DividendData | None],
            as_of: date | None = None,
    ) -> list[ExpectedDividendPosition]:
        """
        Per-holding expected annual income; holdings with no dividend are left out.

        Conversions for all holdings run concurrently.
        """
        estimated = []
        for holding in holdings:
            data = dividend_data_by_ticker.get(holding.ticker.upper())
            estimate = self._estimator.estimate(holding.ticker, data, as_of=as_of)
            if not estimate.has_dividend:
                continue
            stored = holding.cost_currency or (data.currency if data else None)
            currency = resolve_currency(stored, holding.ticker, self._default_currency)
            estimated.append((holding, estimate, currency))

        totals = await asyncio.gather(*(
            self._converter.convert(estimate.annual_amount_per_share * holding.shares, currency)
            for holding, estimate, currency in estimated
        ))

        return [
            ExpectedDividendPosition(
                ticker=holding.ticker,
                shares=holding.shares,
                annual_amount_per_share=estimate.annual_amount_per_share,
                currency=currency,
                annual_total_in_base=total,
                method=estimate.method,
            )
            for (holding, estimate, currency), total in zip(estimated, totals)
        ]

    async def summarize(
            self,
            holdings: Sequence[HoldingSnapshot],
            dividend_data_by_ticker: Mapping[str, DividendData | None],
            received: Iterable[ReceivedDividend] = (),
            manual_expected: Iterable[ManualExpectedDividend] = (),
            now: datetime | None = None,
    ) -> DividendSummary:
        moment = now or datetime.now()
        today = moment.date()

        held = {h.ticker.upper() for h in holdings}
        manual = [m for m in manual_expected if m.ticker.upper() not in held]

        positions, manual_totals = await asyncio.gather(
            self.expected_positions(holdings, dividend_data_by_ticker, as_of=today),
            self._converter.convert_many((m.total_amount, m.currency) for m in manual),
        )

        expected_total = round_money(
            sum((p.annual_total_in_base for p in positions), ZERO) + sum(manual_totals, ZERO)
        )

        received_list = list(received)
        year_start = date(today.year, 1, 1)
        received_total = round_money(sum((r.total_amount for r in received_list), ZERO))
        this_year_total = round_money(sum(
            (
                r.total_amount
                for r in received_list
                if r.payment_date is not None and year_start <= r.payment_date <= today
            ),
            ZERO,
        ))

        logger.debug(
            f"Dividend summary: {len(positions)} estimated positions, "
            f"{len(manual)} manual, expected total {expected_total}"
        )

        return DividendSummary(
            base_currency=self._converter.base_currency,
            estimated_annual_total=expected_total,
            monthly_average=round_money(expected_total / Decimal(MONTHS_PER_YEAR)),
            expected_positions=positions,
            manual_expected_total=round_money(sum(manual_totals, ZERO)),
            expected_count=len(positions) + len(manual),
            received_total=received_total,
            received_count=len(received_list),
            this_year_total=this_year_total,
        )
