# backend/portfolio_tracker/services/dividends/estimator.py
"""
Regular annual dividend estimation.

Provider data is noisy: declared rates are sometimes missing, and payout
histories mix regular dividends with one-off special dividends that would
wildly inflate a naive trailing sum. The estimator tries the most reliable
source first and falls through:

1. declared-rate             dividend_rate > 0
2. trailing-yield            trailing_yield × current_price > 0
3. outlier-filtered-history  >= 4 payments overall and >= 2 in the trailing
                             12 months: drop amounts outside
                             [Q1 - 1.5·IQR, Q3 + 1.5·IQR] (inclusive) and sum
4. quarterly-fallback        >= 4 payments overall, < 2 in the trailing
                             window: take the last 4 payments, drop those
                             >= 2.5 × their median, and if >= 3 remain
                             annualize as sum × 4 / count
5. none                      0

Example (trailing 12 months: eight payments of 1.00 and one special of 25.00):
    Q1 = Q3 = 1.00, IQR = 0, fences [1.00, 1.00] -> 25.00 dropped -> 8.0000
"""

import logging
import statistics
from datetime import date
from decimal import Decimal
from typing import Sequence

from portfolio_tracker.services.constants import (
    IQR_FENCE_MULTIPLIER,
    MIN_DIVIDEND_HISTORY,
    MIN_TRAILING_PAYMENTS,
    PAYMENTS_PER_YEAR,
    QUARTERLY_MIN_REGULAR,
    QUARTERLY_SAMPLE_SIZE,
    SPECIAL_DIVIDEND_MULTIPLE,
)
from portfolio_tracker.services.dividends.types import DividendEstimate, EstimateMethod
from portfolio_tracker.services.market_data.base import DividendData, DividendHistoryPoint
from portfolio_tracker.utils.money import ZERO, round_per_share

logger = logging.getLogger(__name__)


def percentile(sorted_values: Sequence[Decimal], p: int | Decimal) -> Decimal:
    """
    Linear-interpolation percentile over ascending values.

    The rank is p/100 × (n - 1); the result interpolates between the values
    at the floor and ceiling of that rank.
    """
    if not sorted_values:
        raise ValueError("percentile of empty sequence")
    rank = Decimal(p) / Decimal(100) * (len(sorted_values) - 1)
    lower = int(rank)
    upper = min(lower + 1, len(sorted_values) - 1)
    fraction = rank - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * fraction


def one_year_before(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year - 1, day=28)


class DividendEstimator:
    """Stateless; safe to share."""

    def estimate(
            self,
            ticker: str,
            data: DividendData | None,
            as_of: date | None = None,
    ) -> DividendEstimate:
        if data is None:
            return self._none(ticker)

        if data.dividend_rate is not None and data.dividend_rate > 0:
            return DividendEstimate(
                ticker=ticker,
                annual_amount_per_share=round_per_share(data.dividend_rate),
                method=EstimateMethod.DECLARED_RATE,
            )

        if data.trailing_yield is not None and data.current_price is not None:
            implied = data.trailing_yield * data.current_price
            if implied > 0:
                return DividendEstimate(
                    ticker=ticker,
                    annual_amount_per_share=round_per_share(implied),
                    method=EstimateMethod.TRAILING_YIELD,
                )

        history = [p for p in data.history if p.amount >= 0]
        if len(history) < MIN_DIVIDEND_HISTORY:
            return self._none(ticker)

        today = as_of or date.today()
        start = one_year_before(today)
        trailing = [p for p in history if start < p.date <= today]

        if len(trailing) >= MIN_TRAILING_PAYMENTS:
            return self._iqr_filtered(ticker, trailing)
        return self._quarterly_fallback(ticker, history)

    # =========================================================================
    # HISTORY METHODS
    # =========================================================================

    def _iqr_filtered(self, ticker: str, trailing: list[DividendHistoryPoint]) -> DividendEstimate:
        amounts = sorted(p.amount for p in trailing)
        q1 = percentile(amounts, 25)
        q3 = percentile(amounts, 75)
        iqr = q3 - q1
        low = q1 - IQR_FENCE_MULTIPLIER * iqr
        high = q3 + IQR_FENCE_MULTIPLIER * iqr

        kept = [a for a in amounts if low <= a <= high]
        total = sum(kept, ZERO)
        excluded = len(amounts) - len(kept)
        if excluded:
            logger.debug(
                f"{ticker}: excluded {excluded} of {len(amounts)} trailing payments "
                f"outside [{low}, {high}]"
            )
        if total <= 0:
            return self._none(ticker)
        return DividendEstimate(
            ticker=ticker,
            annual_amount_per_share=round_per_share(total),
            method=EstimateMethod.OUTLIER_FILTERED_HISTORY,
            payments_used=len(kept),
            payments_excluded=excluded,
        )

    def _quarterly_fallback(self, ticker: str, history: list[DividendHistoryPoint]) -> DividendEstimate:
        recent = sorted(history, key=lambda p: p.date)[-QUARTERLY_SAMPLE_SIZE:]
        amounts = [p.amount for p in recent]
        median = statistics.median(amounts)
        regular = [a for a in amounts if a < SPECIAL_DIVIDEND_MULTIPLE * median]

        if len(regular) < QUARTERLY_MIN_REGULAR:
            logger.debug(f"{ticker}: only {len(regular)} regular payments in last {len(amounts)}")
            return self._none(ticker)

        annual = sum(regular, ZERO) * PAYMENTS_PER_YEAR / len(regular)
        return DividendEstimate(
            ticker=ticker,
            annual_amount_per_share=round_per_share(annual),
            method=EstimateMethod.QUARTERLY_FALLBACK,
            payments_used=len(regular),
            payments_excluded=len(amounts) - len(regular),
        )

    @staticmethod
    def _none(ticker: str) -> DividendEstimate:
        return DividendEstimate(
            ticker=ticker,
            annual_amount_per_share=round_per_share(ZERO),
            method=EstimateMethod.NONE,
        )
