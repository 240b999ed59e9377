# backend/portfolio_tracker/services/dividends/types.py
"""
Internal data types for dividend estimation and summaries.

Per-share figures carry 4 decimals, base-currency totals 2.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class EstimateMethod(str, Enum):
    DECLARED_RATE = "declared-rate"
    TRAILING_YIELD = "trailing-yield"
    OUTLIER_FILTERED_HISTORY = "outlier-filtered-history"
    QUARTERLY_FALLBACK = "quarterly-fallback"
    NONE = "none"


@dataclass(frozen=True)
class DividendEstimate:
    """
    Estimated regular annual dividend per share.

    Attributes:
        ticker: Symbol the estimate is for
        annual_amount_per_share: Estimate (>= 0), 4 decimals
        method: Which rule produced it
        payments_used: History payments that contributed (history methods only)
        payments_excluded: History payments discarded as special dividends
    """

    ticker: str
    annual_amount_per_share: Decimal
    method: EstimateMethod
    payments_used: int = 0
    payments_excluded: int = 0

    @property
    def has_dividend(self) -> bool:
        return self.annual_amount_per_share > 0


@dataclass(frozen=True)
class ReceivedDividend:
    """A dividend already paid; total_amount is in the base currency."""

    ticker: str
    total_amount: Decimal
    payment_date: date | None


@dataclass(frozen=True)
class ManualExpectedDividend:
    """An expected dividend entered by hand for a ticker that is not held."""

    ticker: str
    total_amount: Decimal
    currency: str | None


@dataclass(frozen=True)
class ExpectedDividendPosition:
    ticker: str
    shares: Decimal
    annual_amount_per_share: Decimal
    currency: str
    annual_total_in_base: Decimal
    method: EstimateMethod


@dataclass
class DividendSummary:
    base_currency: str
    estimated_annual_total: Decimal
    monthly_average: Decimal
    expected_positions: list[ExpectedDividendPosition] = field(default_factory=list)
    manual_expected_total: Decimal = Decimal("0.00")
    expected_count: int = 0
    received_total: Decimal = Decimal("0.00")
    received_count: int = 0
    this_year_total: Decimal = Decimal("0.00")
