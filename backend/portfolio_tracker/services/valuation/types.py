# backend/portfolio_tracker/services/valuation/types.py
"""
Internal data types for portfolio valuation.

These dataclasses are used by the valuation engine and the dividend summary.
They are NOT Pydantic schemas; those live in portfolio_tracker/schemas/.

Design Principles:
- Decimal for every monetary value, never float
- Base-currency values are rounded to 2 decimals at the point they are made
- Warnings accumulate for data quality tracking instead of raising

Type Hierarchy:
    HoldingSnapshot   - What the record store knows about one position
    ValuedPosition    - One position enriched with price, value and gain
    PortfolioSummary  - Aggregate totals over all positions
    AllocationItem    - One position's share of total value
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class PriceSource(str, Enum):
    QUOTE = "quote"
    MISSING = "missing"
    COST_BASIS = "cost_basis"


@dataclass(frozen=True)
class HoldingSnapshot:
    """
    Input to valuation: one held position.

    Attributes:
        ticker: Symbol, may carry an exchange suffix (NOVO-B.CO)
        shares: Shares held (> 0)
        cost_basis_per_share: Purchase price per share in cost_currency
        cost_currency: Stored currency, None if unknown (inferred from ticker)
        acquired_at: Purchase date
        holding_id: Record-store id, when the snapshot came from the database
    """

    ticker: str
    shares: Decimal
    cost_basis_per_share: Decimal
    cost_currency: str | None = None
    acquired_at: date | None = None
    holding_id: int | None = None


@dataclass
class ValuedPosition:
    """
    A holding valued in the base currency.

    Attributes:
        holding: The input snapshot
        currency_used: Currency the price and cost were converted from
        original_price: Price in currency_used before conversion
        cost_per_share_in_base: cost_basis_per_share converted
        current_price_in_base: Price converted
        cost_in_base: cost_per_share_in_base × shares
        current_value_in_base: current_price_in_base × shares
        gain_in_base: current value - cost
        gain_percent: gain / cost × 100 (0 when cost is 0), 2 decimals
        price_source: Where original_price came from
        warnings: Data quality notes (missing quote, zero cost)
    """

    holding: HoldingSnapshot
    currency_used: str
    original_price: Decimal
    cost_per_share_in_base: Decimal
    current_price_in_base: Decimal
    cost_in_base: Decimal
    current_value_in_base: Decimal
    gain_in_base: Decimal
    gain_percent: Decimal
    price_source: PriceSource = PriceSource.QUOTE
    warnings: list[str] = field(default_factory=list)

    @property
    def ticker(self) -> str:
        return self.holding.ticker


@dataclass(frozen=True)
class PortfolioSummary:
    total_cost: Decimal
    total_value: Decimal
    total_gain: Decimal
    gain_percent: Decimal
    count: int


@dataclass(frozen=True)
class AllocationItem:
    ticker: str
    value: Decimal
    percentage: Decimal
