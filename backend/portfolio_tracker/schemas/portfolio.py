# backend/portfolio_tracker/schemas/portfolio.py
"""
Pydantic schemas for holdings and portfolio valuation.

All *_in_base amounts are in the configured base currency (DKK by default).
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from portfolio_tracker.models import Currency, StockTransactionType


# =============================================================================
# REQUESTS
# =============================================================================

class HoldingCreate(BaseModel):
    ticker: str = Field(..., min_length=1, max_length=32, description="Symbol, e.g. AAPL or NOVO-B.CO")
    shares: Decimal = Field(..., gt=0)
    buy_price: Decimal = Field(..., gt=0, description="Price per share in the holding's currency")
    buy_date: dt.date | None = Field(default=None, description="Defaults to today")
    currency: Currency | None = Field(
        default=None,
        description="Trading currency; detected from the provider when omitted"
    )
    notes: str | None = None
    deduct_from_cash: bool = Field(
        default=False,
        description="Withdraw the purchase cost from the cash balance"
    )


class HoldingUpdate(BaseModel):
    shares: Decimal | None = Field(default=None, gt=0)
    notes: str | None = None


class HoldingSell(BaseModel):
    sell_shares: Decimal | None = Field(default=None, gt=0, description="Defaults to all shares")
    sell_price: Decimal | None = Field(default=None, ge=0, description="Defaults to the buy price")


# =============================================================================
# RESPONSES
# =============================================================================

class HoldingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticker: str
    shares: Decimal
    buy_price: Decimal
    currency: Currency | None
    buy_date: dt.date
    notes: str | None = None


class ValuedPositionResponse(BaseModel):
    """One holding valued in the base currency."""

    id: int | None = Field(default=None, description="Holding id")
    ticker: str
    shares: Decimal
    currency: str = Field(..., description="Currency prices were converted from")
    original_price: Decimal = Field(..., description="Price in the holding's currency")
    original_buy_price: Decimal
    cost_per_share_in_base: Decimal
    current_price_in_base: Decimal
    cost_in_base: Decimal
    current_value_in_base: Decimal
    gain_in_base: Decimal
    gain_percent: Decimal
    price_source: str = Field(..., description="quote, missing or cost_basis")
    buy_date: dt.date | None = None
    warnings: list[str] = Field(default_factory=list)


class PortfolioSummaryResponse(BaseModel):
    base_currency: str
    total_cost: Decimal
    total_value: Decimal
    total_gain: Decimal
    gain_percent: Decimal
    holdings_count: int
    positions: list[ValuedPositionResponse]
    warnings: list[str] = Field(default_factory=list)


class AllocationItemResponse(BaseModel):
    ticker: str
    value: Decimal
    percentage: Decimal


class HoldingMutationResponse(BaseModel):
    message: str
    position: ValuedPositionResponse


class SaleResponse(BaseModel):
    message: str
    ticker: str
    shares_sold: Decimal
    shares_remaining: Decimal
    proceeds: Decimal = Field(..., description="In the holding's currency")
    proceeds_in_base: Decimal
    fully_sold: bool


class StockTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticker: str
    transaction_type: StockTransactionType
    shares: Decimal
    price: Decimal
    currency: Currency
    total_value: Decimal
    transaction_date: dt.date
    notes: str | None = None
