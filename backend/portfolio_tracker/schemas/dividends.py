# backend/portfolio_tracker/schemas/dividends.py
"""
Pydantic schemas for dividend records, estimates and summaries.

Estimates are per share in the ticker's currency; summary totals are in
the base currency.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from portfolio_tracker.models import Currency, DividendStatus


class DividendCreate(BaseModel):
    ticker: str = Field(..., min_length=1, max_length=32)
    amount_per_share: Decimal = Field(..., gt=0)
    shares: Decimal = Field(..., gt=0)
    ex_date: dt.date
    payment_date: dt.date
    currency: Currency | None = None
    status: DividendStatus | None = None
    notes: str | None = None


class DividendStatusUpdate(BaseModel):
    # Plain str so an unknown status reaches the service and gets its 400
    status: str


class DividendRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticker: str
    amount_per_share: Decimal
    total_amount: Decimal
    currency: Currency
    ex_date: dt.date | None = None
    payment_date: dt.date | None = None
    shares: Decimal
    status: DividendStatus
    notes: str | None = None


class DividendEstimateResponse(BaseModel):
    ticker: str
    annual_amount_per_share: Decimal
    method: str = Field(
        ...,
        description="declared-rate, trailing-yield, outlier-filtered-history, quarterly-fallback or none"
    )
    payments_used: int = 0
    payments_excluded: int = 0
    failure: str | None = Field(default=None, description="Why dividend data could not be fetched")


class ExpectedDividendResponse(BaseModel):
    ticker: str
    shares: Decimal
    annual_amount_per_share: Decimal
    currency: str
    annual_total_in_base: Decimal
    method: str


class DividendSummaryResponse(BaseModel):
    base_currency: str
    estimated_annual_total: Decimal
    monthly_average: Decimal
    expected_count: int
    received_total: Decimal
    received_count: int
    this_year_total: Decimal
    expected_positions: list[ExpectedDividendResponse]
    manual_expected_total: Decimal
    failures: dict[str, str] = Field(
        default_factory=dict,
        description="Tickers whose dividend data could not be fetched, with the reason"
    )
