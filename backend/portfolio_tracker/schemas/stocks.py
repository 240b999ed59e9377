# backend/portfolio_tracker/schemas/stocks.py
"""Pydantic schemas for the market data passthrough endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field


class BatchPriceRequest(BaseModel):
    tickers: list[str] = Field(default_factory=list)


class QuoteResponse(BaseModel):
    price: Decimal
    currency: str | None = None


class ExchangeRateResponse(BaseModel):
    """1 `currency` = `rate` `base_currency`."""

    currency: str
    base_currency: str
    rate: Decimal
    source: str = Field(..., description="base, live or fallback")
    from_cache: bool
    failure: str | None = None
