# backend/portfolio_tracker/schemas/cash.py
"""Pydantic schemas for the cash ledger. Amounts are in the base currency."""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from portfolio_tracker.models import CashEntryType


class CashMovement(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str | None = Field(default=None, max_length=500)


class CashEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: Decimal
    entry_type: CashEntryType
    description: str | None = None
    entry_date: dt.datetime


class CashBalanceResponse(BaseModel):
    balance: Decimal
    currency: str
    transactions: list[CashEntryResponse] = Field(
        default_factory=list,
        description="Most recent entries, newest first"
    )


class CashMovementResponse(BaseModel):
    message: str
    transaction: CashEntryResponse
    balance: Decimal
