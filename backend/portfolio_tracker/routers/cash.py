# backend/portfolio_tracker/routers/cash.py
"""
Cash ledger endpoints. The balance is the signed sum of all entries, in
the base currency.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from portfolio_tracker.config import settings
from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import get_ledger_service, require_api_token
from portfolio_tracker.schemas.cash import (
    CashBalanceResponse,
    CashEntryResponse,
    CashMovement,
    CashMovementResponse,
)
from portfolio_tracker.services.ledger_service import LedgerService

RECENT_ENTRIES = 10

router = APIRouter(
    prefix="/api/cash",
    tags=["Cash"],
    dependencies=[Depends(require_api_token)],
)


@router.get(
    "/balance",
    response_model=CashBalanceResponse,
    summary="Cash balance with recent entries",
)
def get_balance(
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> CashBalanceResponse:
    return CashBalanceResponse(
        balance=ledger.cash_balance(db),
        currency=settings.base_currency,
        transactions=[
            CashEntryResponse.model_validate(e)
            for e in ledger.list_cash_entries(db, limit=RECENT_ENTRIES)
        ],
    )


@router.post(
    "/deposit",
    response_model=CashMovementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Deposit cash",
)
def deposit(
        payload: CashMovement,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> CashMovementResponse:
    entry = ledger.deposit(db, payload.amount, payload.description)
    return CashMovementResponse(
        message=f"Deposited {entry.amount} {settings.base_currency}",
        transaction=CashEntryResponse.model_validate(entry),
        balance=ledger.cash_balance(db),
    )


@router.post(
    "/withdraw",
    response_model=CashMovementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Withdraw cash",
)
def withdraw(
        payload: CashMovement,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> CashMovementResponse:
    """Raises **400** when the amount exceeds the balance."""
    entry = ledger.withdraw(db, payload.amount, payload.description)
    return CashMovementResponse(
        message=f"Withdrew {entry.amount} {settings.base_currency}",
        transaction=CashEntryResponse.model_validate(entry),
        balance=ledger.cash_balance(db),
    )


@router.get(
    "/transactions",
    response_model=list[CashEntryResponse],
    summary="All cash entries, newest first",
)
def list_cash_transactions(
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> list[CashEntryResponse]:
    return [CashEntryResponse.model_validate(e) for e in ledger.list_cash_entries(db)]
