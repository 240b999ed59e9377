# backend/portfolio_tracker/routers/portfolio.py
"""
Holding endpoints and portfolio valuation.

Valuation is computed on every request from the stored holdings and a fresh
batch of quotes; nothing valued is stored. When the quote request fails
outright, positions are shown at cost basis and the response carries a
warning.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import (
    get_ledger_service,
    get_valuation_service,
    require_api_token,
)
from portfolio_tracker.schemas.portfolio import (
    AllocationItemResponse,
    HoldingCreate,
    HoldingMutationResponse,
    HoldingSell,
    HoldingUpdate,
    PortfolioSummaryResponse,
    SaleResponse,
    StockTransactionResponse,
    ValuedPositionResponse,
)
from portfolio_tracker.services.ledger_service import LedgerService
from portfolio_tracker.services.valuation import (
    PortfolioValuation,
    PortfolioValuationService,
    ValuedPosition,
)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/api/portfolio",
    tags=["Portfolio"],
    dependencies=[Depends(require_api_token)],
)


# =============================================================================
# MAPPER FUNCTIONS
# =============================================================================

def _map_position(position: ValuedPosition) -> ValuedPositionResponse:
    holding = position.holding
    return ValuedPositionResponse(
        id=holding.holding_id,
        ticker=holding.ticker,
        shares=holding.shares,
        currency=position.currency_used,
        original_price=position.original_price,
        original_buy_price=holding.cost_basis_per_share,
        cost_per_share_in_base=position.cost_per_share_in_base,
        current_price_in_base=position.current_price_in_base,
        cost_in_base=position.cost_in_base,
        current_value_in_base=position.current_value_in_base,
        gain_in_base=position.gain_in_base,
        gain_percent=position.gain_percent,
        price_source=position.price_source.value,
        buy_date=holding.acquired_at,
        warnings=list(position.warnings),
    )


def _map_summary(valuation: PortfolioValuation) -> PortfolioSummaryResponse:
    summary = valuation.summary
    return PortfolioSummaryResponse(
        base_currency=valuation.base_currency,
        total_cost=summary.total_cost,
        total_value=summary.total_value,
        total_gain=summary.total_gain,
        gain_percent=summary.gain_percent,
        holdings_count=summary.count,
        positions=[_map_position(p) for p in valuation.positions],
        warnings=valuation.warnings,
    )


async def _value_all(
        db: Session,
        ledger: LedgerService,
        valuation_service: PortfolioValuationService,
) -> PortfolioValuation:
    return await valuation_service.value_holdings(ledger.snapshots(db))


# =============================================================================
# VALUATION ENDPOINTS
# =============================================================================

@router.get(
    "",
    response_model=list[ValuedPositionResponse],
    summary="List valued holdings",
)
async def list_portfolio(
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        valuation_service: PortfolioValuationService = Depends(get_valuation_service),
) -> list[ValuedPositionResponse]:
    """Every holding with current price, value and gain in the base currency."""
    valuation = await _value_all(db, ledger, valuation_service)
    return [_map_position(p) for p in valuation.positions]


@router.get(
    "/summary",
    response_model=PortfolioSummaryResponse,
    summary="Portfolio totals",
)
async def get_portfolio_summary(
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        valuation_service: PortfolioValuationService = Depends(get_valuation_service),
) -> PortfolioSummaryResponse:
    """
    Total cost, value and gain over all holdings.

    `gain_percent` is 0 when the total cost is 0.
    """
    return _map_summary(await _value_all(db, ledger, valuation_service))


@router.get(
    "/allocation",
    response_model=list[AllocationItemResponse],
    summary="Allocation by current value",
)
async def get_allocation(
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        valuation_service: PortfolioValuationService = Depends(get_valuation_service),
) -> list[AllocationItemResponse]:
    """Each holding's share of total value, largest first."""
    valuation = await _value_all(db, ledger, valuation_service)
    return [
        AllocationItemResponse(ticker=a.ticker, value=a.value, percentage=a.percentage)
        for a in valuation.allocation
    ]


@router.post(
    "/update-prices",
    response_model=PortfolioSummaryResponse,
    summary="Revalue with fresh prices",
)
async def update_prices(
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        valuation_service: PortfolioValuationService = Depends(get_valuation_service),
) -> PortfolioSummaryResponse:
    """Fetches fresh quotes and returns the valuation. Prices are not stored."""
    return _map_summary(await _value_all(db, ledger, valuation_service))


@router.get(
    "/transactions",
    response_model=list[StockTransactionResponse],
    summary="Buy and sell history",
)
def list_stock_transactions(
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> list[StockTransactionResponse]:
    return [StockTransactionResponse.model_validate(t) for t in ledger.list_transactions(db)]


# =============================================================================
# HOLDING ENDPOINTS
# =============================================================================

@router.post(
    "/add",
    response_model=HoldingMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a holding",
)
async def add_holding(
        payload: HoldingCreate,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        valuation_service: PortfolioValuationService = Depends(get_valuation_service),
) -> HoldingMutationResponse:
    """
    Record a purchase and return the new position valued.

    With `deduct_from_cash`, the purchase cost (in the base currency) is
    withdrawn from the cash balance.
    """
    holding = await ledger.add_holding(
        db,
        ticker=payload.ticker,
        shares=payload.shares,
        buy_price=payload.buy_price,
        buy_date=payload.buy_date,
        notes=payload.notes,
        currency=payload.currency.value if payload.currency else None,
        deduct_from_cash=payload.deduct_from_cash,
    )
    valuation = await valuation_service.value_holdings([ledger.to_snapshot(holding)])
    return HoldingMutationResponse(
        message=f"Added {holding.shares} shares of {holding.ticker}",
        position=_map_position(valuation.positions[0]),
    )


@router.put(
    "/{holding_id}",
    response_model=HoldingMutationResponse,
    summary="Update a holding",
)
async def update_holding(
        holding_id: int,
        payload: HoldingUpdate,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        valuation_service: PortfolioValuationService = Depends(get_valuation_service),
) -> HoldingMutationResponse:
    holding = ledger.update_holding(db, holding_id, shares=payload.shares, notes=payload.notes)
    valuation = await valuation_service.value_holdings([ledger.to_snapshot(holding)])
    return HoldingMutationResponse(
        message=f"Updated {holding.ticker}",
        position=_map_position(valuation.positions[0]),
    )


@router.delete(
    "/{holding_id}",
    response_model=SaleResponse,
    summary="Sell all or part of a holding",
)
async def sell_holding(
        holding_id: int,
        payload: Annotated[HoldingSell | None, Body()] = None,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> SaleResponse:
    """
    Sell shares and credit the proceeds (in the base currency) to cash.

    Without a body, every share is sold at the buy price.

    Raises **400** when selling more shares than held.
    """
    sell = payload or HoldingSell()
    sale = await ledger.sell_holding(
        db,
        holding_id,
        sell_shares=sell.sell_shares,
        sell_price=sell.sell_price,
    )
    verb = "Sold all" if sale["fully_sold"] else "Sold"
    return SaleResponse(
        message=f"{verb} {sale['shares_sold']} shares of {sale['ticker']}",
        **sale,
    )
