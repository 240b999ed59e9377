# backend/portfolio_tracker/routers/dividends.py
"""
Dividend records and the expected/received income summary.

EXPECTED records for held tickers are maintained by the summary endpoint
(one auto-calculated record per ticker, refreshed on every call). Other
records are entered by hand. Marking a record RECEIVED credits its total,
converted to the base currency, to cash.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import (
    get_dividend_service,
    get_ledger_service,
    require_api_token,
)
from portfolio_tracker.schemas.dividends import (
    DividendCreate,
    DividendRecordResponse,
    DividendStatusUpdate,
    DividendSummaryResponse,
    ExpectedDividendResponse,
)
from portfolio_tracker.services.dividends import DividendService, DividendSummaryReport
from portfolio_tracker.services.ledger_service import LedgerService

router = APIRouter(
    prefix="/api/dividends",
    tags=["Dividends"],
    dependencies=[Depends(require_api_token)],
)


# =============================================================================
# MAPPER FUNCTIONS
# =============================================================================

def _map_summary(report: DividendSummaryReport) -> DividendSummaryResponse:
    summary = report.summary
    return DividendSummaryResponse(
        base_currency=summary.base_currency,
        estimated_annual_total=summary.estimated_annual_total,
        monthly_average=summary.monthly_average,
        expected_count=summary.expected_count,
        received_total=summary.received_total,
        received_count=summary.received_count,
        this_year_total=summary.this_year_total,
        expected_positions=[
            ExpectedDividendResponse(
                ticker=p.ticker,
                shares=p.shares,
                annual_amount_per_share=p.annual_amount_per_share,
                currency=p.currency,
                annual_total_in_base=p.annual_total_in_base,
                method=p.method.value,
            )
            for p in summary.expected_positions
        ],
        manual_expected_total=summary.manual_expected_total,
        failures={ticker: reason.value for ticker, reason in report.failures.items()},
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "",
    response_model=list[DividendRecordResponse],
    summary="List dividend records",
)
def list_dividends(
        status_filter: str | None = Query(
            default=None,
            alias="status",
            description="EXPECTED or RECEIVED",
        ),
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> list[DividendRecordResponse]:
    return [DividendRecordResponse.model_validate(r) for r in ledger.list_dividends(db, status_filter)]


@router.get(
    "/summary",
    response_model=DividendSummaryResponse,
    summary="Expected and received dividend income",
)
async def get_dividend_summary(
        db: Session = Depends(get_db),
        service: DividendService = Depends(get_dividend_service),
) -> DividendSummaryResponse:
    """
    Expected annual income from current holdings (plus manual entries for
    tickers not held), and income already received.

    All totals are in the base currency. Tickers whose dividend data could
    not be fetched are listed in `failures` and contribute nothing.
    """
    return _map_summary(await service.build_summary(db))


@router.post(
    "/add",
    response_model=DividendRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a dividend",
)
async def add_dividend(
        payload: DividendCreate,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> DividendRecordResponse:
    record = await ledger.add_dividend(
        db,
        ticker=payload.ticker,
        amount_per_share=payload.amount_per_share,
        shares=payload.shares,
        ex_date=payload.ex_date,
        payment_date=payload.payment_date,
        currency=payload.currency.value if payload.currency else None,
        status=payload.status.value if payload.status else None,
        notes=payload.notes,
    )
    return DividendRecordResponse.model_validate(record)


@router.patch(
    "/{dividend_id}/status",
    response_model=DividendRecordResponse,
    summary="Change a dividend's status",
)
async def update_dividend_status(
        dividend_id: int,
        payload: DividendStatusUpdate,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> DividendRecordResponse:
    """
    Moving a dividend to RECEIVED credits it to cash once.

    Raises **400** for an unknown status, **404** for an unknown id.
    """
    record = await ledger.set_dividend_status(db, dividend_id, payload.status)
    return DividendRecordResponse.model_validate(record)


@router.delete(
    "/{dividend_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a dividend record",
)
def delete_dividend(
        dividend_id: int,
        db: Session = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
) -> Response:
    ledger.delete_dividend(db, dividend_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
