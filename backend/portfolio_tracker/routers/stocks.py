# backend/portfolio_tracker/routers/stocks.py
"""
Market data passthrough: quotes, exchange rates and dividend estimates.

Batch prices and rates are public; the single-ticker quote and the dividend
estimate sit behind the token gate like the rest of the API.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from portfolio_tracker.dependencies import (
    get_dividend_service,
    get_gateway,
    get_rate_cache,
    require_api_token,
)
from portfolio_tracker.schemas.dividends import DividendEstimateResponse
from portfolio_tracker.schemas.stocks import (
    BatchPriceRequest,
    ExchangeRateResponse,
    QuoteResponse,
)
from portfolio_tracker.services.dividends import DividendService
from portfolio_tracker.services.exceptions import ValidationError
from portfolio_tracker.services.fx_rate_cache import ExchangeRateCache
from portfolio_tracker.services.market_data import MarketDataGateway
from portfolio_tracker.services.result import FailureReason

router = APIRouter(
    prefix="/api/stocks",
    tags=["Stocks"],
)


@router.post(
    "/batch-price",
    response_model=dict[str, QuoteResponse],
    summary="Quotes for several tickers",
)
async def batch_price(
        payload: BatchPriceRequest,
        gateway: MarketDataGateway = Depends(get_gateway),
) -> dict[str, QuoteResponse]:
    """
    One upstream request for all tickers. Tickers the provider does not
    know are left out of the result.

    Raises **400** for an empty list, **503** when the provider is down.
    """
    tickers = list(dict.fromkeys(t.strip().upper() for t in payload.tickers if t and t.strip()))
    if not tickers:
        raise ValidationError("At least one ticker is required", field="tickers")

    result = await gateway.fetch_batch_quotes(tickers)
    if not result.is_ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Market data unavailable ({result.reason.value})",
        )
    return {
        ticker: QuoteResponse(price=quote.price, currency=quote.currency)
        for ticker, quote in result.value.items()
    }


@router.get(
    "/rate/{currency}",
    response_model=ExchangeRateResponse,
    summary="Exchange rate to the base currency",
)
async def get_rate(
        currency: str,
        rate_cache: ExchangeRateCache = Depends(get_rate_cache),
) -> ExchangeRateResponse:
    """
    `1 currency = rate base_currency`. Always answers: when the live rate
    cannot be fetched the static fallback is returned with `source=fallback`
    and the reason in `failure`.
    """
    code = currency.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Invalid currency code '{currency}'", field="currency")

    lookup = await rate_cache.lookup(code)
    return ExchangeRateResponse(
        currency=lookup.currency,
        base_currency=rate_cache.base_currency,
        rate=lookup.rate,
        source=lookup.source.value,
        from_cache=lookup.from_cache,
        failure=lookup.failure.value if lookup.failure else None,
    )


@router.get(
    "/dividend/{ticker}",
    response_model=DividendEstimateResponse,
    summary="Annual dividend estimate for a ticker",
    dependencies=[Depends(require_api_token)],
)
async def get_dividend_estimate(
        ticker: str,
        service: DividendService = Depends(get_dividend_service),
) -> DividendEstimateResponse:
    estimate, failure = await service.estimate_ticker(ticker)
    return DividendEstimateResponse(
        ticker=estimate.ticker,
        annual_amount_per_share=estimate.annual_amount_per_share,
        method=estimate.method.value,
        payments_used=estimate.payments_used,
        payments_excluded=estimate.payments_excluded,
        failure=failure.value if failure else None,
    )


# Declared last: the catch-all path would otherwise shadow /rate and /dividend
@router.get(
    "/{ticker}",
    response_model=QuoteResponse,
    summary="Quote for one ticker",
    dependencies=[Depends(require_api_token)],
)
async def get_quote(
        ticker: str,
        gateway: MarketDataGateway = Depends(get_gateway),
) -> QuoteResponse:
    """
    Current price and quote currency.

    Raises **404** when the provider does not know the ticker, **503** when
    the provider is down.
    """
    symbol = ticker.strip().upper()
    result = await gateway.fetch_quote(symbol)
    if not result.is_ok:
        if result.reason == FailureReason.NOT_FOUND:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Ticker '{symbol}' not found",
            )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Market data unavailable ({result.reason.value})",
        )
    return QuoteResponse(price=result.value.price, currency=result.value.currency)
