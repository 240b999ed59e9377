# backend/portfolio_tracker/services/market_data/stock_api.py
"""
HTTP client for the Stock API service.

Endpoints used:
    POST /api/batch-price            {"tickers": [...]} -> {TICKER: {"price", "currency"}}
    GET  /api/stock/{ticker}         -> {"price", "currency"}
    GET  /api/dividend/{ticker}      -> {"dividendRate", "trailingAnnualDividendYield",
                                         "currentPrice", "history", "currency", ...}
    GET  /api/exchange-rate/{to}/{from} -> {"rate"}   (1 from = rate to)

The service answers dividend requests from older deployments with only an
`annualDividend` field; it is read as the declared rate.

HTTP and payload errors are mapped onto the MarketDataError family:
    connection errors, 5xx      -> ProviderUnavailableError
    404                         -> TickerNotFoundError
    other 4xx, bad JSON/shape   -> InvalidProviderResponseError
Timeouts are left to the caller (MarketDataGateway uses asyncio.wait_for).
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import httpx

from portfolio_tracker.services.exceptions import (
    InvalidProviderResponseError,
    ProviderUnavailableError,
    TickerNotFoundError,
)
from portfolio_tracker.services.market_data.base import (
    DividendData,
    DividendHistoryPoint,
    PriceDataProvider,
    Quote,
)
from portfolio_tracker.utils.money import to_decimal

logger = logging.getLogger(__name__)


class StockApiProvider(PriceDataProvider):
    """
    PriceDataProvider backed by the Stock API service.

    Args:
        base_url: Service root, e.g. "http://localhost:5001"
        client: Pre-built AsyncClient (tests pass one with a MockTransport)
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient()
        logger.info(f"StockApiProvider initialized (base_url={self._base_url})")

    @property
    def name(self) -> str:
        return "stock_api"

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def get_batch_prices(self, tickers: list[str]) -> dict[str, Quote]:
        if not tickers:
            return {}
        symbols = [t.strip().upper() for t in tickers]
        payload = await self._request("POST", "/api/batch-price", json={"tickers": symbols})
        if not isinstance(payload, dict):
            raise InvalidProviderResponseError(self.name, "batch-price body is not an object")

        quotes: dict[str, Quote] = {}
        for symbol, entry in payload.items():
            quote = self._parse_quote(str(symbol).upper(), entry)
            if quote is not None:
                quotes[quote.ticker] = quote
            else:
                logger.debug(f"Ignoring unusable batch entry for {symbol}: {entry!r}")
        return quotes

    async def get_quote(self, ticker: str) -> Quote:
        symbol = ticker.strip().upper()
        payload = await self._request("GET", f"/api/stock/{symbol}", ticker=symbol)
        quote = self._parse_quote(symbol, payload)
        if quote is None:
            raise InvalidProviderResponseError(self.name, f"no usable price for {symbol}")
        return quote

    async def get_dividend_data(self, ticker: str) -> DividendData:
        symbol = ticker.strip().upper()
        payload = await self._request("GET", f"/api/dividend/{symbol}", ticker=symbol)
        if not isinstance(payload, dict):
            raise InvalidProviderResponseError(self.name, "dividend body is not an object")

        rate = to_decimal(payload.get("dividendRate"))
        if rate is None:
            rate = to_decimal(payload.get("annualDividend"))

        return DividendData(
            dividend_rate=rate,
            trailing_yield=to_decimal(payload.get("trailingAnnualDividendYield")),
            current_price=to_decimal(payload.get("currentPrice")),
            history=tuple(self._parse_history(payload.get("history"))),
            currency=payload.get("currency") or None,
        )

    async def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        source = from_currency.upper()
        target = to_currency.upper()
        payload = await self._request(
            "GET", f"/api/exchange-rate/{target}/{source}", ticker=f"{source}{target}"
        )
        if not isinstance(payload, dict):
            raise InvalidProviderResponseError(self.name, "exchange-rate body is not an object")
        rate = to_decimal(payload.get("rate"))
        if rate is None:
            raise InvalidProviderResponseError(
                self.name, f"missing or non-numeric rate for {source}->{target}"
            )
        return rate

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _request(
            self,
            method: str,
            path: str,
            ticker: str | None = None,
            **kwargs: Any,
    ) -> Any:
        try:
            response = await self._client.request(method, f"{self._base_url}{path}", **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(self.name, f"timeout calling {path}") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(self.name, f"{type(e).__name__}: {e}") from e

        if response.status_code == 404 and ticker is not None:
            raise TickerNotFoundError(ticker=ticker, provider=self.name)
        if response.status_code >= 500:
            raise ProviderUnavailableError(self.name, f"HTTP {response.status_code} from {path}")
        if response.status_code >= 400:
            raise InvalidProviderResponseError(
                self.name, f"HTTP {response.status_code} from {path}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidProviderResponseError(self.name, f"non-JSON body from {path}") from e

    @staticmethod
    def _parse_quote(symbol: str, entry: Any) -> Quote | None:
        if not isinstance(entry, dict):
            return None
        price = to_decimal(entry.get("price"))
        if price is None or price < 0:
            return None
        currency = entry.get("currency")
        return Quote(
            ticker=symbol,
            price=price,
            currency=str(currency).upper() if currency else None,
        )

    @staticmethod
    def _parse_history(raw: Any) -> list[DividendHistoryPoint]:
        if not isinstance(raw, list):
            return []
        points = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            amount = to_decimal(item.get("amount"))
            paid_on = _parse_date(item.get("date"))
            if amount is None or amount < 0 or paid_on is None:
                continue
            points.append(DividendHistoryPoint(date=paid_on, amount=amount))
        return points


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None
