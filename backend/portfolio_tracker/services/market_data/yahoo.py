# backend/portfolio_tracker/services/market_data/yahoo.py
"""
Yahoo Finance market data provider.

Uses the yfinance library. yfinance is blocking, so every call runs in a
worker thread via asyncio.to_thread and the event loop stays free while
Yahoo is slow.

Tickers are passed through unchanged: holdings already carry Yahoo-style
exchange suffixes (NOVO-B.CO, SAP.DE). Currency pairs use Yahoo's FX symbols,
e.g. USDDKK=X for "DKK per USD".

Data mapping:
    quotes    <- Ticker.fast_info (last_price, currency)
    dividends <- Ticker.info (dividendRate, trailingAnnualDividendYield,
                 currentPrice / regularMarketPrice, currency)
                 + Ticker.dividends (pandas Series indexed by payment date)
    FX        <- fast_info.last_price of {FROM}{TO}=X
"""

import asyncio
import logging
import math
from decimal import Decimal
from typing import Any

import pandas as pd
import yfinance as yf

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


class YahooFinanceProvider(PriceDataProvider):
    """PriceDataProvider backed by yfinance."""

    def __init__(self) -> None:
        logger.info("YahooFinanceProvider initialized")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def get_batch_prices(self, tickers: list[str]) -> dict[str, Quote]:
        if not tickers:
            return {}
        return await asyncio.to_thread(self._fetch_batch_prices, tickers)

    async def get_dividend_data(self, ticker: str) -> DividendData:
        return await asyncio.to_thread(self._fetch_dividend_data, ticker)

    async def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        return await asyncio.to_thread(
            self._fetch_exchange_rate, from_currency.upper(), to_currency.upper()
        )

    # =========================================================================
    # BLOCKING IMPLEMENTATIONS (run in worker threads)
    # =========================================================================

    def _fetch_batch_prices(self, tickers: list[str]) -> dict[str, Quote]:
        symbols = [t.strip().upper() for t in tickers]
        logger.debug(f"Fetching {len(symbols)} quotes from Yahoo")

        try:
            batch = yf.Tickers(" ".join(symbols))
        except Exception as e:
            raise ProviderUnavailableError(self.name, str(e)) from e

        quotes: dict[str, Quote] = {}
        for symbol in symbols:
            yf_ticker = batch.tickers.get(symbol)
            if yf_ticker is None:
                continue
            try:
                quote = self._quote_from_fast_info(symbol, yf_ticker.fast_info)
            except Exception as e:
                # One bad symbol must not sink the batch
                logger.debug(f"No Yahoo quote for {symbol}: {e}")
                continue
            if quote is not None:
                quotes[symbol] = quote
        return quotes

    def _fetch_dividend_data(self, ticker: str) -> DividendData:
        symbol = ticker.strip().upper()
        try:
            yf_ticker = yf.Ticker(symbol)
            info = yf_ticker.info
            dividends = yf_ticker.dividends
        except Exception as e:
            raise self._map_error(symbol, e) from e

        if not info:
            raise TickerNotFoundError(ticker=symbol, provider=self.name)

        # Amounts follow info["currency"]; the yield is a ratio and is left as is
        currency, divisor = _major_unit(info.get("currency"))
        rate = _first_decimal(info, "dividendRate")
        price = _first_decimal(info, "currentPrice", "regularMarketPrice", "previousClose")
        return DividendData(
            dividend_rate=rate / divisor if rate is not None else None,
            trailing_yield=_first_decimal(info, "trailingAnnualDividendYield"),
            current_price=price / divisor if price is not None else None,
            history=tuple(
                DividendHistoryPoint(date=p.date, amount=p.amount / divisor)
                for p in self._series_to_history(dividends)
            ),
            currency=currency,
        )

    def _fetch_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        symbol = f"{from_currency}{to_currency}=X"
        try:
            price = yf.Ticker(symbol).fast_info.last_price
        except Exception as e:
            raise self._map_error(symbol, e) from e

        rate = _clean_decimal(price)
        if rate is None:
            raise InvalidProviderResponseError(self.name, f"no rate for {symbol}")
        return rate

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _quote_from_fast_info(symbol: str, fast_info: Any) -> Quote | None:
        price = _clean_decimal(fast_info.last_price)
        if price is None or price < 0:
            return None
        currency, divisor = _major_unit(fast_info.currency)
        return Quote(ticker=symbol, price=price / divisor, currency=currency)

    @staticmethod
    def _series_to_history(series: pd.Series | None) -> list[DividendHistoryPoint]:
        if series is None or series.empty:
            return []
        points = []
        for timestamp, amount in series.items():
            value = _clean_decimal(amount)
            if value is None or value < 0:
                continue
            points.append(DividendHistoryPoint(date=pd.Timestamp(timestamp).date(), amount=value))
        return points

    def _map_error(self, symbol: str, error: Exception) -> Exception:
        message = str(error).lower()
        if "not found" in message or "no data" in message or "delisted" in message:
            return TickerNotFoundError(ticker=symbol, provider=self.name)
        logger.error(f"Yahoo Finance error for {symbol}: {error}")
        return ProviderUnavailableError(self.name, str(error))


def _clean_decimal(value: Any) -> Decimal | None:
    """Decimal from a yfinance number, None for missing or NaN."""
    if value is None:
        return None
    try:
        if math.isnan(float(value)):
            return None
    except (TypeError, ValueError):
        return None
    return to_decimal(value)


def _first_decimal(info: dict, *keys: str) -> Decimal | None:
    for key in keys:
        value = _clean_decimal(info.get(key))
        if value is not None:
            return value
    return None


# Yahoo quotes some listings in minor units: London in pence (GBp / GBX)
MINOR_UNIT_CURRENCIES = {
    "GBp": ("GBP", Decimal("100")),
    "GBX": ("GBP", Decimal("100")),
    "ZAc": ("ZAR", Decimal("100")),
    "ILA": ("ILS", Decimal("100")),
}


def _major_unit(currency: str | None) -> tuple[str | None, Decimal]:
    """(ISO code, divisor) for a Yahoo currency; pence become pounds."""
    if not currency:
        return None, Decimal("1")
    if currency in MINOR_UNIT_CURRENCIES:
        return MINOR_UNIT_CURRENCIES[currency]
    return currency.upper(), Decimal("1")
