# backend/portfolio_tracker/services/market_data/base.py
"""
Abstract interface for market data providers.

A provider answers three questions for the rest of the system:
- What does a list of tickers trade at right now? (one batched call)
- What does a ticker pay in dividends? (declared rate, yield, history)
- How many units of one currency buy one unit of another?

Providers are async and raise the MarketDataError family on failure. They do
not time out, retry or fall back on their own: MarketDataGateway wraps every
call with a timeout and a circuit breaker and turns failures into tagged
FetchResults.

Implementations:
    StockApiProvider     - HTTP client for the Stock API service (httpx)
    YahooFinanceProvider - yfinance, run in worker threads
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from portfolio_tracker.services.exceptions import TickerNotFoundError


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Latest price for a ticker.

    Attributes:
        ticker: Symbol as requested, uppercase
        price: Last price in `currency` (>= 0)
        currency: ISO code the price is quoted in, if the provider reported one
    """

    ticker: str
    price: Decimal
    currency: str | None = None

    def __post_init__(self) -> None:
        if not self.ticker:
            raise ValueError("ticker is required")
        if self.price < 0:
            raise ValueError("price cannot be negative")


@dataclass(frozen=True)
class DividendHistoryPoint:
    date: date
    amount: Decimal


@dataclass(frozen=True)
class DividendData:
    """
    Raw dividend information for one ticker.

    Any field may be missing; the estimator decides which one to trust.

    Attributes:
        dividend_rate: Declared forward annual dividend per share
        trailing_yield: Trailing 12-month yield as a fraction (0.0055 = 0.55%)
        current_price: Price used together with trailing_yield
        history: Past payments, any order
        currency: Currency the per-share amounts are in
    """

    dividend_rate: Decimal | None = None
    trailing_yield: Decimal | None = None
    current_price: Decimal | None = None
    history: tuple[DividendHistoryPoint, ...] = field(default_factory=tuple)
    currency: str | None = None


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================

class PriceDataProvider(ABC):
    """
    Contract for quote, dividend and exchange-rate sources.

    Raises (all methods):
        ProviderUnavailableError: Network failure or upstream server error
        TickerNotFoundError: Unknown symbol or currency pair
        InvalidProviderResponseError: Upstream answered with unusable data
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier used in logs and errors."""

    @abstractmethod
    async def get_batch_prices(self, tickers: list[str]) -> dict[str, Quote]:
        """
        Fetch quotes for many tickers in one round trip.

        Tickers the provider could not price are simply absent from the
        returned mapping; that is not an error.
        """

    @abstractmethod
    async def get_dividend_data(self, ticker: str) -> DividendData:
        """Fetch declared rate, trailing yield and payout history."""

    @abstractmethod
    async def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Return X such that 1 `from_currency` = X `to_currency`."""

    async def get_quote(self, ticker: str) -> Quote:
        """Fetch a single quote. Defaults to a one-element batch."""
        quotes = await self.get_batch_prices([ticker])
        quote = quotes.get(ticker.upper())
        if quote is None:
            raise TickerNotFoundError(ticker=ticker, provider=self.name)
        return quote

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""
