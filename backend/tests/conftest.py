# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- A scriptable market data provider and a controllable clock
- The service graph (gateway -> rate cache -> converter -> services) wired
  to that provider
- Sample data factories
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

import asyncio
from datetime import date
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_tracker.models import Base, Currency, DividendRecord, DividendStatus, Holding
from portfolio_tracker.services.circuit_breaker import CircuitBreaker
from portfolio_tracker.services.currency_converter import CurrencyConverter
from portfolio_tracker.services.dividends import (
    DividendEstimator,
    DividendService,
    DividendSummaryAggregator,
)
from portfolio_tracker.services.exceptions import TickerNotFoundError
from portfolio_tracker.services.fx_rate_cache import ExchangeRateCache
from portfolio_tracker.services.ledger_service import LedgerService
from portfolio_tracker.services.market_data import (
    DividendData,
    DividendHistoryPoint,
    MarketDataGateway,
    PriceDataProvider,
    Quote,
)
from portfolio_tracker.services.valuation import (
    HoldingSnapshot,
    PortfolioValuationService,
    ValuationEngine,
)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# MOCK MARKET DATA PROVIDER
# =============================================================================

class MockPriceProvider(PriceDataProvider):
    """
    Mock implementation of PriceDataProvider for testing.

    Quotes, dividend data and exchange rates are configured per test. Errors
    can be injected per operation, and a delay makes every call slow enough
    to trip the gateway timeout.
    """

    def __init__(self):
        self._quotes: dict[str, Quote] = {}
        self._dividends: dict[str, DividendData] = {}
        self._rates: dict[tuple[str, str], Decimal] = {}
        self._errors: dict[str, Exception] = {}
        self._delay = 0.0
        self.calls: dict[str, int] = {"batch": 0, "dividend": 0, "fx": 0}
        self.batch_requests: list[list[str]] = []

    @property
    def name(self) -> str:
        return "mock"

    def add_quote(self, ticker: str, price: str | Decimal, currency: str | None = "USD") -> None:
        """Configure a quote for a ticker."""
        symbol = ticker.upper()
        self._quotes[symbol] = Quote(ticker=symbol, price=Decimal(price), currency=currency)

    def add_dividend_data(self, ticker: str, data: DividendData) -> None:
        self._dividends[ticker.upper()] = data

    def set_rate(self, from_currency: str, to_currency: str, rate: str | Decimal) -> None:
        """Configure 1 from_currency = rate to_currency."""
        self._rates[(from_currency.upper(), to_currency.upper())] = Decimal(rate)

    def fail_batch(self, error: Exception) -> None:
        self._errors["batch"] = error

    def fail_dividend(self, ticker: str, error: Exception) -> None:
        self._errors[f"dividend:{ticker.upper()}"] = error

    def fail_fx(self, currency: str, error: Exception) -> None:
        self._errors[f"fx:{currency.upper()}"] = error

    def set_delay(self, seconds: float) -> None:
        self._delay = seconds

    def clear_errors(self) -> None:
        self._errors.clear()

    async def _pause(self) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)

    async def get_batch_prices(self, tickers: list[str]) -> dict[str, Quote]:
        self.calls["batch"] += 1
        self.batch_requests.append(list(tickers))
        await self._pause()
        if "batch" in self._errors:
            raise self._errors["batch"]
        symbols = [t.upper() for t in tickers]
        return {s: self._quotes[s] for s in symbols if s in self._quotes}

    async def get_dividend_data(self, ticker: str) -> DividendData:
        self.calls["dividend"] += 1
        await self._pause()
        symbol = ticker.upper()
        if f"dividend:{symbol}" in self._errors:
            raise self._errors[f"dividend:{symbol}"]
        if symbol not in self._dividends:
            raise TickerNotFoundError(ticker=symbol, provider=self.name)
        return self._dividends[symbol]

    async def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        self.calls["fx"] += 1
        await self._pause()
        source = from_currency.upper()
        if f"fx:{source}" in self._errors:
            raise self._errors[f"fx:{source}"]
        rate = self._rates.get((source, to_currency.upper()))
        if rate is None:
            raise TickerNotFoundError(ticker=f"{source}{to_currency.upper()}", provider=self.name)
        return rate


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mock_provider() -> MockPriceProvider:
    """Create a fresh mock provider for each test."""
    return MockPriceProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def breaker(clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker(
        name="mock",
        failure_threshold=5,
        recovery_timeout=60.0,
        excluded_exceptions=(TickerNotFoundError,),
        clock=clock,
    )


@pytest.fixture
def gateway(mock_provider: MockPriceProvider, breaker: CircuitBreaker) -> MarketDataGateway:
    return MarketDataGateway(mock_provider, timeout=0.5, fx_timeout=0.2, breaker=breaker)


@pytest.fixture
def rate_cache(gateway: MarketDataGateway, clock: FakeClock) -> ExchangeRateCache:
    """DKK-based cache with a one hour TTL on the fake clock."""
    return ExchangeRateCache(
        gateway,
        base_currency="DKK",
        default_currency="USD",
        ttl_seconds=3600,
        clock=clock,
    )


@pytest.fixture
def converter(rate_cache: ExchangeRateCache) -> CurrencyConverter:
    return CurrencyConverter(rate_cache)


@pytest.fixture
def valuation_engine(converter: CurrencyConverter) -> ValuationEngine:
    return ValuationEngine(converter, default_currency="USD")


@pytest.fixture
def valuation_service(
        gateway: MarketDataGateway,
        valuation_engine: ValuationEngine,
) -> PortfolioValuationService:
    return PortfolioValuationService(gateway, valuation_engine, base_currency="DKK")


@pytest.fixture
def estimator() -> DividendEstimator:
    return DividendEstimator()


@pytest.fixture
def aggregator(estimator: DividendEstimator, converter: CurrencyConverter) -> DividendSummaryAggregator:
    return DividendSummaryAggregator(estimator, converter, default_currency="USD")


@pytest.fixture
def ledger(gateway: MarketDataGateway, converter: CurrencyConverter) -> LedgerService:
    return LedgerService(gateway, converter, default_currency="USD")


@pytest.fixture
def dividend_service(
        gateway: MarketDataGateway,
        estimator: DividendEstimator,
        aggregator: DividendSummaryAggregator,
        ledger: LedgerService,
) -> DividendService:
    return DividendService(gateway, estimator, aggregator, ledger)


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def make_snapshot(
        ticker: str = "AAPL",
        shares: str = "10",
        cost: str = "100",
        currency: str | None = "USD",
        holding_id: int | None = None,
) -> HoldingSnapshot:
    """Factory function for valuation input."""
    return HoldingSnapshot(
        ticker=ticker,
        shares=Decimal(shares),
        cost_basis_per_share=Decimal(cost),
        cost_currency=currency,
        acquired_at=date(2024, 1, 15),
        holding_id=holding_id,
    )


def make_history(*points: tuple[date, str]) -> tuple[DividendHistoryPoint, ...]:
    return tuple(DividendHistoryPoint(date=d, amount=Decimal(a)) for d, a in points)


def create_holding(
        db: Session,
        ticker: str = "AAPL",
        shares: str = "10",
        buy_price: str = "100",
        currency: Currency | None = Currency.USD,
) -> Holding:
    """Factory function for creating Holding rows directly."""
    holding = Holding(
        ticker=ticker,
        shares=Decimal(shares),
        buy_price=Decimal(buy_price),
        currency=currency,
        buy_date=date(2024, 1, 15),
    )
    db.add(holding)
    db.commit()
    db.refresh(holding)
    return holding


def create_dividend(
        db: Session,
        ticker: str = "MSFT",
        amount_per_share: str = "1.00",
        shares: str = "10",
        currency: Currency = Currency.USD,
        status: DividendStatus = DividendStatus.EXPECTED,
        payment_date: date | None = date(2024, 3, 1),
) -> DividendRecord:
    """Factory function for creating DividendRecord rows directly."""
    record = DividendRecord(
        ticker=ticker,
        amount_per_share=Decimal(amount_per_share),
        total_amount=Decimal(amount_per_share) * Decimal(shares),
        currency=currency,
        ex_date=payment_date,
        payment_date=payment_date,
        shares=Decimal(shares),
        status=status,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
