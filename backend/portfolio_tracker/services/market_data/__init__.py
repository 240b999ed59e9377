# backend/portfolio_tracker/services/market_data/__init__.py
"""
Market data providers and the gateway that isolates their failures.

Usage:
    from portfolio_tracker.services.market_data import create_provider, MarketDataGateway
"""

from portfolio_tracker.services.market_data.base import (
    DividendData,
    DividendHistoryPoint,
    PriceDataProvider,
    Quote,
)
from portfolio_tracker.services.market_data.gateway import MarketDataGateway
from portfolio_tracker.services.market_data.stock_api import StockApiProvider
from portfolio_tracker.services.market_data.yahoo import YahooFinanceProvider


def create_provider(kind: str, stock_api_url: str) -> PriceDataProvider:
    """Build the configured provider ("stock_api" or "yahoo")."""
    if kind == "yahoo":
        return YahooFinanceProvider()
    if kind == "stock_api":
        return StockApiProvider(stock_api_url)
    raise ValueError(f"Unknown market data provider: '{kind}'")


__all__ = [
    "DividendData",
    "DividendHistoryPoint",
    "PriceDataProvider",
    "Quote",
    "MarketDataGateway",
    "StockApiProvider",
    "YahooFinanceProvider",
    "create_provider",
]
