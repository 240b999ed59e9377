# backend/portfolio_tracker/routers/__init__.py
"""HTTP routers, one per resource."""

from portfolio_tracker.routers import cash, dividends, portfolio, stocks

__all__ = ["cash", "dividends", "portfolio", "stocks"]
