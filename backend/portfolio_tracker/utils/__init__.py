# backend/portfolio_tracker/utils/__init__.py
"""Shared helpers: logging setup, request context, rounding, ticker currencies."""

from portfolio_tracker.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
)
from portfolio_tracker.utils.logging import setup_logging
from portfolio_tracker.utils.money import round_money, round_per_share, to_decimal
from portfolio_tracker.utils.ticker_currency import (
    infer_currency_from_ticker,
    resolve_currency,
)

__all__ = [
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "setup_logging",
    "round_money",
    "round_per_share",
    "to_decimal",
    "infer_currency_from_ticker",
    "resolve_currency",
]
