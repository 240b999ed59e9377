# backend/portfolio_tracker/services/dividends/__init__.py
"""Dividend estimation, summaries, and the service that ties them to the ledger."""

from portfolio_tracker.services.dividends.estimator import DividendEstimator, percentile
from portfolio_tracker.services.dividends.service import DividendService, DividendSummaryReport
from portfolio_tracker.services.dividends.summary import DividendSummaryAggregator
from portfolio_tracker.services.dividends.types import (
    DividendEstimate,
    DividendSummary,
    EstimateMethod,
    ExpectedDividendPosition,
    ManualExpectedDividend,
    ReceivedDividend,
)

__all__ = [
    "DividendEstimator",
    "percentile",
    "DividendService",
    "DividendSummaryReport",
    "DividendSummaryAggregator",
    "DividendEstimate",
    "DividendSummary",
    "EstimateMethod",
    "ExpectedDividendPosition",
    "ManualExpectedDividend",
    "ReceivedDividend",
]
