# backend/portfolio_tracker/services/valuation/__init__.py
"""Portfolio valuation: engine (pure calculations) and service (quote fetching)."""

from portfolio_tracker.services.valuation.engine import ValuationEngine
from portfolio_tracker.services.valuation.service import (
    PortfolioValuation,
    PortfolioValuationService,
)
from portfolio_tracker.services.valuation.types import (
    AllocationItem,
    HoldingSnapshot,
    PortfolioSummary,
    PriceSource,
    ValuedPosition,
)

__all__ = [
    "ValuationEngine",
    "PortfolioValuation",
    "PortfolioValuationService",
    "AllocationItem",
    "HoldingSnapshot",
    "PortfolioSummary",
    "PriceSource",
    "ValuedPosition",
]
