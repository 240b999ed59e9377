# backend/portfolio_tracker/services/valuation/service.py
"""
Portfolio valuation orchestration.

Fetches quotes for all holdings in one batched request and hands them to
ValuationEngine. Degradation policy:
- Batch request fails (timeout, upstream down, circuit open): every position
  is valued at its own cost basis, so gains read 0 rather than -100%.
- Batch succeeds but a ticker is missing from it: that position is priced
  at 0 (ValuationEngine.value).
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from portfolio_tracker.services.market_data.gateway import MarketDataGateway
from portfolio_tracker.services.result import FailureReason
from portfolio_tracker.services.valuation.engine import ValuationEngine
from portfolio_tracker.services.valuation.types import (
    AllocationItem,
    HoldingSnapshot,
    PortfolioSummary,
    ValuedPosition,
)

logger = logging.getLogger(__name__)


@dataclass
class PortfolioValuation:
    positions: list[ValuedPosition]
    summary: PortfolioSummary
    allocation: list[AllocationItem]
    base_currency: str
    quote_failure: FailureReason | None = None
    warnings: list[str] = field(default_factory=list)


class PortfolioValuationService:
    def __init__(self, gateway: MarketDataGateway, engine: ValuationEngine, base_currency: str) -> None:
        self._gateway = gateway
        self._engine = engine
        self._base_currency = base_currency

    async def value_holdings(self, holdings: Sequence[HoldingSnapshot]) -> PortfolioValuation:
        if not holdings:
            return PortfolioValuation(
                positions=[],
                summary=self._engine.summarize([]),
                allocation=[],
                base_currency=self._base_currency,
            )

        tickers = list(dict.fromkeys(h.ticker.upper() for h in holdings))
        result = await self._gateway.fetch_batch_quotes(tickers)

        warnings: list[str] = []
        if result.is_ok:
            positions = await self._engine.value(holdings, result.value)
        else:
            logger.warning(
                f"Batch quote request failed ({result.reason.value}); "
                f"valuing {len(holdings)} holdings at cost basis"
            )
            warnings.append(f"Live prices unavailable ({result.reason.value}); showing cost basis")
            positions = await self._engine.value_at_cost(holdings)

        return PortfolioValuation(
            positions=positions,
            summary=self._engine.summarize(positions),
            allocation=self._engine.allocation(positions),
            base_currency=self._base_currency,
            quote_failure=result.reason,
            warnings=warnings,
        )
