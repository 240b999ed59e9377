# backend/portfolio_tracker/services/dividends/service.py
"""
Dividend summary orchestration.

Loads holdings and dividend records from the ledger, fetches dividend data
for every held ticker concurrently, runs the aggregator, and refreshes the
auto-calculated EXPECTED record for each held ticker with a dividend.

A ticker whose dividend lookup fails contributes nothing to the expected
total (its estimate method is "none") and is listed in `failures`.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from portfolio_tracker.services.dividends.estimator import DividendEstimator
from portfolio_tracker.services.dividends.summary import DividendSummaryAggregator
from portfolio_tracker.services.dividends.types import (
    DividendEstimate,
    DividendSummary,
    ExpectedDividendPosition,
)
from portfolio_tracker.services.market_data.gateway import MarketDataGateway
from portfolio_tracker.services.result import FailureReason

if TYPE_CHECKING:
    from portfolio_tracker.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


@dataclass
class DividendSummaryReport:
    summary: DividendSummary
    failures: dict[str, FailureReason] = field(default_factory=dict)


class DividendService:
    def __init__(
            self,
            gateway: MarketDataGateway,
            estimator: DividendEstimator,
            aggregator: DividendSummaryAggregator,
            ledger: LedgerService,
    ) -> None:
        self._gateway = gateway
        self._estimator = estimator
        self._aggregator = aggregator
        self._ledger = ledger

    async def estimate_ticker(self, ticker: str) -> tuple[DividendEstimate, FailureReason | None]:
        """Estimate for a single ticker, with the lookup failure reason if any."""
        symbol = ticker.strip().upper()
        result = await self._gateway.fetch_dividend_data(symbol)
        return self._estimator.estimate(symbol, result.value if result.is_ok else None), result.reason

    async def build_summary(self, db: Session, now: datetime | None = None) -> DividendSummaryReport:
        holdings = self._ledger.snapshots(db)
        tickers = [h.ticker.upper() for h in holdings]

        results = await self._gateway.fetch_dividend_data_many(tickers)
        data_by_ticker = {t: r.value for t, r in results.items() if r.is_ok}
        failures = {t: r.reason for t, r in results.items() if not r.is_ok}
        if failures:
            logger.warning(f"Dividend data unavailable for {sorted(failures)}")

        held = set(tickers)
        summary = await self._aggregator.summarize(
            holdings,
            data_by_ticker,
            received=self._ledger.received_dividends(db),
            manual_expected=self._ledger.manual_expected_dividends(db, held),
            now=now,
        )

        self._refresh_expected_records(db, summary.expected_positions, now)
        return DividendSummaryReport(summary=summary, failures=failures)

    def _refresh_expected_records(
            self,
            db: Session,
            positions: list[ExpectedDividendPosition],
            now: datetime | None,
    ) -> None:
        """One EXPECTED record per ticker, with shares summed over all its lots."""
        first_by_ticker: dict[str, ExpectedDividendPosition] = {}
        shares_by_ticker: dict[str, Decimal] = defaultdict(Decimal)
        for position in positions:
            symbol = position.ticker.upper()
            first_by_ticker.setdefault(symbol, position)
            shares_by_ticker[symbol] += position.shares

        today = (now or datetime.now()).date()
        for symbol, position in first_by_ticker.items():
            estimate = DividendEstimate(
                ticker=symbol,
                annual_amount_per_share=position.annual_amount_per_share,
                method=position.method,
            )
            self._ledger.upsert_expected_dividend(
                db, symbol, shares_by_ticker[symbol], estimate, position.currency, today=today
            )
