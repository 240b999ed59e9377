# backend/portfolio_tracker/services/ledger_service.py
"""
Bookkeeping over the record store: holdings, stock transactions, cash, dividends.

Every operation here writes entries only. Nothing is traded or settled.
Cash is kept in the base currency: sale proceeds, purchase withdrawals and
received dividends are converted when they are recorded.

Design Principles:
- No HTTP knowledge: raises ServiceError subclasses
- Caller owns the Session; each public write commits once
- Decimal throughout; cash amounts rounded to 2 decimals

Usage:
    ledger = LedgerService(gateway, converter, default_currency="USD")
    holding = await ledger.add_holding(db, "AAPL", Decimal("10"), Decimal("150"))
    balance = ledger.cash_balance(db)
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from portfolio_tracker.models import (
    CashEntry,
    CashEntryType,
    Currency,
    DividendRecord,
    DividendStatus,
    Holding,
    StockTransaction,
    StockTransactionType,
)
from portfolio_tracker.services.currency_converter import CurrencyConverter
from portfolio_tracker.services.dividends.types import (
    DividendEstimate,
    ManualExpectedDividend,
    ReceivedDividend,
)
from portfolio_tracker.services.exceptions import (
    DividendNotFoundError,
    HoldingNotFoundError,
    InsufficientCashError,
    InsufficientSharesError,
    InvalidStatusError,
    ValidationError,
)
from portfolio_tracker.services.market_data.gateway import MarketDataGateway
from portfolio_tracker.services.valuation.types import HoldingSnapshot
from portfolio_tracker.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)

AUTO_NOTE_PREFIX = "Auto-calculated"


def _to_currency(code: str | None, field: str = "currency") -> Currency | None:
    if code is None:
        return None
    try:
        return Currency(code.strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unsupported currency '{code}'. "
            f"Expected one of: {', '.join(c.value for c in Currency)}",
            field=field,
        ) from None


def _first_of_month_ahead(today: date, months: int) -> date:
    index = today.month - 1 + months
    return date(today.year + index // 12, index % 12 + 1, 1)


def _signed(entry: CashEntry) -> Decimal:
    if entry.entry_type == CashEntryType.WITHDRAWAL:
        return -entry.amount
    return entry.amount


class LedgerService:
    def __init__(
            self,
            gateway: MarketDataGateway,
            converter: CurrencyConverter,
            default_currency: str = "USD",
    ) -> None:
        self._gateway = gateway
        self._converter = converter
        self._default_currency = Currency(default_currency)

    # =========================================================================
    # HOLDINGS
    # =========================================================================

    def list_holdings(self, db: Session) -> list[Holding]:
        return list(db.scalars(select(Holding).order_by(Holding.id)))

    def get_holding(self, db: Session, holding_id: int) -> Holding:
        holding = db.get(Holding, holding_id)
        if holding is None:
            raise HoldingNotFoundError(holding_id)
        return holding

    def snapshots(self, db: Session) -> list[HoldingSnapshot]:
        """Holdings as plain valuation input."""
        return [self.to_snapshot(h) for h in self.list_holdings(db)]

    @staticmethod
    def to_snapshot(holding: Holding) -> HoldingSnapshot:
        return HoldingSnapshot(
            ticker=holding.ticker,
            shares=holding.shares,
            cost_basis_per_share=holding.buy_price,
            cost_currency=holding.currency.value if holding.currency else None,
            acquired_at=holding.buy_date,
            holding_id=holding.id,
        )

    async def add_holding(
            self,
            db: Session,
            ticker: str,
            shares: Decimal,
            buy_price: Decimal,
            buy_date: date | None = None,
            notes: str | None = None,
            currency: str | None = None,
            deduct_from_cash: bool = False,
    ) -> Holding:
        """
        Record a purchase.

        The currency is taken from the request, else from the provider's
        quote, else the default currency. With deduct_from_cash, the cost is
        withdrawn from cash (converted to the base currency).
        """
        symbol = (ticker or "").strip().upper()
        if not symbol:
            raise ValidationError("Ticker is required", field="ticker")
        if shares is None or shares <= 0:
            raise ValidationError("Shares must be greater than 0", field="shares")
        if buy_price is None or buy_price <= 0:
            raise ValidationError("Buy price must be greater than 0", field="buy_price")

        resolved = _to_currency(currency) or await self._detect_currency(symbol)
        when = buy_date or date.today()

        holding = Holding(
            ticker=symbol,
            shares=shares,
            buy_price=buy_price,
            currency=resolved,
            buy_date=when,
            notes=notes,
        )
        db.add(holding)
        db.add(StockTransaction(
            ticker=symbol,
            transaction_type=StockTransactionType.BUY,
            shares=shares,
            price=buy_price,
            currency=resolved,
            total_value=round_money(shares * buy_price),
            transaction_date=when,
        ))

        if deduct_from_cash:
            cost = await self._converter.convert(shares * buy_price, resolved.value)
            if cost > 0:
                db.add(CashEntry(
                    amount=cost,
                    entry_type=CashEntryType.WITHDRAWAL,
                    description=f"Stock purchase: {symbol} - {shares} shares @ {buy_price} {resolved.value}",
                ))

        db.commit()
        db.refresh(holding)
        logger.info(f"Added holding {symbol}: {shares} @ {buy_price} {resolved.value}")
        return holding

    async def _detect_currency(self, ticker: str) -> Currency:
        result = await self._gateway.fetch_quote_currency(ticker)
        if result.is_ok:
            try:
                return Currency(result.value.upper())
            except ValueError:
                logger.warning(
                    f"Provider currency {result.value} for {ticker} is not supported; "
                    f"using {self._default_currency.value}"
                )
        else:
            logger.warning(
                f"Could not detect currency for {ticker} ({result.reason.value}); "
                f"using {self._default_currency.value}"
            )
        return self._default_currency

    def update_holding(
            self,
            db: Session,
            holding_id: int,
            shares: Decimal | None = None,
            notes: str | None = None,
    ) -> Holding:
        holding = self.get_holding(db, holding_id)
        if shares is not None:
            if shares <= 0:
                raise ValidationError("Shares must be greater than 0", field="shares")
            holding.shares = shares
        if notes is not None:
            holding.notes = notes
        db.commit()
        db.refresh(holding)
        return holding

    async def sell_holding(
            self,
            db: Session,
            holding_id: int,
            sell_shares: Decimal | None = None,
            sell_price: Decimal | None = None,
    ) -> dict:
        """
        Record a full or partial sale.

        Defaults: all shares, at the buy price. Proceeds are credited to cash
        as a SALE entry in the base currency.

        Returns:
            dict with ticker, shares_sold, shares_remaining, proceeds,
            proceeds_in_base and fully_sold
        """
        holding = self.get_holding(db, holding_id)
        quantity = holding.shares if sell_shares is None else sell_shares
        price = holding.buy_price if sell_price is None else sell_price

        if quantity <= 0:
            raise ValidationError("Shares to sell must be greater than 0", field="sell_shares")
        if price < 0:
            raise ValidationError("Sell price cannot be negative", field="sell_price")
        if quantity > holding.shares:
            raise InsufficientSharesError(holding.ticker, quantity, holding.shares)

        currency = holding.currency or self._default_currency
        proceeds = round_money(quantity * price)
        proceeds_in_base = await self._converter.convert(proceeds, currency.value)

        if proceeds_in_base > 0:
            db.add(CashEntry(
                amount=proceeds_in_base,
                entry_type=CashEntryType.SALE,
                description=f"Sale of {quantity} shares of {holding.ticker} @ {price} {currency.value}",
            ))
        db.add(StockTransaction(
            ticker=holding.ticker,
            transaction_type=StockTransactionType.SELL,
            shares=quantity,
            price=price,
            currency=currency,
            total_value=proceeds,
            transaction_date=date.today(),
        ))

        ticker = holding.ticker
        remaining = holding.shares - quantity
        fully_sold = remaining == 0
        if fully_sold:
            db.delete(holding)
        else:
            holding.shares = remaining
        db.commit()

        logger.info(
            f"Sold {quantity} {ticker} @ {price} ({'full' if fully_sold else 'partial'}), "
            f"proceeds {proceeds_in_base} {self._converter.base_currency}"
        )
        return {
            "ticker": ticker,
            "shares_sold": quantity,
            "shares_remaining": remaining,
            "proceeds": proceeds,
            "proceeds_in_base": proceeds_in_base,
            "fully_sold": fully_sold,
        }

    def list_transactions(self, db: Session) -> list[StockTransaction]:
        return list(db.scalars(
            select(StockTransaction).order_by(
                StockTransaction.transaction_date.desc(), StockTransaction.id.desc()
            )
        ))

    # =========================================================================
    # CASH
    # =========================================================================

    def list_cash_entries(self, db: Session, limit: int | None = None) -> list[CashEntry]:
        stmt = select(CashEntry).order_by(CashEntry.entry_date.desc(), CashEntry.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(db.scalars(stmt))

    def cash_balance(self, db: Session) -> Decimal:
        return round_money(sum((_signed(e) for e in db.scalars(select(CashEntry))), ZERO))

    def deposit(self, db: Session, amount: Decimal, description: str | None = None) -> CashEntry:
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        entry = CashEntry(
            amount=round_money(amount),
            entry_type=CashEntryType.DEPOSIT,
            description=description or "Cash deposit",
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        logger.info(f"Cash deposit {entry.amount}")
        return entry

    def withdraw(self, db: Session, amount: Decimal, description: str | None = None) -> CashEntry:
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        balance = self.cash_balance(db)
        if amount > balance:
            raise InsufficientCashError(requested=amount, available=balance)
        entry = CashEntry(
            amount=round_money(amount),
            entry_type=CashEntryType.WITHDRAWAL,
            description=description or "Cash withdrawal",
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        logger.info(f"Cash withdrawal {entry.amount}")
        return entry

    # =========================================================================
    # DIVIDENDS
    # =========================================================================

    def list_dividends(self, db: Session, status: str | None = None) -> list[DividendRecord]:
        stmt = select(DividendRecord)
        if status:
            stmt = stmt.where(DividendRecord.status == self._parse_status(status))
        stmt = stmt.order_by(DividendRecord.ex_date.desc(), DividendRecord.id.desc())
        return list(db.scalars(stmt))

    def get_dividend(self, db: Session, dividend_id: int) -> DividendRecord:
        record = db.get(DividendRecord, dividend_id)
        if record is None:
            raise DividendNotFoundError(dividend_id)
        return record

    async def add_dividend(
            self,
            db: Session,
            ticker: str,
            amount_per_share: Decimal,
            shares: Decimal,
            ex_date: date,
            payment_date: date,
            currency: str | None = None,
            status: str | None = None,
            notes: str | None = None,
    ) -> DividendRecord:
        """
        Record a dividend by hand.

        A dividend recorded directly as RECEIVED is stored in the base
        currency so received totals stay comparable.
        """
        symbol = (ticker or "").strip().upper()
        if not symbol:
            raise ValidationError("Ticker is required", field="ticker")
        if amount_per_share is None or amount_per_share <= 0:
            raise ValidationError("Amount per share must be greater than 0", field="amount_per_share")
        if shares is None or shares <= 0:
            raise ValidationError("Shares must be greater than 0", field="shares")

        record_status = self._parse_status(status) if status else DividendStatus.EXPECTED
        record_currency = _to_currency(currency) or self._default_currency
        total = round_money(amount_per_share * shares)

        if record_status == DividendStatus.RECEIVED:
            total = await self._converter.convert(total, record_currency.value)
            record_currency = Currency(self._converter.base_currency)

        record = DividendRecord(
            ticker=symbol,
            amount_per_share=amount_per_share,
            total_amount=total,
            currency=record_currency,
            ex_date=ex_date,
            payment_date=payment_date,
            shares=shares,
            status=record_status,
            notes=notes,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    async def set_dividend_status(self, db: Session, dividend_id: int, status: str) -> DividendRecord:
        """
        Change a dividend's status.

        EXPECTED -> RECEIVED converts the total to the base currency and
        credits it to cash. Re-marking a received dividend does not credit
        cash a second time.
        """
        new_status = self._parse_status(status)
        record = self.get_dividend(db, dividend_id)

        if new_status == DividendStatus.RECEIVED and record.status != DividendStatus.RECEIVED:
            amount = await self._converter.convert(record.total_amount, record.currency.value)
            record.total_amount = amount
            record.currency = Currency(self._converter.base_currency)
            if amount > 0:
                db.add(CashEntry(
                    amount=amount,
                    entry_type=CashEntryType.DEPOSIT,
                    description=(
                        f"Dividend received: {record.ticker} - {record.amount_per_share} "
                        f"per share × {record.shares} shares"
                    ),
                ))
            logger.info(f"Dividend {record.id} ({record.ticker}) received: {amount}")

        record.status = new_status
        db.commit()
        db.refresh(record)
        return record

    def delete_dividend(self, db: Session, dividend_id: int) -> None:
        record = self.get_dividend(db, dividend_id)
        db.delete(record)
        db.commit()

    def upsert_expected_dividend(
            self,
            db: Session,
            ticker: str,
            shares: Decimal,
            estimate: DividendEstimate,
            currency: str,
            today: date | None = None,
    ) -> DividendRecord:
        """
        Create or refresh the auto-calculated EXPECTED record for a held ticker.

        `shares` is the total across every lot of the ticker; there is one
        such record per ticker.
        """
        day = today or date.today()
        symbol = ticker.strip().upper()
        per_share = estimate.annual_amount_per_share
        record = db.scalars(
            select(DividendRecord)
            .where(DividendRecord.ticker == symbol, DividendRecord.status == DividendStatus.EXPECTED)
            .order_by(DividendRecord.id)
        ).first()

        if record is None:
            record = DividendRecord(
                ticker=symbol,
                status=DividendStatus.EXPECTED,
                ex_date=_first_of_month_ahead(day, 3),
                payment_date=_first_of_month_ahead(day, 4),
            )
            db.add(record)

        record.amount_per_share = per_share
        record.shares = shares
        record.total_amount = round_money(per_share * shares)
        record.currency = _to_currency(currency) or self._default_currency
        record.notes = (
            f"{AUTO_NOTE_PREFIX} ({estimate.method.value}): "
            f"{per_share}/share × {shares} shares"
        )
        db.commit()
        return record

    def received_dividends(self, db: Session) -> list[ReceivedDividend]:
        return [
            ReceivedDividend(ticker=r.ticker, total_amount=r.total_amount, payment_date=r.payment_date)
            for r in self.list_dividends(db, DividendStatus.RECEIVED.value)
        ]

    def manual_expected_dividends(self, db: Session, held_tickers: set[str]) -> list[ManualExpectedDividend]:
        """EXPECTED records for tickers not currently held."""
        return [
            ManualExpectedDividend(
                ticker=r.ticker,
                total_amount=r.total_amount,
                currency=r.currency.value if r.currency else None,
            )
            for r in self.list_dividends(db, DividendStatus.EXPECTED.value)
            if r.ticker.upper() not in held_tickers
        ]

    @staticmethod
    def _parse_status(status: str | DividendStatus) -> DividendStatus:
        if isinstance(status, DividendStatus):
            return status
        try:
            return DividendStatus(status.strip().upper())
        except (AttributeError, ValueError):
            raise InvalidStatusError(str(status), tuple(s.value for s in DividendStatus)) from None
