# backend/portfolio_tracker/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Enum, Numeric, Text, CheckConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    SEK = "SEK"
    NOK = "NOK"
    CHF = "CHF"
    DKK = "DKK"


class StockTransactionType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"


class CashEntryType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    SALE = "SALE"  # Proceeds of a stock sale, adds to the balance


class DividendStatus(str, enum.Enum):
    EXPECTED = "EXPECTED"
    RECEIVED = "RECEIVED"


class Holding(Base):
    """
    A currently held position.

    Partial sales reduce `shares`; a full sale deletes the row. `currency` is
    nullable for positions recorded before currency tracking: valuation then
    infers it from the ticker suffix.
    """
    __tablename__ = "holdings"
    __table_args__ = (
        CheckConstraint("shares > 0", name="ck_holdings_shares_positive"),
        CheckConstraint("buy_price >= 0", name="ck_holdings_buy_price_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String(32), index=True)
    shares: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    buy_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))  # Per share, in `currency`
    currency: Mapped[Currency | None] = mapped_column(Enum(Currency), nullable=True)
    buy_date: Mapped[date] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class StockTransaction(Base):
    """Append-only log of buys and sells."""
    __tablename__ = "stock_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String(32), index=True)
    transaction_type: Mapped[StockTransactionType] = mapped_column(Enum(StockTransactionType))
    shares: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    currency: Mapped[Currency] = mapped_column(Enum(Currency), default=Currency.USD)
    commission: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    total_value: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    transaction_date: Mapped[date] = mapped_column(Date, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CashEntry(Base):
    """
    Cash ledger entry. Amounts are always positive; the type gives the sign
    (DEPOSIT and SALE add, WITHDRAWAL subtracts). Cash is kept in the base
    currency.
    """
    __tablename__ = "cash_entries"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_cash_entries_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    entry_type: Mapped[CashEntryType] = mapped_column(Enum(CashEntryType))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    entry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)


class DividendRecord(Base):
    """
    A dividend payment, either expected or received.

    EXPECTED rows for held tickers are maintained automatically from the
    estimator (notes start with "Auto-calculated"); EXPECTED rows for other
    tickers are entered by hand. RECEIVED totals are in the base currency.
    """
    __tablename__ = "dividends"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String(32), index=True)
    amount_per_share: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    currency: Mapped[Currency] = mapped_column(Enum(Currency), default=Currency.USD)
    ex_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    shares: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    status: Mapped[DividendStatus] = mapped_column(Enum(DividendStatus), default=DividendStatus.EXPECTED, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
