# tests/services/test_ledger_service.py
"""
Tests for LedgerService bookkeeping: holdings, sales, cash and dividends.

Cash is in the base currency (DKK). With no live rate configured, USD
converts at the fallback 6.8.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from portfolio_tracker.models import (
    CashEntry,
    CashEntryType,
    Currency,
    DividendStatus,
    Holding,
    StockTransaction,
    StockTransactionType,
)
from portfolio_tracker.services.dividends import DividendEstimate, EstimateMethod
from portfolio_tracker.services.exceptions import (
    DividendNotFoundError,
    HoldingNotFoundError,
    InsufficientCashError,
    InsufficientSharesError,
    InvalidStatusError,
    ValidationError,
)
from tests.conftest import create_dividend, create_holding


class TestAddHolding:
    async def test_explicit_currency(self, db, ledger, mock_provider):
        holding = await ledger.add_holding(
            db, " aapl ", Decimal("10"), Decimal("150"), buy_date=date(2024, 1, 2), currency="usd"
        )

        assert holding.id is not None
        assert holding.ticker == "AAPL"
        assert holding.currency == Currency.USD
        assert holding.buy_date == date(2024, 1, 2)
        assert mock_provider.calls["batch"] == 0

    async def test_writes_buy_transaction(self, db, ledger):
        await ledger.add_holding(db, "AAPL", Decimal("10"), Decimal("150"), currency="USD")

        [tx] = db.scalars(select(StockTransaction)).all()
        assert tx.transaction_type == StockTransactionType.BUY
        assert tx.total_value == Decimal("1500.00")

    async def test_currency_detected_from_quote(self, db, ledger, mock_provider):
        mock_provider.add_quote("SAP.DE", "120", "EUR")

        holding = await ledger.add_holding(db, "SAP.DE", Decimal("1"), Decimal("120"))

        assert holding.currency == Currency.EUR

    async def test_currency_defaults_when_detection_fails(self, db, ledger):
        holding = await ledger.add_holding(db, "UNKNOWN", Decimal("1"), Decimal("10"))

        assert holding.currency == Currency.USD

    async def test_unsupported_provider_currency_uses_default(self, db, ledger, mock_provider):
        mock_provider.add_quote("7203.T", "2500", "JPY")

        holding = await ledger.add_holding(db, "7203.T", Decimal("1"), Decimal("2500"))

        assert holding.currency == Currency.USD

    @pytest.mark.parametrize(
        "ticker,shares,price,field",
        [
            ("", "1", "1", "ticker"),
            ("AAPL", "0", "1", "shares"),
            ("AAPL", "-1", "1", "shares"),
            ("AAPL", "1", "0", "buy_price"),
        ],
    )
    async def test_invalid_input(self, db, ledger, ticker, shares, price, field):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.add_holding(db, ticker, Decimal(shares), Decimal(price), currency="USD")

        assert exc_info.value.field == field
        assert db.scalars(select(Holding)).all() == []

    async def test_unsupported_currency(self, db, ledger):
        with pytest.raises(ValidationError, match="Unsupported currency"):
            await ledger.add_holding(db, "AAPL", Decimal("1"), Decimal("1"), currency="JPY")

    async def test_deduct_from_cash_withdraws_cost_in_base(self, db, ledger):
        ledger.deposit(db, Decimal("10000"))

        await ledger.add_holding(
            db, "AAPL", Decimal("10"), Decimal("100"), currency="USD", deduct_from_cash=True
        )

        withdrawal = db.scalars(
            select(CashEntry).where(CashEntry.entry_type == CashEntryType.WITHDRAWAL)
        ).one()
        assert withdrawal.amount == Decimal("6800.00")
        assert ledger.cash_balance(db) == Decimal("3200.00")

    async def test_deduct_from_cash_may_overdraw(self, db, ledger):
        await ledger.add_holding(
            db, "NOVO-B.CO", Decimal("2"), Decimal("500"), currency="DKK", deduct_from_cash=True
        )

        assert ledger.cash_balance(db) == Decimal("-1000.00")


class TestUpdateHolding:
    def test_update_shares_and_notes(self, db, ledger):
        holding = create_holding(db)

        updated = ledger.update_holding(db, holding.id, shares=Decimal("12"), notes="long term")

        assert updated.shares == Decimal("12")
        assert updated.notes == "long term"

    def test_not_found(self, db, ledger):
        with pytest.raises(HoldingNotFoundError):
            ledger.update_holding(db, 999, shares=Decimal("1"))

    def test_invalid_shares(self, db, ledger):
        holding = create_holding(db)

        with pytest.raises(ValidationError):
            ledger.update_holding(db, holding.id, shares=Decimal("0"))


class TestSellHolding:
    async def test_partial_sale(self, db, ledger):
        holding = create_holding(db, "AAPL", shares="10", buy_price="100", currency=Currency.USD)

        sale = await ledger.sell_holding(db, holding.id, sell_shares=Decimal("4"), sell_price=Decimal("125"))

        assert sale["shares_sold"] == Decimal("4")
        assert sale["shares_remaining"] == Decimal("6")
        assert sale["proceeds"] == Decimal("500.00")
        assert sale["proceeds_in_base"] == Decimal("3400.00")
        assert sale["fully_sold"] is False
        assert db.get(Holding, holding.id).shares == Decimal("6")
        assert ledger.cash_balance(db) == Decimal("3400.00")

    async def test_full_sale_defaults_to_buy_price(self, db, ledger):
        holding = create_holding(db, "NOVO-B.CO", shares="3", buy_price="700", currency=Currency.DKK)

        sale = await ledger.sell_holding(db, holding.id)

        assert sale["fully_sold"] is True
        assert sale["proceeds_in_base"] == Decimal("2100.00")
        assert db.get(Holding, holding.id) is None
        sale_entry = db.scalars(select(CashEntry)).one()
        assert sale_entry.entry_type == CashEntryType.SALE

    async def test_writes_sell_transaction(self, db, ledger):
        holding = create_holding(db, shares="2", buy_price="10", currency=Currency.DKK)

        await ledger.sell_holding(db, holding.id, sell_shares=Decimal("1"), sell_price=Decimal("12"))

        [tx] = db.scalars(select(StockTransaction)).all()
        assert tx.transaction_type == StockTransactionType.SELL
        assert tx.total_value == Decimal("12.00")

    async def test_zero_price_sale_credits_nothing(self, db, ledger):
        holding = create_holding(db, shares="1", currency=Currency.DKK)

        await ledger.sell_holding(db, holding.id, sell_price=Decimal("0"))

        assert db.scalars(select(CashEntry)).all() == []

    async def test_cannot_sell_more_than_held(self, db, ledger):
        holding = create_holding(db, "AAPL", shares="5")

        with pytest.raises(InsufficientSharesError) as exc_info:
            await ledger.sell_holding(db, holding.id, sell_shares=Decimal("6"))

        assert exc_info.value.ticker == "AAPL"
        assert db.get(Holding, holding.id).shares == Decimal("5")

    async def test_not_found(self, db, ledger):
        with pytest.raises(HoldingNotFoundError):
            await ledger.sell_holding(db, 42)


class TestCash:
    def test_deposit_and_withdraw(self, db, ledger):
        ledger.deposit(db, Decimal("1000"))
        entry = ledger.withdraw(db, Decimal("250.50"), "rent")

        assert entry.entry_type == CashEntryType.WITHDRAWAL
        assert entry.description == "rent"
        assert ledger.cash_balance(db) == Decimal("749.50")

    def test_withdraw_more_than_balance(self, db, ledger):
        ledger.deposit(db, Decimal("100"))

        with pytest.raises(InsufficientCashError) as exc_info:
            ledger.withdraw(db, Decimal("100.01"))

        assert exc_info.value.available == Decimal("100.00")

    def test_withdraw_exact_balance(self, db, ledger):
        ledger.deposit(db, Decimal("100"))

        ledger.withdraw(db, Decimal("100"))

        assert ledger.cash_balance(db) == Decimal("0.00")

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_non_positive_amount(self, db, ledger, amount):
        with pytest.raises(ValidationError):
            ledger.deposit(db, Decimal(amount))

    def test_empty_balance(self, db, ledger):
        assert ledger.cash_balance(db) == Decimal("0.00")

    def test_list_entries_newest_first_with_limit(self, db, ledger):
        for amount in ("1", "2", "3"):
            ledger.deposit(db, Decimal(amount))

        entries = ledger.list_cash_entries(db, limit=2)

        assert [e.amount for e in entries] == [Decimal("3.00"), Decimal("2.00")]


class TestDividends:
    async def test_add_expected(self, db, ledger):
        record = await ledger.add_dividend(
            db, "msft", Decimal("0.75"), Decimal("10"), date(2024, 5, 15), date(2024, 6, 13), currency="USD"
        )

        assert record.ticker == "MSFT"
        assert record.status == DividendStatus.EXPECTED
        assert record.total_amount == Decimal("7.50")
        assert record.currency == Currency.USD

    async def test_add_received_is_stored_in_base(self, db, ledger):
        record = await ledger.add_dividend(
            db, "MSFT", Decimal("0.75"), Decimal("10"), date(2024, 5, 15), date(2024, 6, 13),
            currency="USD", status="received",
        )

        assert record.status == DividendStatus.RECEIVED
        assert record.total_amount == Decimal("51.00")
        assert record.currency == Currency.DKK

    async def test_mark_received_converts_and_credits_cash_once(self, db, ledger):
        record = create_dividend(db, "MSFT", amount_per_share="1.00", shares="10", currency=Currency.USD)

        updated = await ledger.set_dividend_status(db, record.id, "RECEIVED")
        await ledger.set_dividend_status(db, record.id, "RECEIVED")

        assert updated.total_amount == Decimal("68.00")
        assert updated.currency == Currency.DKK
        assert ledger.cash_balance(db) == Decimal("68.00")
        deposit = db.scalars(select(CashEntry)).one()
        assert deposit.description.startswith("Dividend received: MSFT")

    async def test_back_to_expected_keeps_cash(self, db, ledger):
        record = create_dividend(db, currency=Currency.DKK)
        await ledger.set_dividend_status(db, record.id, "RECEIVED")

        updated = await ledger.set_dividend_status(db, record.id, "expected")

        assert updated.status == DividendStatus.EXPECTED
        assert ledger.cash_balance(db) == Decimal("10.00")

    async def test_invalid_status(self, db, ledger):
        record = create_dividend(db)

        with pytest.raises(InvalidStatusError, match="Valid options: EXPECTED, RECEIVED"):
            await ledger.set_dividend_status(db, record.id, "PAID")

    async def test_unknown_dividend(self, db, ledger):
        with pytest.raises(DividendNotFoundError):
            await ledger.set_dividend_status(db, 7, "RECEIVED")

    def test_list_filters_by_status(self, db, ledger):
        create_dividend(db, "A")
        create_dividend(db, "B", status=DividendStatus.RECEIVED)

        assert [r.ticker for r in ledger.list_dividends(db, "received")] == ["B"]
        assert len(ledger.list_dividends(db)) == 2

    def test_list_with_invalid_status(self, db, ledger):
        with pytest.raises(InvalidStatusError):
            ledger.list_dividends(db, "maybe")

    def test_delete(self, db, ledger):
        record = create_dividend(db)

        ledger.delete_dividend(db, record.id)

        assert ledger.list_dividends(db) == []
        with pytest.raises(DividendNotFoundError):
            ledger.delete_dividend(db, record.id)

    def test_manual_expected_excludes_held_tickers(self, db, ledger):
        create_dividend(db, "AAPL")
        create_dividend(db, "MSFT")
        create_dividend(db, "KO", status=DividendStatus.RECEIVED)

        manual = ledger.manual_expected_dividends(db, {"AAPL"})

        assert [m.ticker for m in manual] == ["MSFT"]

    def test_upsert_expected_dividend(self, db, ledger):
        estimate = DividendEstimate("AAPL", Decimal("0.9600"), EstimateMethod.DECLARED_RATE)

        record = ledger.upsert_expected_dividend(
            db, " aapl ", Decimal("5"), estimate, "USD", today=date(2024, 10, 20)
        )

        assert record.total_amount == Decimal("4.80")
        assert record.ex_date == date(2025, 1, 1)
        assert record.payment_date == date(2025, 2, 1)
        assert record.ticker == "AAPL"
        assert "0.9600/share" in record.notes
