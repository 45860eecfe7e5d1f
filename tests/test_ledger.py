"""
Tests for the monthly cash ledger.
"""

from datetime import date
from decimal import Decimal

import pytest

from adaptive_backtest.models import CASH_TICKER, TransactionType
from adaptive_backtest.simulation.ledger import CashLedger, LedgerError


@pytest.fixture
def ledger() -> CashLedger:
    """Ledger opened with 100 in cash."""
    return CashLedger(Decimal("100"), month=3, month_date=date(2020, 4, 1))


class TestCashLedger:
    """Tests for CashLedger."""

    def test_credit_increases_balance(self, ledger: CashLedger):
        entry = ledger.credit(Decimal("50"), TransactionType.CASH_CREDIT)

        assert ledger.balance() == Decimal("150")
        assert entry.ticker == CASH_TICKER
        assert entry.contribution == Decimal("50")
        assert entry.cash_balance == Decimal("150")
        assert entry.month == 3
        assert entry.date == date(2020, 4, 1)

    def test_purchase_records_remaining_cash(self, ledger: CashLedger):
        entry = ledger.debit(
            Decimal("80"),
            TransactionType.CONTRIBUTION,
            ticker="AAA",
            price=Decimal("10"),
            shares_added=8,
            total_shares=8,
            total_invested=Decimal("80"),
        )

        assert ledger.balance() == Decimal("20")
        assert entry.contribution == Decimal("80")
        assert entry.cash_effect == Decimal("-80")
        assert entry.cash_reserved == Decimal("20")

    def test_sale_is_journaled_negative(self, ledger: CashLedger):
        entry = ledger.credit(
            Decimal("200"),
            TransactionType.REBALANCE_SELL,
            ticker="AAA",
            price=Decimal("20"),
            shares_added=-10,
        )

        assert entry.contribution == Decimal("-200")
        assert entry.cash_effect == Decimal("200")
        assert ledger.balance() == Decimal("300")

    def test_cash_debit_is_journaled_negative(self, ledger: CashLedger):
        entry = ledger.debit(Decimal("30"), TransactionType.CASH_DEBIT)

        assert entry.contribution == Decimal("-30")
        assert entry.cash_effect == Decimal("-30")
        assert ledger.balance() == Decimal("70")

    def test_overdraft_raises(self, ledger: CashLedger):
        with pytest.raises(LedgerError):
            ledger.debit(Decimal("100.02"), TransactionType.REBALANCE_BUY, ticker="AAA")
        assert ledger.balance() == Decimal("100")
        assert ledger.transactions == ()

    def test_rounding_tolerance_allows_sub_cent_overdraft(self, ledger: CashLedger):
        ledger.debit(Decimal("100.005"), TransactionType.REBALANCE_BUY, ticker="AAA")
        assert ledger.balance() == Decimal("-0.005")

    def test_wrong_direction_raises(self, ledger: CashLedger):
        with pytest.raises(LedgerError):
            ledger.credit(Decimal("10"), TransactionType.CONTRIBUTION)
        with pytest.raises(LedgerError):
            ledger.debit(Decimal("10"), TransactionType.DIVIDEND_PAYMENT)

    def test_non_positive_amount_raises(self, ledger: CashLedger):
        with pytest.raises(LedgerError):
            ledger.credit(Decimal("0"), TransactionType.CASH_CREDIT)
        with pytest.raises(LedgerError):
            ledger.debit(Decimal("-5"), TransactionType.CASH_DEBIT)

    def test_reserve_records_leftover(self, ledger: CashLedger):
        entry = ledger.reserve()

        assert entry.transaction_type is TransactionType.CASH_RESERVE
        assert entry.cash_reserved == Decimal("100")
        assert entry.cash_effect == Decimal("0")

    def test_reserve_skipped_when_empty(self):
        ledger = CashLedger(Decimal("0"), month=0, month_date=date(2020, 1, 1))
        assert ledger.reserve() is None
        assert ledger.transactions == ()

    def test_reconcile(self, ledger: CashLedger):
        ledger.credit(Decimal("500"), TransactionType.CASH_CREDIT)
        ledger.credit(Decimal("5.00"), TransactionType.DIVIDEND_PAYMENT, ticker="AAA")
        ledger.debit(Decimal("600"), TransactionType.CONTRIBUTION, ticker="AAA")
        ledger.reserve()

        assert ledger.total_credits == Decimal("505.00")
        assert ledger.total_debits == Decimal("600")
        assert ledger.reconcile() == Decimal("5.00")

    def test_negative_opening_balance_raises(self):
        with pytest.raises(LedgerError):
            CashLedger(Decimal("-1"), month=0, month_date=date(2020, 1, 1))
