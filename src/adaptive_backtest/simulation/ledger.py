"""
Monthly cash ledger.

All cash movement in a simulated month goes through a CashLedger: capital and
contribution credits, dividend credits, sale proceeds, purchases and explicit
debits. Each call appends one journal entry carrying the running balance, so
the month's history can be reconciled against its opening balance.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from adaptive_backtest.models import (
    CASH_TICKER,
    MonthlyAssetTransaction,
    TransactionType,
)


# Amounts within one cent are treated as equal
CENT = Decimal("0.01")


class LedgerError(Exception):
    """Raised when a ledger operation would break the cash accounting."""
    pass


class CashLedger:
    """
    Cash balance and journal for a single simulated month.

    A fresh ledger is opened each month with the previous month's closing
    balance. The balance never goes below -0.01; an overdraft is a
    programming error and raises instead of being clamped.
    """

    def __init__(self, opening_balance: Decimal, month: int, month_date: date):
        """
        Open a ledger for one month.

        Args:
            opening_balance: Cash carried over from the previous month
            month: Month index within the simulation
            month_date: Month date stamped on journal entries
        """
        if opening_balance < -CENT:
            raise LedgerError(f"Opening balance cannot be negative: {opening_balance}")
        self.opening_balance = opening_balance
        self.month = month
        self.month_date = month_date
        self._balance = opening_balance
        self._transactions: list[MonthlyAssetTransaction] = []

    def balance(self) -> Decimal:
        """Current cash balance."""
        return self._balance

    @property
    def transactions(self) -> tuple[MonthlyAssetTransaction, ...]:
        return tuple(self._transactions)

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (t.cash_effect for t in self._transactions if t.cash_effect > 0),
            Decimal("0"),
        )

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (-t.cash_effect for t in self._transactions if t.cash_effect < 0),
            Decimal("0"),
        )

    def credit(
        self,
        amount: Decimal,
        transaction_type: TransactionType,
        ticker: str = CASH_TICKER,
        price: Decimal = Decimal("1"),
        shares_added: int = 0,
        total_shares: int = 0,
        total_invested: Decimal = Decimal("0"),
        dividend_amount: Optional[Decimal] = None,
    ) -> MonthlyAssetTransaction:
        """
        Add cash to the ledger.

        Args:
            amount: Positive amount credited
            transaction_type: CASH_CREDIT, DIVIDEND_PAYMENT or REBALANCE_SELL
            ticker: Asset the cash came from (CASH for deposits)
            price: Execution price for sales
            shares_added: Signed share delta (negative for sales)
            total_shares: Shares held after the entry
            total_invested: Cost basis after the entry
            dividend_amount: Dividend credited, for dividend entries

        Returns:
            The journal entry appended

        Raises:
            LedgerError: If the amount is not positive or the type is not a credit
        """
        if not transaction_type.is_credit:
            raise LedgerError(f"{transaction_type.value} is not a credit entry")
        if amount <= 0:
            raise LedgerError(f"Credit amount must be positive, got {amount}")

        self._balance += amount
        # Sales are journaled with a negative contribution
        signed = -amount if transaction_type is TransactionType.REBALANCE_SELL else amount
        return self._append(
            transaction_type=transaction_type,
            ticker=ticker,
            contribution=signed,
            price=price,
            shares_added=shares_added,
            total_shares=total_shares,
            total_invested=total_invested,
            dividend_amount=dividend_amount,
        )

    def debit(
        self,
        amount: Decimal,
        transaction_type: TransactionType,
        ticker: str = CASH_TICKER,
        price: Decimal = Decimal("1"),
        shares_added: int = 0,
        total_shares: int = 0,
        total_invested: Decimal = Decimal("0"),
    ) -> MonthlyAssetTransaction:
        """
        Remove cash from the ledger.

        Args:
            amount: Positive amount debited
            transaction_type: CONTRIBUTION, REBALANCE_BUY or CASH_DEBIT
            ticker: Asset bought (CASH for withdrawals)
            price: Execution price for purchases
            shares_added: Shares bought
            total_shares: Shares held after the entry
            total_invested: Cost basis after the entry

        Returns:
            The journal entry appended

        Raises:
            LedgerError: If the amount is not positive, the type is not a
                debit, or the balance would drop below -0.01
        """
        if not transaction_type.is_debit:
            raise LedgerError(f"{transaction_type.value} is not a debit entry")
        if amount <= 0:
            raise LedgerError(f"Debit amount must be positive, got {amount}")
        if self._balance - amount < -CENT:
            raise LedgerError(
                f"Debit of {amount} for {ticker} exceeds balance {self._balance}"
            )

        self._balance -= amount
        # Cash withdrawals are journaled with a negative contribution
        signed = -amount if transaction_type is TransactionType.CASH_DEBIT else amount
        return self._append(
            transaction_type=transaction_type,
            ticker=ticker,
            contribution=signed,
            price=price,
            shares_added=shares_added,
            total_shares=total_shares,
            total_invested=total_invested,
            cash_reserved=self._balance if transaction_type.is_buy else None,
        )

    def reserve(self) -> Optional[MonthlyAssetTransaction]:
        """
        Record leftover cash as a reserve entry.

        Returns:
            The CASH_RESERVE entry, or None when the balance is within a cent of zero
        """
        if self._balance <= CENT:
            return None
        return self._append(
            transaction_type=TransactionType.CASH_RESERVE,
            ticker=CASH_TICKER,
            contribution=Decimal("0"),
            price=Decimal("1"),
            cash_reserved=self._balance,
        )

    def reconcile(self) -> Decimal:
        """
        Check the accounting identity for the month.

        Returns:
            The closing balance

        Raises:
            LedgerError: If closing != opening + credits - debits within a cent
        """
        expected = self.opening_balance + self.total_credits - self.total_debits
        if abs(expected - self._balance) > CENT:
            raise LedgerError(
                f"Month {self.month} does not reconcile: opening {self.opening_balance} "
                f"+ credits {self.total_credits} - debits {self.total_debits} "
                f"!= closing {self._balance}"
            )
        if self._balance < -CENT:
            raise LedgerError(f"Month {self.month} closes negative: {self._balance}")
        return self._balance

    def _append(self, **fields) -> MonthlyAssetTransaction:
        transaction = MonthlyAssetTransaction(
            month=self.month,
            date=self.month_date,
            cash_balance=self._balance,
            **fields,
        )
        self._transactions.append(transaction)
        return transaction
