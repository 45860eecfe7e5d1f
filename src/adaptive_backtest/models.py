"""
Core data models for the Adaptive Backtest Engine.

This module defines the fundamental data structures used throughout the system,
including backtest parameters, price points, holdings, snapshots and the
monthly transaction journal. All monetary quantities use Decimal for
precision; share counts are whole numbers.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


CASH_TICKER = "CASH"


class RebalanceFrequency(Enum):
    """How often the portfolio is brought back to target weights."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def period_months(self) -> int:
        """Number of months between rebalances."""
        if self is RebalanceFrequency.MONTHLY:
            return 1
        if self is RebalanceFrequency.QUARTERLY:
            return 3
        if self is RebalanceFrequency.YEARLY:
            return 12
        raise ValueError(f"Unhandled rebalance frequency: {self}")

    def is_rebalance_month(self, month_index: int) -> bool:
        """Whether the month at this index is a rebalance month."""
        return month_index % self.period_months == 0


class TransactionType(Enum):
    """Closed set of journal entry types."""
    CONTRIBUTION = "CONTRIBUTION"
    REBALANCE_BUY = "REBALANCE_BUY"
    REBALANCE_SELL = "REBALANCE_SELL"
    CASH_RESERVE = "CASH_RESERVE"
    CASH_CREDIT = "CASH_CREDIT"
    CASH_DEBIT = "CASH_DEBIT"
    DIVIDEND_PAYMENT = "DIVIDEND_PAYMENT"

    @property
    def is_credit(self) -> bool:
        """True for entries that add cash to the ledger."""
        return self in (
            TransactionType.CASH_CREDIT,
            TransactionType.DIVIDEND_PAYMENT,
            TransactionType.REBALANCE_SELL,
        )

    @property
    def is_debit(self) -> bool:
        """True for entries that remove cash from the ledger."""
        return self in (
            TransactionType.CASH_DEBIT,
            TransactionType.CONTRIBUTION,
            TransactionType.REBALANCE_BUY,
        )

    @property
    def is_buy(self) -> bool:
        return self in (TransactionType.CONTRIBUTION, TransactionType.REBALANCE_BUY)


class DividendMode(Enum):
    """Source used to derive dividend credits."""
    YIELD = "yield"        # average annual yield spread evenly over 12 months
    SEASONAL = "seasonal"  # average annual yield paid in fixed calendar months
    EVENTS = "events"      # actual ex-dividend events


class DataQuality(Enum):
    """Grading of a ticker's price history completeness."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def from_completeness(cls, completeness: float) -> "DataQuality":
        if completeness >= 0.95:
            return cls.EXCELLENT
        if completeness >= 0.85:
            return cls.GOOD
        if completeness >= 0.70:
            return cls.FAIR
        return cls.POOR


class ActionType(Enum):
    """Types of logged actions for the decision log."""
    PARAMS_LOADED = "PARAMS_LOADED"
    DATA_VALIDATED = "DATA_VALIDATED"
    BACKTEST_COMPLETED = "BACKTEST_COMPLETED"
    RESULTS_SAVED = "RESULTS_SAVED"


@dataclass(frozen=True)
class AssetConfig:
    """
    A configured asset in the target allocation.

    Attributes:
        ticker: Ticker symbol
        target_allocation: Target weight as a fraction (0-1)
        average_dividend_yield: Optional average annual dividend yield (0.06 = 6%)
    """
    ticker: str
    target_allocation: Decimal
    average_dividend_yield: Optional[Decimal] = None


@dataclass(frozen=True)
class BacktestParams:
    """
    Caller-supplied backtest parameters. Never mutated by the engine.

    Attributes:
        assets: Configured assets with target allocations
        start_date: Requested first month
        end_date: Requested last month
        initial_capital: Cash deposited in the first simulated month
        monthly_contribution: Cash deposited in every simulated month
        rebalance_frequency: Monthly, quarterly or yearly rebalancing
    """
    assets: tuple[AssetConfig, ...]
    start_date: date
    end_date: date
    initial_capital: Decimal
    monthly_contribution: Decimal
    rebalance_frequency: RebalanceFrequency = RebalanceFrequency.MONTHLY

    @property
    def tickers(self) -> list[str]:
        return [asset.ticker for asset in self.assets]

    @property
    def total_allocation(self) -> Decimal:
        return sum((asset.target_allocation for asset in self.assets), Decimal("0"))

    def get_asset(self, ticker: str) -> Optional[AssetConfig]:
        for asset in self.assets:
            if asset.ticker == ticker:
                return asset
        return None


@dataclass(frozen=True)
class PricePoint:
    """
    Monthly price observation for one asset.

    Attributes:
        date: Observation date (the expected month date for filled points)
        price: Closing price
        adjusted_close: Split/dividend adjusted close, used for valuation
        filled: True when the point was forward- or back-filled
    """
    date: date
    price: Decimal
    adjusted_close: Decimal
    filled: bool = False


@dataclass(frozen=True)
class DividendEvent:
    """An ex-dividend event for one asset."""
    ex_date: date
    amount_per_share: Decimal


@dataclass(frozen=True)
class Holding:
    """
    Position in one asset.

    Attributes:
        shares: Whole, non-negative number of shares
        total_invested: Average-cost basis of the position
    """
    shares: int = 0
    total_invested: Decimal = Decimal("0")

    def __post_init__(self):
        if not isinstance(self.shares, int) or self.shares < 0:
            raise ValueError(f"Holding shares must be a non-negative integer, got {self.shares!r}")

    @property
    def average_price(self) -> Optional[Decimal]:
        if self.shares == 0:
            return None
        return self.total_invested / self.shares

    def market_value(self, price: Decimal) -> Decimal:
        return self.shares * price

    def unrealized_return(self, price: Decimal) -> Decimal:
        """Unrealized return on cost basis; zero when there is no basis."""
        if self.total_invested <= Decimal("0"):
            return Decimal("0")
        return (self.market_value(price) - self.total_invested) / self.total_invested


@dataclass(frozen=True)
class PortfolioSnapshot:
    """End-of-month portfolio state. Immutable once recorded."""
    month: int
    date: date
    value: Decimal
    cash: Decimal
    holdings: dict[str, int]
    monthly_return: Decimal
    contribution: Decimal


@dataclass(frozen=True)
class MonthlyAssetTransaction:
    """
    A single entry of the monthly transaction journal.

    Attributes:
        month: Month index within the simulation
        date: Month date
        ticker: Asset ticker, or CASH for pure cash movements
        transaction_type: Entry type
        contribution: Signed amount (negative for sells and cash debits)
        price: Execution price (1 for cash entries)
        shares_added: Signed share delta
        total_shares: Shares held after the entry
        total_invested: Cost basis after the entry
        cash_reserved: Cash left over (reserve entries and partial buys)
        dividend_amount: Dividend credited (dividend entries only)
        cash_balance: Ledger balance after the entry
    """
    month: int
    date: date
    ticker: str
    transaction_type: TransactionType
    contribution: Decimal
    price: Decimal
    shares_added: int = 0
    total_shares: int = 0
    total_invested: Decimal = Decimal("0")
    cash_reserved: Optional[Decimal] = None
    dividend_amount: Optional[Decimal] = None
    cash_balance: Decimal = Decimal("0")

    @property
    def cash_effect(self) -> Decimal:
        """Signed change to the cash balance implied by this entry."""
        tx_type = self.transaction_type
        if tx_type is TransactionType.CASH_CREDIT:
            return self.contribution
        if tx_type is TransactionType.DIVIDEND_PAYMENT:
            return self.contribution
        if tx_type is TransactionType.REBALANCE_SELL:
            return -self.contribution
        if tx_type is TransactionType.CASH_DEBIT:
            return self.contribution
        if tx_type is TransactionType.CONTRIBUTION:
            return -self.contribution
        if tx_type is TransactionType.REBALANCE_BUY:
            return -self.contribution
        if tx_type is TransactionType.CASH_RESERVE:
            return Decimal("0")
        raise ValueError(f"Unhandled transaction type: {tx_type}")


@dataclass(frozen=True)
class HoldingValue:
    """End-of-month valuation of one position."""
    ticker: str
    shares: int
    price: Decimal
    value: Decimal


@dataclass(frozen=True)
class MonthlyPortfolioHistory:
    """
    Full accounting record of one simulated month.

    The accounting identity holds for every month:
    cash_balance == cash_balance_before + credits - debits (within 0.01).
    """
    month: int
    date: date
    total_contribution: Decimal
    portfolio_value: Decimal
    cash_balance_before: Decimal
    cash_balance: Decimal
    total_dividends_received: Decimal
    transactions: tuple[MonthlyAssetTransaction, ...]
    holdings: tuple[HoldingValue, ...]
    rebalanced: bool = True

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (t.cash_effect for t in self.transactions if t.cash_effect > 0),
            Decimal("0"),
        )

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (-t.cash_effect for t in self.transactions if t.cash_effect < 0),
            Decimal("0"),
        )


@dataclass
class AssetPerformance:
    """Per-asset attribution derived from the transaction journal."""
    ticker: str
    allocation: Decimal
    final_value: Decimal
    total_return: float
    contribution: Decimal
    sale_proceeds: Decimal
    average_price: Optional[Decimal]
    total_shares: int
    total_dividends: Decimal
    price_available: bool = True


@dataclass
class DataAvailability:
    """Price history availability for one ticker."""
    ticker: str
    available_from: Optional[date]
    available_to: Optional[date]
    total_months: int
    missing_months: int
    data_quality: DataQuality
    warnings: list[str] = field(default_factory=list)


@dataclass
class BacktestDataValidation:
    """Outcome of checking the requested period against available data."""
    is_valid: bool
    adjusted_start_date: date
    adjusted_end_date: date
    months_available: int
    assets_availability: list[DataAvailability]
    global_warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def get_availability(self, ticker: str) -> Optional[DataAvailability]:
        for availability in self.assets_availability:
            if availability.ticker == ticker:
                return availability
        return None


@dataclass
class AdaptiveBacktestResult:
    """
    Complete result of one backtest run.

    Combines standard performance metrics, per-asset attribution, the
    snapshot sequence, the monthly transaction journal and data-quality
    metadata.
    """
    total_return: float
    annualized_return: float
    volatility: float
    sharpe_ratio: Optional[float]
    max_drawdown: float
    positive_months: int
    negative_months: int
    total_invested: Decimal
    final_value: Decimal
    final_cash_reserve: Decimal
    asset_performance: list[AssetPerformance]
    portfolio_evolution: list[PortfolioSnapshot]
    monthly_history: list[MonthlyPortfolioHistory]
    data_validation: BacktestDataValidation
    data_quality_issues: list[str]
    effective_start_date: date
    effective_end_date: date
    planned_investment: Decimal
    actual_investment: Decimal
    missed_contributions: int
    missed_amount: Decimal
    total_dividends_received: Decimal

    @property
    def transactions(self) -> list[MonthlyAssetTransaction]:
        """All journal entries in chronological order."""
        return [t for month in self.monthly_history for t in month.transactions]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return _to_plain(self)

    def to_json(self, path: Optional[Any] = None) -> str:
        """
        Serialize to JSON with stable key order.

        Args:
            path: Optional file path to write the JSON to

        Returns:
            The JSON text
        """
        text = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        if path is not None:
            with open(path, "w") as f:
                f.write(text)
        return text


def _to_plain(value: Any) -> Any:
    """Recursively convert dataclasses, enums, dates and Decimals to JSON types."""
    if hasattr(value, "__dataclass_fields__"):
        return {name: _to_plain(getattr(value, name)) for name in value.__dataclass_fields__}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_plain(v) for k, v in sorted(value.items())}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


@dataclass
class DecisionLogEntry:
    """
    Entry for the append-only decision log.

    Attributes:
        timestamp: When the action occurred
        action_type: Type of action
        run_id: Backtest run involved (if applicable)
        details: JSON-serializable details dictionary
    """
    timestamp: datetime
    action_type: ActionType
    run_id: Optional[str]
    details: dict

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        run_id: Optional[str],
        details: dict,
    ) -> "DecisionLogEntry":
        """Factory method with auto-generated timestamp."""
        return cls(
            timestamp=datetime.now(),
            action_type=action_type,
            run_id=run_id,
            details=details,
        )
