"""
Performance metrics calculation for backtest results.

Calculates standard portfolio performance metrics including:
- Total and annualized return on invested capital
- Volatility (annualized, population standard deviation of monthly returns)
- Sharpe Ratio
- Maximum Drawdown
- Positive/negative month counts
- Per-asset attribution from the transaction journal
"""

import json
import math
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from adaptive_backtest.data.normalizer import NormalizedSeries
from adaptive_backtest.models import (
    CASH_TICKER,
    AssetPerformance,
    BacktestParams,
    MonthlyPortfolioHistory,
    PortfolioSnapshot,
    TransactionType,
)


MONTHS_PER_YEAR = 12
DEFAULT_RISK_FREE_RATE = 0.10


@dataclass
class PerformanceMetrics:
    """Container for portfolio-level performance metrics."""

    # Time period
    start_date: str
    end_date: str
    months: int

    # Returns
    total_return: float
    annualized_return: float
    volatility: float
    sharpe_ratio: Optional[float]

    # Risk
    max_drawdown: float

    # Consistency
    positive_months: int
    negative_months: int

    # Capital
    total_invested: float
    final_value: float
    final_cash: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self, path: Path) -> None:
        """Save metrics to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_json(cls, path: Path) -> "PerformanceMetrics":
        """Load metrics from JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        return cls(**data)


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, returning default for a zero or non-finite operand or result."""
    if denominator == 0 or not math.isfinite(numerator) or not math.isfinite(denominator):
        return default
    result = numerator / denominator
    return result if math.isfinite(result) else default


def calculate_max_drawdown(values: Sequence[float]) -> float:
    """
    Largest peak-to-trough decline as a positive fraction.

    Args:
        values: Portfolio values in chronological order

    Returns:
        Maximum drawdown (0.0 for an empty or non-decreasing series)
    """
    if len(values) == 0:
        return 0.0
    series = pd.Series(values, dtype=float)
    peak = series.cummax()
    # Peaks of zero carry no drawdown information
    valid = peak > 0
    if not valid.any():
        return 0.0
    drawdown = (peak[valid] - series[valid]) / peak[valid]
    return max(float(drawdown.max()), 0.0)


def calculate_metrics(
    snapshots: Sequence[PortfolioSnapshot],
    history: Sequence[MonthlyPortfolioHistory],
    params: BacktestParams,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> PerformanceMetrics:
    """
    Calculate performance metrics from the snapshot sequence.

    Args:
        snapshots: Month-end snapshots in chronological order
        history: Monthly histories (used for the capital actually invested)
        params: Backtest parameters
        risk_free_rate: Annual risk-free rate for the Sharpe ratio (default 10%)

    Returns:
        PerformanceMetrics with all calculated values
    """
    if not snapshots:
        return PerformanceMetrics(
            start_date=params.start_date.isoformat(),
            end_date=params.end_date.isoformat(),
            months=0,
            total_return=0.0,
            annualized_return=0.0,
            volatility=0.0,
            sharpe_ratio=None,
            max_drawdown=0.0,
            positive_months=0,
            negative_months=0,
            total_invested=0.0,
            final_value=0.0,
            final_cash=0.0,
        )

    # Convert to DataFrame for easier calculation
    df = pd.DataFrame([
        {
            "date": s.date,
            "value": float(s.value),
            "monthly_return": float(s.monthly_return),
            "cash": float(s.cash),
        }
        for s in snapshots
    ])
    df["date"] = pd.to_datetime(df["date"])
    df = df.set_index("date")

    months = len(df)
    final_value = float(df["value"].iloc[-1])
    final_cash = float(df["cash"].iloc[-1])
    total_invested = float(sum(
        (h.total_contribution for h in history), Decimal("0")
    ))

    total_return = safe_divide(final_value - total_invested, total_invested)

    if total_invested > 0 and months > 0:
        ratio = final_value / total_invested
        annualized_return = float(np.power(ratio, MONTHS_PER_YEAR / months)) - 1
    else:
        annualized_return = 0.0
    if not math.isfinite(annualized_return):
        annualized_return = 0.0

    # The first snapshot has no prior value to return against
    monthly_returns = df["monthly_return"].iloc[1:]
    if len(monthly_returns) >= 2:
        volatility = float(monthly_returns.std(ddof=0)) * math.sqrt(MONTHS_PER_YEAR)
    else:
        volatility = 0.0
    if not math.isfinite(volatility):
        volatility = 0.0

    excess_return = annualized_return - risk_free_rate
    sharpe = safe_divide(excess_return, volatility, default=float("nan"))
    sharpe_ratio = round(sharpe, 4) if math.isfinite(sharpe) else None

    max_drawdown = calculate_max_drawdown(df["value"].tolist())

    positive_months = int((monthly_returns > 0).sum())
    negative_months = int((monthly_returns < 0).sum())

    return PerformanceMetrics(
        start_date=snapshots[0].date.isoformat(),
        end_date=snapshots[-1].date.isoformat(),
        months=months,
        total_return=round(total_return, 6),
        annualized_return=round(annualized_return, 6),
        volatility=round(volatility, 6),
        sharpe_ratio=sharpe_ratio,
        max_drawdown=round(max_drawdown, 6),
        positive_months=positive_months,
        negative_months=negative_months,
        total_invested=round(total_invested, 2),
        final_value=round(final_value, 2),
        final_cash=round(final_cash, 2),
    )


def calculate_asset_performance(
    params: BacktestParams,
    history: Sequence[MonthlyPortfolioHistory],
    series: Mapping[str, NormalizedSeries],
    final_date: Optional[date],
    final_value: Decimal,
) -> list[AssetPerformance]:
    """
    Per-asset attribution built from the transaction journal.

    Args:
        params: Backtest parameters
        history: Monthly histories in chronological order
        series: Normalized price series by ticker
        final_date: Date of the last snapshot
        final_value: Portfolio value of the last snapshot

    Returns:
        AssetPerformance per configured asset, in configuration order
    """
    totals = {
        asset.ticker: {
            "contribution": Decimal("0"),
            "sale_proceeds": Decimal("0"),
            "dividends": Decimal("0"),
            "shares": 0,
            "invested": Decimal("0"),
        }
        for asset in params.assets
    }

    for month in history:
        for transaction in month.transactions:
            if transaction.ticker == CASH_TICKER or transaction.ticker not in totals:
                continue
            data = totals[transaction.ticker]
            tx_type = transaction.transaction_type
            if tx_type in (TransactionType.CONTRIBUTION, TransactionType.REBALANCE_BUY):
                data["contribution"] += transaction.contribution
            elif tx_type is TransactionType.REBALANCE_SELL:
                data["sale_proceeds"] += -transaction.contribution
            elif tx_type is TransactionType.DIVIDEND_PAYMENT:
                data["dividends"] += transaction.dividend_amount or Decimal("0")
                continue
            elif tx_type in (
                TransactionType.CASH_CREDIT,
                TransactionType.CASH_DEBIT,
                TransactionType.CASH_RESERVE,
            ):
                continue
            else:
                raise ValueError(f"Unhandled transaction type: {tx_type}")
            data["shares"] = transaction.total_shares
            data["invested"] = transaction.total_invested

    results = []
    for asset in params.assets:
        data = totals[asset.ticker]
        shares = data["shares"]

        price = None
        if final_date is not None and asset.ticker in series:
            price = series[asset.ticker].price_on(final_date)

        if price is not None and price > 0:
            asset_value = shares * price
            price_available = True
        else:
            asset_value = final_value * asset.target_allocation
            price_available = False

        contribution = data["contribution"]
        gain = asset_value + data["sale_proceeds"] - contribution
        total_return = safe_divide(float(gain), float(contribution))

        results.append(
            AssetPerformance(
                ticker=asset.ticker,
                allocation=asset.target_allocation,
                final_value=asset_value,
                total_return=round(total_return, 6),
                contribution=contribution,
                sale_proceeds=data["sale_proceeds"],
                average_price=data["invested"] / shares if shares > 0 else None,
                total_shares=shares,
                total_dividends=data["dividends"],
                price_available=price_available,
            )
        )

    return results
