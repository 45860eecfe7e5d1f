"""
Tests for performance metrics calculation.
"""

import math
from datetime import date
from decimal import Decimal

import pytest

from adaptive_backtest.data.normalizer import add_months
from adaptive_backtest.models import (
    AssetConfig,
    BacktestParams,
    MonthlyPortfolioHistory,
    PortfolioSnapshot,
)
from adaptive_backtest.simulation.metrics import (
    PerformanceMetrics,
    calculate_asset_performance,
    calculate_max_drawdown,
    calculate_metrics,
    safe_divide,
)


PARAMS = BacktestParams(
    assets=(AssetConfig("A", Decimal("0.6")), AssetConfig("B", Decimal("0.4"))),
    start_date=date(2020, 1, 1),
    end_date=date(2020, 4, 1),
    initial_capital=Decimal("1000"),
    monthly_contribution=Decimal("0"),
)


def _build(values: list[str], contributions: list[str]):
    """Snapshots and histories for a value path with no holdings detail."""
    snapshots = []
    history = []
    previous = None
    for i, (value, contribution) in enumerate(zip(values, contributions)):
        value = Decimal(value)
        contribution = Decimal(contribution)
        if previous is None or previous == 0:
            monthly_return = Decimal("0")
        else:
            monthly_return = (value - previous - contribution) / previous
        month_date = add_months(date(2020, 1, 1), i)
        snapshots.append(
            PortfolioSnapshot(
                month=i,
                date=month_date,
                value=value,
                cash=Decimal("0"),
                holdings={},
                monthly_return=monthly_return,
                contribution=contribution,
            )
        )
        history.append(
            MonthlyPortfolioHistory(
                month=i,
                date=month_date,
                total_contribution=contribution,
                portfolio_value=value,
                cash_balance_before=Decimal("0"),
                cash_balance=Decimal("0"),
                total_dividends_received=Decimal("0"),
                transactions=(),
                holdings=(),
            )
        )
        previous = value
    return snapshots, history


class TestHelpers:
    """Tests for arithmetic guards and drawdown."""

    def test_safe_divide(self):
        assert safe_divide(1.0, 2.0) == 0.5
        assert safe_divide(1.0, 0.0) == 0.0
        assert safe_divide(float("nan"), 1.0) == 0.0
        assert safe_divide(1.0, float("inf"), default=-1.0) == -1.0

    def test_max_drawdown(self):
        assert calculate_max_drawdown([100, 120, 90, 130]) == pytest.approx(0.25)

    def test_max_drawdown_increasing_series(self):
        assert calculate_max_drawdown([100, 110, 120]) == 0.0

    def test_max_drawdown_empty(self):
        assert calculate_max_drawdown([]) == 0.0

    def test_max_drawdown_skips_zero_peaks(self):
        assert calculate_max_drawdown([0, 0, 100, 50]) == pytest.approx(0.5)


class TestCalculateMetrics:
    """Tests for calculate_metrics."""

    def test_growing_portfolio(self):
        snapshots, history = _build(
            ["1000", "1010", "1030", "1060"], ["1000", "0", "0", "0"]
        )
        metrics = calculate_metrics(snapshots, history, PARAMS)

        assert metrics.months == 4
        assert metrics.total_invested == 1000.0
        assert metrics.final_value == 1060.0
        assert metrics.total_return == pytest.approx(0.06)
        assert metrics.annualized_return == pytest.approx(1.06 ** 3 - 1, abs=1e-6)
        assert metrics.max_drawdown == 0.0
        assert metrics.positive_months == 3
        assert metrics.negative_months == 0
        assert metrics.volatility > 0
        assert metrics.sharpe_ratio is not None

    def test_flat_portfolio_has_no_sharpe(self):
        """Zero volatility yields a null Sharpe ratio, never NaN or infinity."""
        snapshots, history = _build(["1000", "1000", "1000"], ["1000", "0", "0"])
        metrics = calculate_metrics(snapshots, history, PARAMS)

        assert metrics.total_return == 0.0
        assert metrics.annualized_return == 0.0
        assert metrics.volatility == 0.0
        assert metrics.sharpe_ratio is None

    def test_volatility_uses_population_deviation(self):
        snapshots, history = _build(
            ["1000", "1100", "990", "1089"], ["1000", "0", "0", "0"]
        )
        metrics = calculate_metrics(snapshots, history, PARAMS, risk_free_rate=0.0)

        returns = [0.1, -0.1, 0.1]
        mean = sum(returns) / 3
        expected = math.sqrt(sum((r - mean) ** 2 for r in returns) / 3) * math.sqrt(12)
        assert metrics.volatility == pytest.approx(expected, abs=1e-6)
        assert metrics.max_drawdown == pytest.approx(0.1)
        assert metrics.negative_months == 1

    def test_single_return_has_zero_volatility(self):
        snapshots, history = _build(["1000", "1100"], ["1000", "0"])
        metrics = calculate_metrics(snapshots, history, PARAMS)

        assert metrics.volatility == 0.0
        assert metrics.sharpe_ratio is None

    def test_nothing_invested(self):
        snapshots, history = _build(["0", "0"], ["0", "0"])
        metrics = calculate_metrics(snapshots, history, PARAMS)

        assert metrics.total_return == 0.0
        assert metrics.annualized_return == 0.0

    def test_empty_snapshots(self):
        metrics = calculate_metrics([], [], PARAMS)

        assert metrics.months == 0
        assert metrics.sharpe_ratio is None
        assert metrics.start_date == "2020-01-01"

    def test_json_round_trip(self, tmp_path):
        snapshots, history = _build(["1000", "1010"], ["1000", "0"])
        metrics = calculate_metrics(snapshots, history, PARAMS)

        path = tmp_path / "metrics.json"
        metrics.to_json(path)
        assert PerformanceMetrics.from_json(path) == metrics


class TestAssetPerformance:
    """Tests for calculate_asset_performance."""

    def test_pro_rata_fallback_without_price(self):
        results = calculate_asset_performance(
            PARAMS,
            history=[],
            series={},
            final_date=date(2020, 4, 1),
            final_value=Decimal("1000"),
        )

        assert [r.ticker for r in results] == ["A", "B"]
        assert results[0].final_value == Decimal("600")
        assert results[1].final_value == Decimal("400")
        assert not results[0].price_available
        assert results[0].total_return == 0.0
        assert results[0].average_price is None
