"""
Pytest fixtures for the Adaptive Backtest Engine tests.

Provides common test data and utilities used across test modules.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional, Sequence

import pytest

from adaptive_backtest.config import EngineSettings
from adaptive_backtest.data.normalizer import add_months
from adaptive_backtest.data.providers import InMemoryProvider
from adaptive_backtest.models import (
    AssetConfig,
    BacktestParams,
    PricePoint,
    RebalanceFrequency,
)


@pytest.fixture
def monthly_points() -> Callable[..., list[PricePoint]]:
    """
    Factory building first-of-month price points.

    A price of None leaves that month without an observation.
    """
    def build(
        prices: Sequence[Optional[str]],
        start: date = date(2020, 1, 1),
    ) -> list[PricePoint]:
        points = []
        for i, price in enumerate(prices):
            if price is None:
                continue
            points.append(
                PricePoint(
                    date=add_months(start, i),
                    price=Decimal(price),
                    adjusted_close=Decimal(price),
                )
            )
        return points

    return build


@pytest.fixture
def test_settings() -> EngineSettings:
    """Engine settings accepting short test periods."""
    return EngineSettings(min_months=1)


@pytest.fixture
def single_asset_params() -> BacktestParams:
    """One asset at 100%, 1000 initial capital, no contributions, 3 months."""
    return BacktestParams(
        assets=(AssetConfig("AAA", Decimal("1")),),
        start_date=date(2020, 1, 1),
        end_date=date(2020, 3, 1),
        initial_capital=Decimal("1000"),
        monthly_contribution=Decimal("0"),
        rebalance_frequency=RebalanceFrequency.MONTHLY,
    )


@pytest.fixture
def two_asset_params() -> BacktestParams:
    """Equal-weight two-asset portfolio over six months."""
    return BacktestParams(
        assets=(
            AssetConfig("AAA", Decimal("0.5")),
            AssetConfig("BBB", Decimal("0.5")),
        ),
        start_date=date(2020, 1, 1),
        end_date=date(2020, 6, 1),
        initial_capital=Decimal("1000"),
        monthly_contribution=Decimal("100"),
        rebalance_frequency=RebalanceFrequency.MONTHLY,
    )


@pytest.fixture
def three_asset_params() -> BacktestParams:
    """Three assets with dividend yields, quarterly rebalancing over two years."""
    return BacktestParams(
        assets=(
            AssetConfig("AAA", Decimal("0.5"), Decimal("0.02")),
            AssetConfig("BBB", Decimal("0.3"), Decimal("0.06")),
            AssetConfig("CCC", Decimal("0.2")),
        ),
        start_date=date(2020, 1, 1),
        end_date=date(2021, 12, 1),
        initial_capital=Decimal("10000"),
        monthly_contribution=Decimal("500"),
        rebalance_frequency=RebalanceFrequency.QUARTERLY,
    )


@pytest.fixture
def three_asset_prices() -> dict[str, list[str]]:
    """Deterministic price paths with rises, falls and oscillation."""
    return {
        "AAA": [str(Decimal("10") + Decimal("0.5") * i) for i in range(24)],
        "BBB": [str(Decimal("50") - Decimal("2") * (i % 6)) for i in range(24)],
        "CCC": [str(Decimal("20") + Decimal("3") * (i % 4)) for i in range(24)],
    }


@pytest.fixture
def three_asset_provider(
    monthly_points,
    three_asset_prices: dict[str, list[str]],
) -> InMemoryProvider:
    """In-memory provider serving the three-asset price paths."""
    return InMemoryProvider(
        {ticker: monthly_points(prices) for ticker, prices in three_asset_prices.items()}
    )
