"""
Tests for market data providers.
"""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from adaptive_backtest.data.providers import CSVProvider, DataProviderError, InMemoryProvider


@pytest.fixture
def prices_csv(tmp_path: Path) -> Path:
    path = tmp_path / "prices.csv"
    path.write_text(
        "ticker,date,close,adjusted_close\n"
        "AAA,2020-01-01,10,10\n"
        "AAA,2020-02-01,11,11\n"
        "BBB,2020-01-01,20,20\n"
    )
    return path


class TestCSVProvider:
    """Tests for CSVProvider."""

    def test_price_history(self, prices_csv: Path):
        provider = CSVProvider(prices_csv)
        history = provider.get_price_history(
            ["AAA", "BBB", "CCC"], date(2020, 1, 1), date(2020, 1, 31)
        )

        assert len(history["AAA"]) == 1
        assert history["BBB"][0].price == Decimal("20")
        assert history["CCC"] == []
        assert provider.available_tickers() == ["AAA", "BBB"]

    def test_no_dividend_file(self, prices_csv: Path):
        provider = CSVProvider(prices_csv)
        assert provider.get_dividends("AAA", date(2020, 1, 1), date(2020, 12, 1)) == []

    def test_load_error_is_a_provider_error(self, tmp_path: Path):
        provider = CSVProvider(tmp_path / "missing.csv")
        with pytest.raises(DataProviderError):
            provider.get_monthly_prices("AAA", date(2020, 1, 1), date(2020, 12, 1))


class TestInMemoryProvider:
    """Tests for InMemoryProvider."""

    def test_filters_by_date_and_records_requests(self, monthly_points):
        provider = InMemoryProvider({"aaa": monthly_points(["10", "11", "12"])})
        points = provider.get_monthly_prices("AAA", date(2020, 2, 1), date(2020, 3, 1))

        assert [p.price for p in points] == [Decimal("11"), Decimal("12")]
        assert provider.price_requests == ["AAA"]
        assert provider.name == "InMemory"


@pytest.fixture
def fake_yfinance():
    """A stand-in yfinance module with a mocked Ticker."""
    module = MagicMock()
    with patch.dict(sys.modules, {"yfinance": module}):
        yield module


class TestYFinanceProvider:
    """Tests for YFinanceProvider with a mocked yfinance."""

    def test_monthly_prices(self, fake_yfinance):
        from adaptive_backtest.data.providers.yfinance_provider import YFinanceProvider

        fake_yfinance.Ticker.return_value.history.return_value = pd.DataFrame(
            {"Close": [10.0, 11.0, float("nan")], "Adj Close": [9.5, 10.5, 12.0]},
            index=pd.DatetimeIndex(["2020-01-01", "2020-02-01", "2020-03-01"]),
        )
        provider = YFinanceProvider(retry_delay=0)
        points = provider.get_monthly_prices("aaa", date(2020, 1, 1), date(2020, 3, 1))

        fake_yfinance.Ticker.assert_called_with("AAA")
        assert [p.date for p in points] == [date(2020, 1, 1), date(2020, 2, 1)]
        assert points[0].price == Decimal("10.0")
        assert points[0].adjusted_close == Decimal("9.5")

    def test_empty_history(self, fake_yfinance):
        from adaptive_backtest.data.providers.yfinance_provider import YFinanceProvider

        fake_yfinance.Ticker.return_value.history.return_value = pd.DataFrame()
        provider = YFinanceProvider(retry_delay=0)
        assert provider.get_monthly_prices("AAA", date(2020, 1, 1), date(2020, 3, 1)) == []

    def test_dividends(self, fake_yfinance):
        from adaptive_backtest.data.providers.yfinance_provider import YFinanceProvider

        fake_yfinance.Ticker.return_value.dividends = pd.Series(
            [0.25, 0.30],
            index=pd.DatetimeIndex(["2019-12-15", "2020-03-15"]),
        )
        provider = YFinanceProvider(retry_delay=0)
        events = provider.get_dividends("AAA", date(2020, 1, 1), date(2020, 12, 1))

        assert len(events) == 1
        assert events[0].ex_date == date(2020, 3, 15)
        assert events[0].amount_per_share == Decimal("0.3")

    def test_retries_then_fails(self, fake_yfinance):
        from adaptive_backtest.data.providers.yfinance_provider import YFinanceProvider

        fake_yfinance.Ticker.return_value.history.side_effect = RuntimeError("timeout")
        provider = YFinanceProvider(max_retries=2, retry_delay=0)

        with pytest.raises(DataProviderError, match="after 2 attempts"):
            provider.get_monthly_prices("AAA", date(2020, 1, 1), date(2020, 3, 1))
        assert fake_yfinance.Ticker.return_value.history.call_count == 2
