"""
Tests for configuration loading and validation.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from adaptive_backtest.config import (
    ConfigurationError,
    EngineSettings,
    create_default_config,
    load_backtest_params,
    load_engine_settings,
    parse_backtest_params,
    parse_engine_settings,
)
from adaptive_backtest.models import DividendMode, RebalanceFrequency


def _raw(**overrides) -> dict:
    raw = {
        "start_date": "2020-01-01",
        "end_date": "2021-12-01",
        "initial_capital": 10000,
        "monthly_contribution": 500,
        "rebalance_frequency": "quarterly",
        "assets": [
            {"ticker": "vti", "target_allocation": 0.6, "average_dividend_yield": 0.015},
            {"ticker": "BND", "target_allocation": 0.4},
        ],
    }
    raw.update(overrides)
    return raw


def _write(tmp_path: Path, raw: dict) -> Path:
    path = tmp_path / "backtest.yaml"
    with open(path, "w") as f:
        yaml.dump(raw, f)
    return path


class TestParseBacktestParams:
    """Tests for parse_backtest_params."""

    def test_valid_config(self):
        params = parse_backtest_params(_raw())

        assert params.tickers == ["VTI", "BND"]
        assert params.start_date == date(2020, 1, 1)
        assert params.initial_capital == Decimal("10000")
        assert params.rebalance_frequency is RebalanceFrequency.QUARTERLY
        assert params.get_asset("VTI").average_dividend_yield == Decimal("0.015")
        assert params.get_asset("BND").average_dividend_yield is None
        assert params.total_allocation == Decimal("1.0")

    def test_defaults(self):
        raw = _raw()
        del raw["monthly_contribution"]
        del raw["rebalance_frequency"]
        params = parse_backtest_params(raw)

        assert params.monthly_contribution == Decimal("0")
        assert params.rebalance_frequency is RebalanceFrequency.MONTHLY

    def test_missing_field(self):
        raw = _raw()
        del raw["assets"]
        with pytest.raises(ConfigurationError, match="assets"):
            parse_backtest_params(raw)

    def test_allocations_over_one(self):
        raw = _raw(assets=[
            {"ticker": "A", "target_allocation": 0.7},
            {"ticker": "B", "target_allocation": 0.4},
        ])
        with pytest.raises(ConfigurationError, match="sum to at most"):
            parse_backtest_params(raw)

    def test_allocations_under_one_are_accepted(self):
        raw = _raw(assets=[{"ticker": "A", "target_allocation": 0.8}])
        assert parse_backtest_params(raw).total_allocation == Decimal("0.8")

    def test_duplicate_ticker(self):
        raw = _raw(assets=[
            {"ticker": "A", "target_allocation": 0.5},
            {"ticker": "a", "target_allocation": 0.5},
        ])
        with pytest.raises(ConfigurationError, match="Duplicate"):
            parse_backtest_params(raw)

    def test_invalid_frequency(self):
        with pytest.raises(ConfigurationError, match="rebalance_frequency"):
            parse_backtest_params(_raw(rebalance_frequency="weekly"))

    def test_end_before_start(self):
        with pytest.raises(ConfigurationError):
            parse_backtest_params(_raw(end_date="2019-01-01"))

    def test_negative_capital(self):
        with pytest.raises(ConfigurationError):
            parse_backtest_params(_raw(initial_capital=-1))

    def test_non_finite_value(self):
        with pytest.raises(ConfigurationError):
            parse_backtest_params(_raw(monthly_contribution="NaN"))


class TestEngineSettings:
    """Tests for engine settings parsing."""

    def test_defaults(self):
        settings = parse_engine_settings({})
        assert settings == EngineSettings()
        assert settings.risk_free_rate == 0.10
        assert settings.tolerance_days == 7

    def test_overrides(self):
        settings = parse_engine_settings({
            "risk_free_rate": 0.04,
            "dividend_mode": "events",
            "min_sell_value": 250,
            "min_months": 24,
        })

        assert settings.risk_free_rate == pytest.approx(0.04)
        assert settings.dividend_mode is DividendMode.EVENTS
        assert settings.min_sell_value == Decimal("250")
        assert settings.min_months == 24

    def test_invalid_mode(self):
        with pytest.raises(ConfigurationError, match="dividend_mode"):
            parse_engine_settings({"dividend_mode": "monthly"})

    def test_invalid_integer(self):
        with pytest.raises(ConfigurationError):
            parse_engine_settings({"tolerance_days": "soon"})

    def test_zero_tolerance_rejected(self):
        with pytest.raises(ConfigurationError, match="tolerance_days"):
            parse_engine_settings({"tolerance_days": 0})


class TestLoadFromFile:
    """Tests for loading YAML files."""

    def test_load_params_and_settings(self, tmp_path: Path):
        raw = _raw(settings={"min_months": 6})
        path = _write(tmp_path, raw)

        params = load_backtest_params(path)
        settings = load_engine_settings(path)

        assert params.tickers == ["VTI", "BND"]
        assert settings.min_months == 6

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_backtest_params(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_backtest_params(path)

    def test_default_config_is_loadable(self, tmp_path: Path):
        path = tmp_path / "default.yaml"
        params = create_default_config(path)

        assert load_backtest_params(path) == params
        assert load_engine_settings(path) == EngineSettings()
