"""
Configuration loading and management for the Adaptive Backtest Engine.

This module handles loading backtest parameters and engine settings from YAML
files, validation of configuration values, and writing configurations back
to disk.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from adaptive_backtest.models import (
    AssetConfig,
    BacktestParams,
    DividendMode,
    RebalanceFrequency,
)


# Allocations may overshoot 1.0 by this much before being rejected
ALLOCATION_TOLERANCE = Decimal("0.0001")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


@dataclass(frozen=True)
class EngineSettings:
    """
    Tunable constants of the simulation engine.

    Attributes:
        risk_free_rate: Annual risk-free rate used by the Sharpe ratio
        min_sell_value: Sales below this value are deferred
        min_dividend: Dividend credits below this amount are discarded
        dividend_mode: How dividend credits are derived
        tolerance_days: Window for matching raw prices to month dates
        min_months: Minimum common data period for a valid backtest
    """
    risk_free_rate: float = 0.10
    min_sell_value: Decimal = Decimal("100")
    min_dividend: Decimal = Decimal("0.01")
    dividend_mode: DividendMode = DividendMode.YIELD
    tolerance_days: int = 7
    min_months: int = 12


def load_backtest_params(config_path: str | Path) -> BacktestParams:
    """
    Load backtest parameters from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        BacktestParams with validated settings

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    return parse_backtest_params(_read_yaml(config_path))


def load_engine_settings(config_path: str | Path) -> EngineSettings:
    """
    Load engine settings from the optional ``settings`` section of a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        EngineSettings (defaults where the section or a key is absent)

    Raises:
        ConfigurationError: If the file cannot be loaded or a setting is invalid
    """
    raw = _read_yaml(config_path)
    return parse_engine_settings(raw.get("settings") or {})


def _read_yaml(config_path: str | Path) -> dict[str, Any]:
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if not isinstance(raw_config, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping: {config_path}"
        )

    return raw_config


def parse_backtest_params(raw: dict[str, Any]) -> BacktestParams:
    """
    Parse and validate raw configuration dictionary into BacktestParams.

    Args:
        raw: Dictionary loaded from YAML

    Returns:
        Validated BacktestParams

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    required_fields = ["assets", "start_date", "end_date", "initial_capital"]
    for field_name in required_fields:
        if field_name not in raw:
            raise ConfigurationError(f"Missing required configuration field: {field_name}")

    start_date = _parse_date(raw["start_date"], "start_date")
    end_date = _parse_date(raw["end_date"], "end_date")
    if end_date < start_date:
        raise ConfigurationError(
            f"end_date {end_date} is before start_date {start_date}"
        )

    initial_capital = _parse_decimal(
        raw["initial_capital"], "initial_capital", min_val=Decimal("0")
    )
    monthly_contribution = _parse_decimal(
        raw.get("monthly_contribution", "0"),
        "monthly_contribution",
        min_val=Decimal("0"),
    )

    frequency_raw = str(raw.get("rebalance_frequency", "monthly")).lower()
    try:
        rebalance_frequency = RebalanceFrequency(frequency_raw)
    except ValueError:
        valid = ", ".join(f.value for f in RebalanceFrequency)
        raise ConfigurationError(
            f"Invalid rebalance_frequency: {frequency_raw}. Expected one of: {valid}"
        )

    assets = _parse_assets(raw["assets"])

    return BacktestParams(
        assets=assets,
        start_date=start_date,
        end_date=end_date,
        initial_capital=initial_capital,
        monthly_contribution=monthly_contribution,
        rebalance_frequency=rebalance_frequency,
    )


def _parse_assets(raw_assets: Any) -> tuple[AssetConfig, ...]:
    if not isinstance(raw_assets, list) or not raw_assets:
        raise ConfigurationError("assets must be a non-empty list")

    assets = []
    seen: set[str] = set()
    for i, raw_asset in enumerate(raw_assets):
        if not isinstance(raw_asset, dict):
            raise ConfigurationError(f"assets[{i}] must be a mapping")
        if "ticker" not in raw_asset or "target_allocation" not in raw_asset:
            raise ConfigurationError(
                f"assets[{i}] requires 'ticker' and 'target_allocation'"
            )

        ticker = str(raw_asset["ticker"]).strip().upper()
        if not ticker:
            raise ConfigurationError(f"assets[{i}] ticker cannot be empty")
        if ticker in seen:
            raise ConfigurationError(f"Duplicate ticker in assets: {ticker}")
        seen.add(ticker)

        allocation = _parse_decimal(
            raw_asset["target_allocation"],
            f"{ticker}.target_allocation",
            min_val=Decimal("0"),
            max_val=Decimal("1"),
        )

        dividend_yield = None
        if raw_asset.get("average_dividend_yield") is not None:
            dividend_yield = _parse_decimal(
                raw_asset["average_dividend_yield"],
                f"{ticker}.average_dividend_yield",
                min_val=Decimal("0"),
                max_val=Decimal("1"),
            )

        assets.append(
            AssetConfig(
                ticker=ticker,
                target_allocation=allocation,
                average_dividend_yield=dividend_yield,
            )
        )

    total = sum((a.target_allocation for a in assets), Decimal("0"))
    if total > Decimal("1") + ALLOCATION_TOLERANCE:
        raise ConfigurationError(
            f"Target allocations must sum to at most 1.0, got {total}"
        )
    if total <= 0:
        raise ConfigurationError("Target allocations must sum to a positive value")

    return tuple(assets)


def parse_engine_settings(raw: dict[str, Any]) -> EngineSettings:
    """
    Parse and validate the ``settings`` section into EngineSettings.

    Args:
        raw: Dictionary of settings (may be empty)

    Returns:
        Validated EngineSettings

    Raises:
        ConfigurationError: If a setting is invalid
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("settings must be a mapping")

    defaults = EngineSettings()

    risk_free_rate = _parse_decimal(
        raw.get("risk_free_rate", defaults.risk_free_rate),
        "risk_free_rate",
        min_val=Decimal("0"),
        max_val=Decimal("1"),
    )
    min_sell_value = _parse_decimal(
        raw.get("min_sell_value", defaults.min_sell_value),
        "min_sell_value",
        min_val=Decimal("0"),
    )
    min_dividend = _parse_decimal(
        raw.get("min_dividend", defaults.min_dividend),
        "min_dividend",
        min_val=Decimal("0"),
    )

    mode_raw = str(raw.get("dividend_mode", defaults.dividend_mode.value)).lower()
    try:
        dividend_mode = DividendMode(mode_raw)
    except ValueError:
        valid = ", ".join(m.value for m in DividendMode)
        raise ConfigurationError(
            f"Invalid dividend_mode: {mode_raw}. Expected one of: {valid}"
        )

    tolerance_days = _parse_int(
        raw.get("tolerance_days", defaults.tolerance_days), "tolerance_days", min_val=1
    )
    min_months = _parse_int(
        raw.get("min_months", defaults.min_months), "min_months", min_val=1
    )

    return EngineSettings(
        risk_free_rate=float(risk_free_rate),
        min_sell_value=min_sell_value,
        min_dividend=min_dividend,
        dividend_mode=dividend_mode,
        tolerance_days=tolerance_days,
        min_months=min_months,
    )


def _parse_date(value: Any, field_name: str) -> date:
    """
    Parse a date value from various formats.

    Args:
        value: The value to parse (string or date object)
        field_name: Name of the field for error messages

    Returns:
        Parsed date object

    Raises:
        ConfigurationError: If the date cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            pass

        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            pass

    raise ConfigurationError(
        f"Invalid date format for {field_name}: {value}. Expected YYYY-MM-DD"
    )


def _parse_decimal(
    value: Any,
    field_name: str,
    min_val: Decimal | None = None,
    max_val: Decimal | None = None,
) -> Decimal:
    """
    Parse a decimal value with optional range validation.

    Args:
        value: The value to parse
        field_name: Name of the field for error messages
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)

    Returns:
        Parsed Decimal

    Raises:
        ConfigurationError: If the value is invalid or out of range
    """
    try:
        decimal_value = Decimal(str(value))
    except Exception:
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if not decimal_value.is_finite():
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if min_val is not None and decimal_value < min_val:
        raise ConfigurationError(
            f"{field_name} must be >= {min_val}, got {decimal_value}"
        )

    if max_val is not None and decimal_value > max_val:
        raise ConfigurationError(
            f"{field_name} must be <= {max_val}, got {decimal_value}"
        )

    return decimal_value


def _parse_int(value: Any, field_name: str, min_val: int | None = None) -> int:
    try:
        int_value = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid integer value for {field_name}: {value}")

    if min_val is not None and int_value < min_val:
        raise ConfigurationError(f"{field_name} must be >= {min_val}, got {int_value}")

    return int_value


def backtest_params_to_dict(params: BacktestParams) -> dict[str, Any]:
    """Convert BacktestParams to the YAML configuration layout."""
    assets = []
    for asset in params.assets:
        entry: dict[str, Any] = {
            "ticker": asset.ticker,
            "target_allocation": str(asset.target_allocation),
        }
        if asset.average_dividend_yield is not None:
            entry["average_dividend_yield"] = str(asset.average_dividend_yield)
        assets.append(entry)

    return {
        "start_date": params.start_date.isoformat(),
        "end_date": params.end_date.isoformat(),
        "initial_capital": str(params.initial_capital),
        "monthly_contribution": str(params.monthly_contribution),
        "rebalance_frequency": params.rebalance_frequency.value,
        "assets": assets,
    }


def engine_settings_to_dict(settings: EngineSettings) -> dict[str, Any]:
    """Convert EngineSettings to the YAML ``settings`` layout."""
    return {
        "risk_free_rate": settings.risk_free_rate,
        "min_sell_value": str(settings.min_sell_value),
        "min_dividend": str(settings.min_dividend),
        "dividend_mode": settings.dividend_mode.value,
        "tolerance_days": settings.tolerance_days,
        "min_months": settings.min_months,
    }


def write_backtest_params(
    params: BacktestParams,
    output_path: str | Path,
    settings: EngineSettings | None = None,
) -> None:
    """
    Write BacktestParams (and optionally engine settings) to a YAML file.

    Args:
        params: The parameters to write
        output_path: Path to write the YAML file
        settings: Optional engine settings written under ``settings``
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = backtest_params_to_dict(params)
    if settings is not None:
        config_dict["settings"] = engine_settings_to_dict(settings)

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)


def create_default_config(output_path: str | Path | None = None) -> BacktestParams:
    """
    Create a sample balanced three-asset configuration.

    Args:
        output_path: Optional path to write config YAML

    Returns:
        BacktestParams with sample values
    """
    params = BacktestParams(
        assets=(
            AssetConfig("VTI", Decimal("0.6"), Decimal("0.015")),
            AssetConfig("BND", Decimal("0.3"), Decimal("0.03")),
            AssetConfig("GLD", Decimal("0.1")),
        ),
        start_date=date(2015, 1, 1),
        end_date=date(2024, 12, 1),
        initial_capital=Decimal("10000"),
        monthly_contribution=Decimal("500"),
        rebalance_frequency=RebalanceFrequency.QUARTERLY,
    )

    if output_path:
        write_backtest_params(params, output_path, settings=EngineSettings())

    return params
