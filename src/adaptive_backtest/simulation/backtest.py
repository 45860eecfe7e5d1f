"""
Backtest runner for adaptive portfolio simulations.

Validates data availability, fetches market data once, normalizes it to the
monthly grid, runs the simulation and assembles the result with metrics and
data-quality metadata.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from adaptive_backtest.config import EngineSettings
from adaptive_backtest.data.loaders import save_portfolio_evolution, save_transactions
from adaptive_backtest.data.normalizer import (
    generate_monthly_dates,
    month_start,
    normalize_price_series,
    price_window,
)
from adaptive_backtest.data.providers.base import MarketDataProvider
from adaptive_backtest.data.validator import BacktestDataValidator, InsufficientDataError
from adaptive_backtest.models import (
    AdaptiveBacktestResult,
    BacktestDataValidation,
    BacktestParams,
    DataQuality,
    DividendMode,
)
from adaptive_backtest.simulation.engine import MarketData, SimulationState, run_simulation
from adaptive_backtest.simulation.metrics import (
    calculate_asset_performance,
    calculate_metrics,
)

logger = logging.getLogger(__name__)


def run_adaptive_backtest(
    params: BacktestParams,
    provider: MarketDataProvider,
    settings: Optional[EngineSettings] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
) -> AdaptiveBacktestResult:
    """
    Run a complete adaptive backtest.

    Args:
        params: Backtest parameters (never mutated)
        provider: Historical market data provider
        settings: Engine settings (uses defaults if None)
        progress_callback: Optional callback for progress updates

    Returns:
        AdaptiveBacktestResult containing metrics, journal and data-quality metadata

    Raises:
        InsufficientDataError: If no common data period of the minimum length exists
        DataProviderError: If the provider fails
    """
    if settings is None:
        settings = EngineSettings()

    tickers = params.tickers

    if progress_callback:
        progress_callback(f"Fetching price data for {len(tickers)} assets...")

    fetch_start, fetch_end = price_window(
        params.start_date, params.end_date, settings.tolerance_days
    )
    raw_prices = provider.get_price_history(tickers, fetch_start, fetch_end)

    if progress_callback:
        progress_callback("Validating data availability...")

    validator = BacktestDataValidator(
        min_months=settings.min_months, tolerance_days=settings.tolerance_days
    )
    validation = validator.validate(tickers, params.start_date, params.end_date, raw_prices)
    if not validation.is_valid:
        raise InsufficientDataError(
            f"Insufficient historical data: {validation.months_available} common months "
            f"available, at least {settings.min_months} required",
            validation,
        )

    start_date = validation.adjusted_start_date
    end_date = validation.adjusted_end_date
    issues: list[str] = []
    if (
        start_date != month_start(params.start_date)
        or end_date != month_start(params.end_date)
    ):
        issues.append(
            f"Period adjusted from {params.start_date.isoformat()} - {params.end_date.isoformat()} "
            f"to {start_date.isoformat()} - {end_date.isoformat()} based on data availability"
        )

    dividends = {}
    if settings.dividend_mode is DividendMode.EVENTS:
        if progress_callback:
            progress_callback("Fetching dividend events...")
        dividends = {
            ticker: tuple(events)
            for ticker, events in provider.get_dividend_history(
                tickers, start_date, end_date
            ).items()
        }

    series = {}
    for ticker in tickers:
        normalized = normalize_price_series(
            raw_prices.get(ticker, []),
            start_date,
            end_date,
            ticker=ticker,
            tolerance_days=settings.tolerance_days,
        )
        series[ticker] = normalized
        if normalized.is_degenerate:
            issues.append(
                f"{ticker}: {normalized.forward_fills} filled months outnumber "
                f"{normalized.exact_matches} genuine observations"
            )

    market = MarketData(
        month_dates=tuple(generate_monthly_dates(start_date, end_date)),
        series=series,
        dividends=dividends,
    )

    if progress_callback:
        progress_callback(f"Simulating {len(market.month_dates)} months...")

    state = run_simulation(params, market, settings)

    metrics = calculate_metrics(
        state.snapshots, state.history, params, settings.risk_free_rate
    )
    final_date = state.snapshots[-1].date if state.snapshots else None
    asset_performance = calculate_asset_performance(
        params, state.history, series, final_date, state.final_value
    )

    planned_investment = (
        params.initial_capital + params.monthly_contribution * len(market.month_dates)
    )
    missed_amount = params.monthly_contribution * state.missed_contributions
    issues.extend(_data_quality_issues(state, validation))
    for issue in issues:
        logger.warning(issue)

    if progress_callback:
        progress_callback("Backtest complete!")

    return AdaptiveBacktestResult(
        total_return=metrics.total_return,
        annualized_return=metrics.annualized_return,
        volatility=metrics.volatility,
        sharpe_ratio=metrics.sharpe_ratio,
        max_drawdown=metrics.max_drawdown,
        positive_months=metrics.positive_months,
        negative_months=metrics.negative_months,
        total_invested=state.total_contributions,
        final_value=state.final_value,
        final_cash_reserve=state.cash,
        asset_performance=asset_performance,
        portfolio_evolution=list(state.snapshots),
        monthly_history=list(state.history),
        data_validation=validation,
        data_quality_issues=issues,
        effective_start_date=start_date,
        effective_end_date=end_date,
        planned_investment=planned_investment,
        actual_investment=state.total_contributions,
        missed_contributions=state.missed_contributions,
        missed_amount=missed_amount,
        total_dividends_received=state.total_dividends,
    )


def _data_quality_issues(
    state: SimulationState,
    validation: BacktestDataValidation,
) -> list[str]:
    issues = []
    if state.skipped_months:
        skipped = ", ".join(d.isoformat() for d in state.skipped_months)
        issues.append(
            f"{state.missed_contributions} month(s) skipped with no available asset: {skipped}"
        )

    for availability in validation.assets_availability:
        if availability.data_quality is DataQuality.POOR:
            issues.append(f"{availability.ticker}: poor data quality")
        elif availability.data_quality is DataQuality.FAIR:
            issues.append(f"{availability.ticker}: fair data quality")
        if availability.missing_months > 0:
            issues.append(
                f"{availability.ticker}: {availability.missing_months} months with missing data"
            )
    return issues


def save_outputs(result: AdaptiveBacktestResult, output_dir: str | Path) -> dict[str, Path]:
    """
    Save backtest outputs to files.

    Args:
        result: Backtest result
        output_dir: Directory to save outputs

    Returns:
        Dictionary mapping output type to file path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {}

    paths["transactions"] = save_transactions(
        result.transactions, output_dir / "transactions.csv"
    )
    paths["portfolio_monthly"] = save_portfolio_evolution(
        result.portfolio_evolution, output_dir / "portfolio_monthly.csv"
    )

    result_path = output_dir / "result.json"
    result.to_json(result_path)
    paths["result"] = result_path

    return paths


def summarize(result: AdaptiveBacktestResult) -> dict:
    """Headline figures of a result as plain numbers."""
    return {
        "final_value": float(result.final_value),
        "total_invested": float(result.total_invested),
        "total_return": result.total_return,
        "annualized_return": result.annualized_return,
        "volatility": result.volatility,
        "sharpe_ratio": result.sharpe_ratio,
        "max_drawdown": result.max_drawdown,
        "total_dividends": float(result.total_dividends_received),
        "final_cash": float(result.final_cash_reserve),
        "missed_contributions": result.missed_contributions,
        "missed_amount": float(result.missed_amount),
        "months": len(result.portfolio_evolution),
        "transactions": sum(len(m.transactions) for m in result.monthly_history),
        "effective_start_date": result.effective_start_date.isoformat(),
        "effective_end_date": result.effective_end_date.isoformat(),
    }

