"""
Command-line interface for the Adaptive Backtest Engine.

Provides commands for:
- run: Run a backtest and write its report, journal and metrics
- validate: Check historical data availability for a configuration
- init-config: Write a sample configuration file
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from adaptive_backtest import __version__
from adaptive_backtest.config import (
    ConfigurationError,
    EngineSettings,
    create_default_config,
    load_backtest_params,
    load_engine_settings,
)
from adaptive_backtest.data.normalizer import price_window
from adaptive_backtest.data.providers import CSVProvider, DataProviderError, MarketDataProvider
from adaptive_backtest.data.validator import BacktestDataValidator, InsufficientDataError
from adaptive_backtest.logging import get_logger
from adaptive_backtest.persistence import FileRepository, config_id_for


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config: str) -> tuple:
    try:
        return load_backtest_params(config), load_engine_settings(config)
    except ConfigurationError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)


def _make_provider(
    source: str,
    prices: Optional[str],
    dividends: Optional[str],
) -> MarketDataProvider:
    if source == "yfinance":
        from adaptive_backtest.data.providers.yfinance_provider import YFinanceProvider
        try:
            return YFinanceProvider()
        except DataProviderError as e:
            click.echo(f"Error initializing data provider: {e}", err=True)
            sys.exit(1)

    if not prices:
        click.echo("--prices is required when --source is csv.", err=True)
        sys.exit(1)
    return CSVProvider(prices, dividends)


@click.group()
@click.version_option(version=__version__, prog_name="adaptive-backtest")
def main():
    """
    Adaptive Portfolio Backtest Engine.

    Replays a monthly contribution and rebalancing plan against historical
    prices and dividends, producing a reconciled transaction journal and
    performance metrics.
    """
    pass


@main.command()
@click.option(
    "--config", "-c",
    required=True,
    type=click.Path(exists=True),
    help="Path to backtest configuration YAML file",
)
@click.option(
    "--prices", "-p",
    type=click.Path(exists=True),
    default=None,
    help="Path to monthly prices CSV file (ticker, date, close, adjusted_close)",
)
@click.option(
    "--dividends", "-d",
    type=click.Path(exists=True),
    default=None,
    help="Path to dividend events CSV file (ticker, ex_date, amount_per_share)",
)
@click.option(
    "--source",
    type=click.Choice(["csv", "yfinance"]),
    default="csv",
    help="Market data source (default: csv)",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default="output",
    help="Output directory",
)
@click.option(
    "--save-to",
    type=click.Path(),
    default=None,
    help="Optional repository directory to store config, result and journal",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def run(
    config: str,
    prices: Optional[str],
    dividends: Optional[str],
    source: str,
    output_dir: str,
    save_to: Optional[str],
    verbose: bool,
):
    """
    Run a backtest.

    Loads the configuration, fetches market data, simulates every month of
    the supported period and writes the run report, metrics, monthly
    portfolio values and the transaction journal.

    Example:
        adaptive-backtest run -c backtest.yaml -p prices.csv
    """
    _configure_logging(verbose)
    from adaptive_backtest.simulation import generate_report, run_adaptive_backtest
    from adaptive_backtest.simulation.report import generate_quick_summary

    params, settings = _load_config(config)
    run_id = f"backtest_{config_id_for(params)}"
    provider = _make_provider(source, prices, dividends)

    out_dir = Path(output_dir) / run_id
    out_dir.mkdir(parents=True, exist_ok=True)
    decision_log = get_logger(out_dir / "decision_log.jsonl")
    decision_log.log_params_loaded(run_id, params, config)

    click.echo(f"\n{'='*60}")
    click.echo("  Adaptive Backtest")
    click.echo(f"{'='*60}")
    click.echo(f"  Period: {params.start_date} to {params.end_date}")
    click.echo(f"  Assets: {', '.join(params.tickers)}")
    click.echo(f"  Initial Capital: ${params.initial_capital:,.2f}")
    click.echo(f"  Monthly Contribution: ${params.monthly_contribution:,.2f}")
    click.echo(f"  Rebalance: {params.rebalance_frequency.value}")
    click.echo(f"{'='*60}\n")

    def progress(msg: str):
        click.echo(f"  {msg}")

    try:
        result = run_adaptive_backtest(
            params=params,
            provider=provider,
            settings=settings,
            progress_callback=progress,
        )
    except InsufficientDataError as e:
        if e.validation is not None:
            decision_log.log_data_validated(run_id, e.validation)
            for warning in e.validation.global_warnings:
                click.echo(f"  Warning: {warning}", err=True)
        click.echo(f"\nError running backtest: {e}", err=True)
        sys.exit(1)
    except DataProviderError as e:
        click.echo(f"\nError fetching market data: {e}", err=True)
        sys.exit(1)

    decision_log.log_data_validated(run_id, result.data_validation)
    decision_log.log_backtest_completed(run_id, result)

    try:
        paths = generate_report(result, params, out_dir, run_id=run_id, settings=settings)
    except OSError as e:
        click.echo(f"\nError generating report: {e}", err=True)
        sys.exit(1)

    if save_to:
        repository = FileRepository(save_to)
        config_id = repository.save_config(params)
        repository.save_result(config_id, result)
        repository.save_transactions(config_id, result.transactions)
        click.echo(f"  Stored as configuration {config_id} in {save_to}")

    decision_log.log_results_saved(run_id, paths)

    click.echo(generate_quick_summary(result, run_id))

    if result.data_quality_issues:
        click.echo("Data quality issues:")
        for issue in result.data_quality_issues:
            click.echo(f"  - {issue}")
        click.echo()

    click.echo(f"Outputs saved to: {out_dir}")
    for name, path in paths.items():
        click.echo(f"  - {name}: {path.name}")


@main.command()
@click.option(
    "--config", "-c",
    required=True,
    type=click.Path(exists=True),
    help="Path to backtest configuration YAML file",
)
@click.option(
    "--prices", "-p",
    type=click.Path(exists=True),
    default=None,
    help="Path to monthly prices CSV file",
)
@click.option(
    "--source",
    type=click.Choice(["csv", "yfinance"]),
    default="csv",
    help="Market data source (default: csv)",
)
def validate(config: str, prices: Optional[str], source: str):
    """
    Check historical data availability for a configuration.

    Reports per-asset coverage and quality, the common period the data
    supports, and exits with status 1 when a backtest cannot run.
    """
    _configure_logging(False)
    params, settings = _load_config(config)
    provider = _make_provider(source, prices, None)

    try:
        fetch_start, fetch_end = price_window(
            params.start_date, params.end_date, settings.tolerance_days
        )
        history = provider.get_price_history(params.tickers, fetch_start, fetch_end)
    except DataProviderError as e:
        click.echo(f"Error fetching market data: {e}", err=True)
        sys.exit(1)

    validation = BacktestDataValidator(
        min_months=settings.min_months, tolerance_days=settings.tolerance_days
    ).validate(
        params.tickers, params.start_date, params.end_date, history
    )

    click.echo(f"\n{'Ticker':<10} {'From':<12} {'To':<12} {'Months':>7} {'Missing':>8}  Quality")
    click.echo("-" * 60)
    for availability in validation.assets_availability:
        available_from = availability.available_from.isoformat() if availability.available_from else "-"
        available_to = availability.available_to.isoformat() if availability.available_to else "-"
        click.echo(
            f"{availability.ticker:<10} {available_from:<12} {available_to:<12} "
            f"{availability.total_months:>7} {availability.missing_months:>8}  "
            f"{availability.data_quality.value}"
        )
        for warning in availability.warnings:
            click.echo(f"    - {warning}")

    click.echo()
    click.echo(
        f"Common period: {validation.adjusted_start_date} to "
        f"{validation.adjusted_end_date} ({validation.months_available} months)"
    )
    for warning in validation.global_warnings:
        click.echo(f"Warning: {warning}")
    for recommendation in validation.recommendations:
        click.echo(f"Recommendation: {recommendation}")

    if not validation.is_valid:
        click.echo("Data is insufficient for a backtest.", err=True)
        sys.exit(1)

    click.echo("Data is sufficient for a backtest.")


@main.command("init-config")
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="backtest.yaml",
    help="Path for the new configuration file",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_config(output: str, force: bool):
    """
    Write a sample configuration file.

    The sample holds a three-asset allocation, a monthly contribution,
    quarterly rebalancing and the default engine settings.
    """
    output_path = Path(output)
    if output_path.exists() and not force:
        click.echo(f"{output_path} already exists. Use --force to overwrite.", err=True)
        sys.exit(1)

    params = create_default_config(output_path)
    click.echo(f"Configuration written to {output_path}")
    click.echo(f"  Assets: {', '.join(params.tickers)}")
    click.echo(f"  Period: {params.start_date} to {params.end_date}")
    click.echo(f"  Defaults: {EngineSettings()}")


if __name__ == "__main__":
    main()
