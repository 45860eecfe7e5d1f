"""
Report generation for backtest results.

Generates human-readable markdown reports and JSON metric files
summarizing portfolio performance, per-asset attribution and data quality.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from adaptive_backtest import __version__
from adaptive_backtest.config import EngineSettings
from adaptive_backtest.models import AdaptiveBacktestResult, BacktestParams, TransactionType
from adaptive_backtest.simulation.backtest import save_outputs
from adaptive_backtest.simulation.metrics import PerformanceMetrics, calculate_metrics


def generate_report(
    result: AdaptiveBacktestResult,
    params: BacktestParams,
    output_dir: str | Path,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    include_transaction_details: bool = True,
) -> dict[str, Path]:
    """
    Generate complete backtest report.

    Creates:
    - run_report.md: Human-readable markdown summary
    - metrics.json: Machine-readable metrics
    - transactions.csv: Full monthly transaction journal
    - portfolio_monthly.csv: Month-end portfolio values
    - result.json: Complete serialized result

    Args:
        result: Backtest result
        params: Parameters the backtest was run with
        output_dir: Directory to save outputs
        run_id: Optional identifier shown in the report
        settings: Engine settings the backtest was run with
        include_transaction_details: Include the latest journal entries in markdown

    Returns:
        Dictionary mapping output type to file path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    settings = settings or EngineSettings()

    paths = {}

    metrics = calculate_metrics(
        snapshots=result.portfolio_evolution,
        history=result.monthly_history,
        params=params,
        risk_free_rate=settings.risk_free_rate,
    )

    metrics_path = output_dir / "metrics.json"
    metrics.to_json(metrics_path)
    paths["metrics"] = metrics_path

    paths.update(save_outputs(result, output_dir))

    report_path = output_dir / "run_report.md"
    markdown = _generate_markdown_report(
        result, params, metrics, settings, run_id, include_transaction_details
    )
    with open(report_path, "w") as f:
        f.write(markdown)
    paths["report"] = report_path

    return paths


def _format_optional_ratio(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def _generate_markdown_report(
    result: AdaptiveBacktestResult,
    params: BacktestParams,
    metrics: PerformanceMetrics,
    settings: EngineSettings,
    run_id: Optional[str],
    include_transaction_details: bool,
) -> str:
    """Generate markdown report content."""
    transactions = result.transactions
    buys = sum(1 for t in transactions if t.transaction_type.is_buy)
    sells = sum(
        1 for t in transactions if t.transaction_type is TransactionType.REBALANCE_SELL
    )
    rebalance_months = sum(1 for m in result.monthly_history if m.rebalanced)

    lines = [
        "# Adaptive Backtest Report",
        "",
    ]
    if run_id:
        lines.append(f"**Run ID:** `{run_id}`")
    lines.extend([
        f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "---",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Requested Period | {params.start_date.isoformat()} to {params.end_date.isoformat()} |",
        f"| Effective Period | {result.effective_start_date.isoformat()} to {result.effective_end_date.isoformat()} |",
        f"| Months Simulated | {metrics.months} |",
        f"| Initial Capital | ${params.initial_capital:,.2f} |",
        f"| Monthly Contribution | ${params.monthly_contribution:,.2f} |",
        f"| Total Invested | ${result.total_invested:,.2f} |",
        f"| Final Value | ${result.final_value:,.2f} |",
        f"| Total Return | {result.total_return:.2%} |",
        f"| Annualized Return | {result.annualized_return:.2%} |",
        "",
        "---",
        "",
        "## Performance Metrics",
        "",
        "### Returns",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total Return | {result.total_return:.2%} |",
        f"| Annualized Return | {result.annualized_return:.2%} |",
        f"| Annualized Volatility | {result.volatility:.2%} |",
        f"| Sharpe Ratio (rf {settings.risk_free_rate:.1%}) | {_format_optional_ratio(result.sharpe_ratio)} |",
        "",
        "### Risk",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Maximum Drawdown | {result.max_drawdown:.2%} |",
        f"| Positive Months | {result.positive_months} |",
        f"| Negative Months | {result.negative_months} |",
        "",
        "---",
        "",
        "## Asset Performance",
        "",
        "| Ticker | Target | Shares | Final Value | Invested | Sold | Dividends | Return |",
        "|--------|--------|--------|-------------|----------|------|-----------|--------|",
    ])

    for perf in result.asset_performance:
        value_note = "" if perf.price_available else " *"
        lines.append(
            f"| {perf.ticker} | {perf.allocation:.1%} | {perf.total_shares} | "
            f"${perf.final_value:,.2f}{value_note} | ${perf.contribution:,.2f} | "
            f"${perf.sale_proceeds:,.2f} | ${perf.total_dividends:,.2f} | "
            f"{perf.total_return:.2%} |"
        )
    if any(not p.price_available for p in result.asset_performance):
        lines.extend(["", "\\* No final price available; value estimated pro rata."])

    lines.extend([
        "",
        "---",
        "",
        "## Trading Activity",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Journal Entries | {len(transactions)} |",
        f"| Purchases | {buys} |",
        f"| Sales | {sells} |",
        f"| Rebalance Months | {rebalance_months} |",
        f"| Dividends Received | ${result.total_dividends_received:,.2f} |",
        f"| Final Cash Reserve | ${result.final_cash_reserve:,.2f} |",
        "",
        "---",
        "",
        "## Data Quality",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Planned Investment | ${result.planned_investment:,.2f} |",
        f"| Actual Investment | ${result.actual_investment:,.2f} |",
        f"| Missed Contributions | {result.missed_contributions} |",
        f"| Missed Amount | ${result.missed_amount:,.2f} |",
        "",
        "| Ticker | From | To | Months | Missing | Quality |",
        "|--------|------|----|--------|---------|---------|",
    ])

    for availability in result.data_validation.assets_availability:
        available_from = availability.available_from.isoformat() if availability.available_from else "-"
        available_to = availability.available_to.isoformat() if availability.available_to else "-"
        lines.append(
            f"| {availability.ticker} | {available_from} | {available_to} | "
            f"{availability.total_months} | {availability.missing_months} | "
            f"{availability.data_quality.value} |"
        )
    lines.append("")

    if result.data_quality_issues:
        lines.append("**⚠️ Issues Detected:**")
        for issue in result.data_quality_issues:
            lines.append(f"- {issue}")
        lines.append("")

    if result.data_validation.recommendations:
        lines.append("**Recommendations:**")
        for recommendation in result.data_validation.recommendations:
            lines.append(f"- {recommendation}")
        lines.append("")

    lines.extend([
        "---",
        "",
        "## Configuration",
        "",
        "```yaml",
        f"rebalance_frequency: {params.rebalance_frequency.value}",
        f"dividend_mode: {settings.dividend_mode.value}",
        f"min_sell_value: {settings.min_sell_value}",
        f"tolerance_days: {settings.tolerance_days}",
        "assets:",
    ])
    for asset in params.assets:
        lines.append(f"  - {asset.ticker}: {asset.target_allocation}")
    lines.extend(["```", ""])

    if include_transaction_details and transactions:
        lines.extend([
            "---",
            "",
            "## Transaction Details",
            "",
            "### Recent Entries (Last 20)",
            "",
            "| Date | Ticker | Type | Shares | Price | Amount | Cash After |",
            "|------|--------|------|--------|-------|--------|------------|",
        ])
        for t in transactions[-20:]:
            lines.append(
                f"| {t.date.isoformat()} | {t.ticker} | {t.transaction_type.value} | "
                f"{t.shares_added} | ${t.price:,.2f} | ${t.contribution:,.2f} | "
                f"${t.cash_balance:,.2f} |"
            )
        lines.append("")

    lines.extend([
        "---",
        "",
        "## Assumptions & Limitations",
        "",
        "1. **Execution**: Trades execute at the month's adjusted close with whole "
        "shares only. No slippage or market impact is modeled.",
        "",
        "2. **Missing Data**: Assets without a genuine price for a month are left "
        "out of that month's rebalance and remaining targets are rescaled.",
        "",
        "3. **Dividends**: Dividends are credited to cash and deployed by the next "
        "rebalance or contribution pass.",
        "",
        "4. **Transaction Costs**: No transaction costs, taxes or bid-ask spreads are included.",
        "",
        "---",
        "",
        f"*Report generated by adaptive-backtest v{__version__}*",
    ])

    return "\n".join(lines)


def generate_quick_summary(
    result: AdaptiveBacktestResult,
    run_id: Optional[str] = None,
) -> str:
    """
    Generate a quick text summary for console output.

    Args:
        result: Backtest result
        run_id: Optional identifier shown in the header

    Returns:
        Formatted summary string
    """
    title = f"Backtest Summary: {run_id}" if run_id else "Backtest Summary"
    sharpe = _format_optional_ratio(result.sharpe_ratio)

    lines = [
        f"\n{'='*60}",
        f"  {title}",
        f"{'='*60}",
        "",
        f"  Period:      {result.effective_start_date} to {result.effective_end_date}",
        f"  Months:      {len(result.portfolio_evolution)}",
        "",
        f"  Invested:    ${float(result.total_invested):>14,.2f}",
        f"  Final:       ${float(result.final_value):>14,.2f}",
        f"  Return:      {result.total_return:>14.2%}",
        f"  Annualized:  {result.annualized_return:>14.2%}",
        "",
        f"  Volatility:  {result.volatility:>14.2%}",
        f"  Sharpe:      {sharpe:>14}",
        f"  Max DD:      {result.max_drawdown:>14.2%}",
        "",
        f"  Dividends:   ${float(result.total_dividends_received):>14,.2f}",
        f"  Cash:        ${float(result.final_cash_reserve):>14,.2f}",
        f"  Missed:      {result.missed_contributions:>14}",
        f"{'='*60}\n",
    ]

    return "\n".join(lines)
