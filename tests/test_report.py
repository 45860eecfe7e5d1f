"""
Tests for report generation.
"""

import json
from pathlib import Path

import pandas as pd

from adaptive_backtest.simulation import generate_report, run_adaptive_backtest
from adaptive_backtest.simulation.backtest import summarize
from adaptive_backtest.simulation.report import generate_quick_summary


class TestGenerateReport:
    """Tests for generate_report."""

    def test_outputs(
        self, tmp_path: Path, three_asset_params, three_asset_provider, test_settings
    ):
        result = run_adaptive_backtest(three_asset_params, three_asset_provider, test_settings)
        paths = generate_report(
            result, three_asset_params, tmp_path, run_id="run-1", settings=test_settings
        )

        assert set(paths) == {
            "metrics", "transactions", "portfolio_monthly", "result", "report",
        }

        report = paths["report"].read_text()
        assert "**Run ID:** `run-1`" in report
        assert "| AAA | 50.0% |" in report
        assert "## Data Quality" in report

        journal = pd.read_csv(paths["transactions"])
        assert len(journal) == len(result.transactions)
        assert set(journal["transaction_type"]) <= {
            "CONTRIBUTION", "REBALANCE_BUY", "REBALANCE_SELL", "CASH_RESERVE",
            "CASH_CREDIT", "CASH_DEBIT", "DIVIDEND_PAYMENT",
        }

        monthly = pd.read_csv(paths["portfolio_monthly"])
        assert len(monthly) == 24

        metrics = json.loads(paths["metrics"].read_text())
        assert metrics["total_invested"] == float(result.total_invested)

    def test_quick_summary_and_summarize(
        self, three_asset_params, three_asset_provider, test_settings
    ):
        result = run_adaptive_backtest(three_asset_params, three_asset_provider, test_settings)

        text = generate_quick_summary(result, "run-1")
        assert "Backtest Summary: run-1" in text

        summary = summarize(result)
        assert summary["months"] == 24
        assert summary["transactions"] == len(result.transactions)
        assert summary["effective_start_date"] == "2020-01-01"
