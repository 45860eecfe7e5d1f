"""
Tests for the append-only decision log.
"""

from decimal import Decimal
from pathlib import Path

from adaptive_backtest.data.providers import InMemoryProvider
from adaptive_backtest.logging import DecisionLogger, log_action
from adaptive_backtest.models import ActionType
from adaptive_backtest.simulation import run_adaptive_backtest


class TestDecisionLogger:
    """Tests for DecisionLogger."""

    def test_run_lifecycle(
        self, tmp_path: Path, monthly_points, single_asset_params, test_settings
    ):
        logger = DecisionLogger(tmp_path / "logs" / "decision_log.jsonl")
        provider = InMemoryProvider({"AAA": monthly_points(["10", "10", "10"])})
        result = run_adaptive_backtest(single_asset_params, provider, test_settings)

        logger.log_params_loaded("run-1", single_asset_params, "backtest.yaml")
        logger.log_data_validated("run-1", result.data_validation)
        logger.log_backtest_completed("run-1", result)
        logger.log_results_saved("run-1", {"report": tmp_path / "run_report.md"})

        entries = logger.read_log()
        assert [e.action_type for e in entries] == [
            ActionType.PARAMS_LOADED,
            ActionType.DATA_VALIDATED,
            ActionType.BACKTEST_COMPLETED,
            ActionType.RESULTS_SAVED,
        ]
        assert entries[0].details["allocations"] == {"AAA": "1"}
        assert entries[1].details["is_valid"] is True
        assert entries[2].details["final_value"] == str(result.final_value)

    def test_entries_are_appended(self, tmp_path: Path):
        path = tmp_path / "decision_log.jsonl"
        log_action(ActionType.RESULTS_SAVED, "run-1", {"amount": Decimal("1.5")}, path)
        log_action(ActionType.RESULTS_SAVED, "run-2", {}, path)

        logger = DecisionLogger(path)
        assert len(logger.read_log()) == 2
        assert logger.filter_by_run("run-1")[0].details == {"amount": "1.5"}
        assert len(logger.filter_by_action_type(ActionType.PARAMS_LOADED)) == 0

    def test_missing_log_reads_empty(self, tmp_path: Path):
        assert DecisionLogger(tmp_path / "none.jsonl").read_log() == []
