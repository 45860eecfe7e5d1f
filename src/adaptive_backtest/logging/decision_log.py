"""
Append-only decision logging for the Adaptive Backtest Engine.

Every backtest run records what it was asked to do, what the data allowed
and what it produced, so results can be audited and reproduced.
"""

import json
from datetime import datetime, date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from adaptive_backtest.models import (
    ActionType,
    AdaptiveBacktestResult,
    BacktestDataValidation,
    BacktestParams,
    DecisionLogEntry,
)


class DecisionLogger:
    """
    Append-only decision logger.

    Writes all decisions to a JSONL file for audit purposes.
    Each line is a complete JSON object representing one action.
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the decision logger.

        Args:
            log_path: Path to the log file (will be created if not exists)
        """
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: DecisionLogEntry) -> None:
        """
        Write a decision log entry.

        Args:
            entry: DecisionLogEntry to write
        """
        record = {
            "timestamp": entry.timestamp.isoformat(),
            "action_type": entry.action_type.value,
            "run_id": entry.run_id,
            "details": entry.details,
        }

        with open(self.log_path, "a") as f:
            f.write(json.dumps(record, cls=DecimalEncoder) + "\n")

    def log_params_loaded(
        self,
        run_id: str,
        params: BacktestParams,
        config_path: str,
    ) -> None:
        """
        Log configuration loading.

        Args:
            run_id: Run identifier
            params: Loaded parameters
            config_path: Path to configuration file
        """
        details = {
            "config_path": config_path,
            "start_date": params.start_date.isoformat(),
            "end_date": params.end_date.isoformat(),
            "initial_capital": str(params.initial_capital),
            "monthly_contribution": str(params.monthly_contribution),
            "rebalance_frequency": params.rebalance_frequency.value,
            "allocations": {
                a.ticker: str(a.target_allocation) for a in params.assets
            },
        }

        self.log(DecisionLogEntry.create(ActionType.PARAMS_LOADED, run_id, details))

    def log_data_validated(
        self,
        run_id: str,
        validation: BacktestDataValidation,
    ) -> None:
        """
        Log the data availability check.

        Args:
            run_id: Run identifier
            validation: Validation outcome
        """
        details = {
            "is_valid": validation.is_valid,
            "adjusted_start_date": validation.adjusted_start_date.isoformat(),
            "adjusted_end_date": validation.adjusted_end_date.isoformat(),
            "months_available": validation.months_available,
            "quality": {
                a.ticker: a.data_quality.value for a in validation.assets_availability
            },
            "warnings": validation.global_warnings,
        }

        self.log(DecisionLogEntry.create(ActionType.DATA_VALIDATED, run_id, details))

    def log_backtest_completed(
        self,
        run_id: str,
        result: AdaptiveBacktestResult,
    ) -> None:
        """
        Log a completed backtest.

        Args:
            run_id: Run identifier
            result: Backtest result
        """
        details = {
            "effective_start_date": result.effective_start_date.isoformat(),
            "effective_end_date": result.effective_end_date.isoformat(),
            "months": len(result.portfolio_evolution),
            "total_invested": str(result.total_invested),
            "final_value": str(result.final_value),
            "total_return": result.total_return,
            "sharpe_ratio": result.sharpe_ratio,
            "max_drawdown": result.max_drawdown,
            "missed_contributions": result.missed_contributions,
            "num_transactions": len(result.transactions),
            "data_quality_issues": result.data_quality_issues[:10],  # First 10
        }

        self.log(DecisionLogEntry.create(ActionType.BACKTEST_COMPLETED, run_id, details))

    def log_results_saved(
        self,
        run_id: str,
        paths: dict[str, Path],
    ) -> None:
        """
        Log output files written for a run.

        Args:
            run_id: Run identifier
            paths: Output type -> file path
        """
        details = {name: str(path) for name, path in paths.items()}
        self.log(DecisionLogEntry.create(ActionType.RESULTS_SAVED, run_id, details))

    def read_log(self) -> list[DecisionLogEntry]:
        """
        Read all entries from the log file.

        Returns:
            List of DecisionLogEntry objects
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                entries.append(
                    DecisionLogEntry(
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        action_type=ActionType(record["action_type"]),
                        run_id=record.get("run_id"),
                        details=record.get("details", {}),
                    )
                )

        return entries

    def filter_by_run(self, run_id: str) -> list[DecisionLogEntry]:
        """
        Get log entries for a specific run.

        Args:
            run_id: Run to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.run_id == run_id]

    def filter_by_action_type(
        self,
        action_type: ActionType,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries of a specific action type.

        Args:
            action_type: Action type to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.action_type == action_type]


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


# Global logger instance (initialized on first use)
_global_logger: Optional[DecisionLogger] = None


def get_logger(log_path: Optional[str | Path] = None) -> DecisionLogger:
    """
    Get or create the global decision logger.

    Args:
        log_path: Optional path to initialize logger (required on first call)

    Returns:
        DecisionLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if log_path is None:
            log_path = "output/decision_log.jsonl"
        _global_logger = DecisionLogger(log_path)
    elif log_path is not None:
        _global_logger = DecisionLogger(log_path)

    return _global_logger


def log_action(
    action_type: ActionType,
    run_id: Optional[str],
    details: dict,
    log_path: Optional[str | Path] = None,
) -> None:
    """
    Convenience function to log an action.

    Args:
        action_type: Type of action
        run_id: Run identifier (optional)
        details: Action details dictionary
        log_path: Optional path to log file
    """
    logger = get_logger(log_path)
    entry = DecisionLogEntry.create(
        action_type=action_type,
        run_id=run_id,
        details=details,
    )
    logger.log(entry)
