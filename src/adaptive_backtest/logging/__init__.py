"""
Decision logging module for the Adaptive Backtest Engine.

Provides append-only decision logging for audit and reproducibility.
"""

from adaptive_backtest.logging.decision_log import (
    DecisionLogger,
    log_action,
    get_logger,
)

__all__ = [
    "DecisionLogger",
    "log_action",
    "get_logger",
]
