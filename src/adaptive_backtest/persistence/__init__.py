"""
Persistence of backtest configurations, results and transaction journals.
"""

from adaptive_backtest.persistence.repository import (
    BacktestRepository,
    FileRepository,
    RepositoryError,
    config_id_for,
)

__all__ = [
    "BacktestRepository",
    "FileRepository",
    "RepositoryError",
    "config_id_for",
]
