"""
Backtest persistence repository.

A repository stores a backtest configuration, its latest result and its
transaction journal. Saving a result or a journal replaces whatever was
stored for that configuration before.
"""

import hashlib
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence

from adaptive_backtest.config import (
    ConfigurationError,
    backtest_params_to_dict,
    load_backtest_params,
    write_backtest_params,
)
from adaptive_backtest.data.loaders import DataLoadError, load_transactions, save_transactions
from adaptive_backtest.models import (
    AdaptiveBacktestResult,
    BacktestParams,
    MonthlyAssetTransaction,
)


CONFIG_FILE = "config.yaml"
RESULT_FILE = "result.json"
TRANSACTIONS_FILE = "transactions.csv"


class RepositoryError(Exception):
    """Raised when stored backtest data cannot be read or written."""
    pass


def config_id_for(params: BacktestParams) -> str:
    """
    Deterministic identifier for a set of parameters.

    Args:
        params: Backtest parameters

    Returns:
        Short content hash of the canonical parameter layout
    """
    canonical = json.dumps(backtest_params_to_dict(params), sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


class BacktestRepository(ABC):
    """Storage interface for backtest configurations and outputs."""

    @abstractmethod
    def save_config(self, params: BacktestParams) -> str:
        """
        Store a configuration.

        Args:
            params: Backtest parameters

        Returns:
            Configuration identifier
        """
        pass

    @abstractmethod
    def save_result(self, config_id: str, result: AdaptiveBacktestResult) -> None:
        """Store the result for a configuration, replacing any previous one."""
        pass

    @abstractmethod
    def save_transactions(
        self,
        config_id: str,
        transactions: Sequence[MonthlyAssetTransaction],
    ) -> None:
        """Store the journal for a configuration, replacing any previous set."""
        pass

    @abstractmethod
    def load_config(self, config_id: str) -> BacktestParams:
        """Load a stored configuration."""
        pass

    @abstractmethod
    def load_result(self, config_id: str) -> dict[str, Any]:
        """Load a stored result as a plain dictionary."""
        pass

    @abstractmethod
    def load_transactions(self, config_id: str) -> list[MonthlyAssetTransaction]:
        """Load a stored journal."""
        pass


class FileRepository(BacktestRepository):
    """
    Repository storing each configuration in its own directory.

    Layout::

        <root>/<config_id>/config.yaml
        <root>/<config_id>/result.json
        <root>/<config_id>/transactions.csv
    """

    def __init__(self, root: str | Path):
        """
        Initialize the repository.

        Args:
            root: Directory holding stored configurations (created if missing)
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _config_dir(self, config_id: str, must_exist: bool = True) -> Path:
        path = self.root / config_id
        if must_exist and not (path / CONFIG_FILE).exists():
            raise RepositoryError(f"Unknown configuration: {config_id}")
        return path

    def save_config(self, params: BacktestParams) -> str:
        config_id = config_id_for(params)
        path = self._config_dir(config_id, must_exist=False)
        path.mkdir(parents=True, exist_ok=True)
        write_backtest_params(params, path / CONFIG_FILE)
        return config_id

    def save_result(self, config_id: str, result: AdaptiveBacktestResult) -> None:
        path = self._config_dir(config_id)
        result.to_json(path / RESULT_FILE)

    def save_transactions(
        self,
        config_id: str,
        transactions: Sequence[MonthlyAssetTransaction],
    ) -> None:
        path = self._config_dir(config_id)
        target = path / TRANSACTIONS_FILE
        if target.exists():
            target.unlink()
        save_transactions(transactions, target)

    def load_config(self, config_id: str) -> BacktestParams:
        path = self._config_dir(config_id)
        try:
            return load_backtest_params(path / CONFIG_FILE)
        except ConfigurationError as e:
            raise RepositoryError(f"Stored configuration {config_id} is invalid: {e}")

    def load_result(self, config_id: str) -> dict[str, Any]:
        path = self._config_dir(config_id) / RESULT_FILE
        if not path.exists():
            raise RepositoryError(f"No result stored for configuration {config_id}")
        with open(path, "r") as f:
            return json.load(f)

    def load_transactions(self, config_id: str) -> list[MonthlyAssetTransaction]:
        path = self._config_dir(config_id) / TRANSACTIONS_FILE
        if not path.exists():
            return []
        try:
            return load_transactions(path)
        except DataLoadError as e:
            raise RepositoryError(str(e))

    def list_configs(self) -> list[str]:
        """Identifiers of all stored configurations."""
        return sorted(
            p.name for p in self.root.iterdir()
            if p.is_dir() and (p / CONFIG_FILE).exists()
        )
