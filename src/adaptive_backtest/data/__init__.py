"""
Data ingestion module for the Adaptive Backtest Engine.

Provides loading of monthly prices and dividend events from CSV/Parquet
files, monthly series normalization and data availability validation.
"""

from adaptive_backtest.data.loaders import (
    DataLoadError,
    load_dividend_events,
    load_price_history,
    load_transactions,
    save_portfolio_evolution,
    save_transactions,
)
from adaptive_backtest.data.schemas import (
    DIVIDENDS_SCHEMA,
    PRICES_SCHEMA,
    TRANSACTIONS_SCHEMA,
)

__all__ = [
    "DataLoadError",
    "load_dividend_events",
    "load_price_history",
    "load_transactions",
    "save_portfolio_evolution",
    "save_transactions",
    "DIVIDENDS_SCHEMA",
    "PRICES_SCHEMA",
    "TRANSACTIONS_SCHEMA",
]
