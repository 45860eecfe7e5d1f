"""
Data providers for historical market data.

Provides a pluggable interface for fetching monthly prices and dividend
events from local files, memory or Yahoo Finance.
"""

from adaptive_backtest.data.providers.base import DataProviderError, MarketDataProvider
from adaptive_backtest.data.providers.csv_provider import CSVProvider
from adaptive_backtest.data.providers.memory import InMemoryProvider

__all__ = [
    "MarketDataProvider",
    "DataProviderError",
    "CSVProvider",
    "InMemoryProvider",
]
