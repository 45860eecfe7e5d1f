"""
CSV file data provider.

Reads monthly prices (and optionally dividend events) from CSV or Parquet
files in the layouts defined in ``adaptive_backtest.data.schemas``.
"""

from datetime import date
from pathlib import Path
from typing import Optional

from adaptive_backtest.models import DividendEvent, PricePoint
from adaptive_backtest.data.loaders import (
    DataLoadError,
    load_dividend_events,
    load_price_history,
)
from adaptive_backtest.data.providers.base import DataProviderError, MarketDataProvider


class CSVProvider(MarketDataProvider):
    """
    Data provider reading local price and dividend files.

    Files are loaded once on first use and served from memory afterwards.
    """

    def __init__(
        self,
        prices_path: str | Path,
        dividends_path: Optional[str | Path] = None,
    ):
        """
        Initialize the provider.

        Args:
            prices_path: Path to the prices file (ticker, date, close, adjusted_close)
            dividends_path: Optional path to the dividends file
        """
        self.prices_path = Path(prices_path)
        self.dividends_path = Path(dividends_path) if dividends_path else None
        self._prices: Optional[dict[str, list[PricePoint]]] = None
        self._dividends: Optional[dict[str, list[DividendEvent]]] = None

    @property
    def name(self) -> str:
        return "CSV"

    def _load_prices(self) -> dict[str, list[PricePoint]]:
        if self._prices is None:
            try:
                self._prices = load_price_history(self.prices_path)
            except DataLoadError as e:
                raise DataProviderError(str(e))
        return self._prices

    def _load_dividends(self) -> dict[str, list[DividendEvent]]:
        if self._dividends is None:
            if self.dividends_path is None:
                self._dividends = {}
            else:
                try:
                    self._dividends = load_dividend_events(self.dividends_path)
                except DataLoadError as e:
                    raise DataProviderError(str(e))
        return self._dividends

    def get_monthly_prices(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> list[PricePoint]:
        return [
            p for p in self._load_prices().get(ticker.upper(), [])
            if start_date <= p.date <= end_date
        ]

    def get_dividends(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> list[DividendEvent]:
        return [
            d for d in self._load_dividends().get(ticker.upper(), [])
            if start_date <= d.ex_date <= end_date
        ]

    def available_tickers(self) -> list[str]:
        """Tickers present in the prices file."""
        return sorted(self._load_prices())
