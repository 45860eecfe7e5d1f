"""
Abstract base class for market data providers.

Defines the interface that all data providers must implement,
enabling pluggable historical data sources for backtesting.
"""

from abc import ABC, abstractmethod
from datetime import date

from adaptive_backtest.models import DividendEvent, PricePoint


class DataProviderError(Exception):
    """Raised when a data provider encounters an error."""
    pass


class MarketDataProvider(ABC):
    """
    Abstract base class for historical market data providers.

    Implementations must provide methods to fetch:
    - Monthly price history for a ticker
    - Ex-dividend events for a ticker
    """

    @abstractmethod
    def get_monthly_prices(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> list[PricePoint]:
        """
        Fetch monthly price observations for a ticker.

        Args:
            ticker: Ticker symbol
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Date-sorted list of PricePoint (empty when no data exists)

        Raises:
            DataProviderError: If data cannot be fetched
        """
        pass

    @abstractmethod
    def get_dividends(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> list[DividendEvent]:
        """
        Fetch ex-dividend events for a ticker.

        Args:
            ticker: Ticker symbol
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Date-sorted list of DividendEvent

        Raises:
            DataProviderError: If data cannot be fetched
        """
        pass

    def get_price_history(
        self,
        tickers: list[str],
        start_date: date,
        end_date: date,
    ) -> dict[str, list[PricePoint]]:
        """
        Fetch monthly prices for several tickers.

        Args:
            tickers: Ticker symbols
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Dictionary mapping ticker -> price points
        """
        return {
            ticker: self.get_monthly_prices(ticker, start_date, end_date)
            for ticker in tickers
        }

    def get_dividend_history(
        self,
        tickers: list[str],
        start_date: date,
        end_date: date,
    ) -> dict[str, list[DividendEvent]]:
        """
        Fetch dividend events for several tickers.

        Args:
            tickers: Ticker symbols
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Dictionary mapping ticker -> dividend events
        """
        return {
            ticker: self.get_dividends(ticker, start_date, end_date)
            for ticker in tickers
        }

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this data provider."""
        pass
