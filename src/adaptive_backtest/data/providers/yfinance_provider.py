"""
Yahoo Finance data provider implementation.

Uses the yfinance library to fetch monthly price history and dividend events.
"""

import logging
import time
from datetime import date, timedelta
from decimal import Decimal

import pandas as pd

from adaptive_backtest.models import DividendEvent, PricePoint
from adaptive_backtest.data.providers.base import DataProviderError, MarketDataProvider

logger = logging.getLogger(__name__)


class YFinanceProvider(MarketDataProvider):
    """
    Data provider using Yahoo Finance.

    Features:
    - Fetches monthly bars with both close and adjusted close
    - Fetches ex-dividend events
    - Retries failed requests with a linear backoff
    """

    def __init__(self, max_retries: int = 3, retry_delay: float = 2.0):
        """
        Initialize Yahoo Finance provider.

        Args:
            max_retries: Maximum retries for failed requests
            retry_delay: Delay between retries (seconds)
        """
        self._max_retries = max_retries
        self._retry_delay = retry_delay

        # Import yfinance here to allow graceful failure if not installed
        try:
            import yfinance as yf
            self._yf = yf
        except ImportError:
            raise DataProviderError(
                "yfinance is required for YFinanceProvider. "
                "Install with: pip install adaptive-backtest[yfinance]"
            )

    @property
    def name(self) -> str:
        return "YahooFinance"

    def get_monthly_prices(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> list[PricePoint]:
        """
        Fetch monthly closes for a ticker.

        Args:
            ticker: Ticker symbol
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Returns:
            Date-sorted list of PricePoint
        """
        ticker = ticker.upper().strip()
        df = self._with_retries(
            lambda: self._yf.Ticker(ticker).history(
                start=start_date.isoformat(),
                # yfinance expects end_date to be exclusive, so add 1 day
                end=(end_date + timedelta(days=1)).isoformat(),
                interval="1mo",
                auto_adjust=False,
                actions=False,
            ),
            f"prices for {ticker}",
        )

        if df is None or df.empty or "Close" not in df.columns:
            logger.debug("%s: no monthly history returned", ticker)
            return []

        adjusted = df["Adj Close"] if "Adj Close" in df.columns else df["Close"]
        points = []
        for idx, close in df["Close"].items():
            adj = adjusted.loc[idx]
            if pd.isna(close) or pd.isna(adj):
                continue
            point_date = idx.date() if hasattr(idx, "date") else idx
            if not start_date <= point_date <= end_date:
                continue
            points.append(
                PricePoint(
                    date=point_date,
                    price=Decimal(str(round(float(close), 6))),
                    adjusted_close=Decimal(str(round(float(adj), 6))),
                )
            )

        return sorted(points, key=lambda p: p.date)

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
        """
        ticker = ticker.upper().strip()
        series = self._with_retries(
            lambda: self._yf.Ticker(ticker).dividends,
            f"dividends for {ticker}",
        )

        if series is None or len(series) == 0:
            return []

        events = []
        for idx, amount in series.items():
            if pd.isna(amount) or amount <= 0:
                continue
            ex_date = idx.date() if hasattr(idx, "date") else idx
            if not start_date <= ex_date <= end_date:
                continue
            events.append(
                DividendEvent(
                    ex_date=ex_date,
                    amount_per_share=Decimal(str(round(float(amount), 6))),
                )
            )

        return sorted(events, key=lambda e: e.ex_date)

    def _with_retries(self, fetch, description: str):
        for attempt in range(self._max_retries):
            try:
                return fetch()
            except Exception as e:
                if attempt < self._max_retries - 1:
                    logger.warning(
                        "Fetching %s failed (attempt %d): %s",
                        description, attempt + 1, e,
                    )
                    time.sleep(self._retry_delay * (attempt + 1))
                else:
                    raise DataProviderError(
                        f"Failed to fetch {description} after {self._max_retries} attempts: {e}"
                    )
        return None
