"""
In-memory data provider.

Serves price and dividend series held in dictionaries. Used by tests and
by callers that already have their data loaded.
"""

from datetime import date
from typing import Mapping, Optional, Sequence

from adaptive_backtest.models import DividendEvent, PricePoint
from adaptive_backtest.data.providers.base import MarketDataProvider


class InMemoryProvider(MarketDataProvider):
    """Data provider backed by in-memory series."""

    def __init__(
        self,
        prices: Mapping[str, Sequence[PricePoint]],
        dividends: Optional[Mapping[str, Sequence[DividendEvent]]] = None,
    ):
        """
        Initialize with series keyed by ticker.

        Args:
            prices: Price points by ticker
            dividends: Optional dividend events by ticker
        """
        self._prices = {t.upper(): sorted(p, key=lambda x: x.date) for t, p in prices.items()}
        self._dividends = {
            t.upper(): sorted(d, key=lambda x: x.ex_date)
            for t, d in (dividends or {}).items()
        }
        self.price_requests: list[str] = []

    @property
    def name(self) -> str:
        return "InMemory"

    def get_monthly_prices(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> list[PricePoint]:
        self.price_requests.append(ticker.upper())
        return [
            p for p in self._prices.get(ticker.upper(), [])
            if start_date <= p.date <= end_date
        ]

    def get_dividends(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> list[DividendEvent]:
        return [
            d for d in self._dividends.get(ticker.upper(), [])
            if start_date <= d.ex_date <= end_date
        ]
