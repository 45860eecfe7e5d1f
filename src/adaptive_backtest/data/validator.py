"""
Historical data availability checks for backtests.

Before a run, each configured asset's price history is inspected for the
requested period. The validator grades data completeness, narrows the period
to the range every asset with data covers, and produces warnings and
recommendations for the caller.
"""

import logging
from datetime import date
from typing import Iterable, Mapping, Sequence

from adaptive_backtest.data.normalizer import (
    DEFAULT_TOLERANCE_DAYS,
    generate_monthly_dates,
    genuine_months,
    month_start,
    months_between,
    price_window,
)
from adaptive_backtest.models import (
    BacktestDataValidation,
    DataAvailability,
    DataQuality,
    PricePoint,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_MONTHS = 12
SHORT_PERIOD_MONTHS = 24
ROBUST_PERIOD_MONTHS = 36
MANY_ASSETS = 10

_QUALITY_SCORES = {
    DataQuality.EXCELLENT: 4,
    DataQuality.GOOD: 3,
    DataQuality.FAIR: 2,
    DataQuality.POOR: 1,
}


class InsufficientDataError(Exception):
    """Raised when the available data cannot support a backtest."""

    def __init__(self, message: str, validation: BacktestDataValidation | None = None):
        super().__init__(message)
        self.validation = validation


def _month_count(start: date, end: date) -> int:
    if start > end:
        return 0
    return months_between(start, end)


class BacktestDataValidator:
    """Checks price history coverage for a set of assets and a period."""

    def __init__(
        self,
        min_months: int = DEFAULT_MIN_MONTHS,
        tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
    ):
        """
        Initialize the validator.

        Args:
            min_months: Minimum common period for a valid backtest
            tolerance_days: Window for matching raw prices to month dates
        """
        self.min_months = min_months
        self.tolerance_days = tolerance_days

    def validate(
        self,
        tickers: Iterable[str],
        start: date,
        end: date,
        price_history: Mapping[str, Sequence[PricePoint]],
    ) -> BacktestDataValidation:
        """
        Validate data availability for a backtest.

        Args:
            tickers: Configured tickers
            start: Requested start date
            end: Requested end date
            price_history: Raw price points by ticker

        Returns:
            BacktestDataValidation with the adjusted period
        """
        tickers = list(tickers)
        availability = [
            self.check_asset(ticker, start, end, price_history.get(ticker, ()))
            for ticker in tickers
        ]

        adjusted_start, adjusted_end, months_available = self._common_period(
            availability, start, end
        )

        global_warnings: list[str] = []
        recommendations: list[str] = []
        self._warnings_and_recommendations(
            availability, months_available, global_warnings, recommendations
        )

        is_valid = months_available >= self.min_months

        logger.info(
            "Validated %d assets: period %s - %s, %d months, valid=%s",
            len(tickers), adjusted_start, adjusted_end, months_available, is_valid,
        )
        for warning in global_warnings:
            logger.warning(warning)

        return BacktestDataValidation(
            is_valid=is_valid,
            adjusted_start_date=adjusted_start,
            adjusted_end_date=adjusted_end,
            months_available=months_available,
            assets_availability=availability,
            global_warnings=global_warnings,
            recommendations=recommendations,
        )

    def check_asset(
        self,
        ticker: str,
        start: date,
        end: date,
        prices: Sequence[PricePoint],
    ) -> DataAvailability:
        """
        Check availability and quality of one ticker's data.

        A month counts as available when a raw point lies within the
        tolerance window of its month date, the same rule the normalizer
        uses, so points a few days before a mid-month start still count.

        Args:
            ticker: Asset ticker
            start: Requested start date
            end: Requested end date
            prices: Raw price points for the ticker

        Returns:
            DataAvailability for the ticker
        """
        window_start, window_end = price_window(start, end, self.tolerance_days)
        in_window = [p for p in prices if window_start <= p.date <= window_end]
        invalid = [p for p in in_window if p.price <= 0 or p.adjusted_close <= 0]
        months = genuine_months(in_window, start, end, self.tolerance_days)

        if not months:
            return DataAvailability(
                ticker=ticker,
                available_from=None,
                available_to=None,
                total_months=0,
                missing_months=0,
                data_quality=DataQuality.POOR,
                warnings=[f"No historical data found for {ticker}"],
            )

        available_from = months[0]
        available_to = months[-1]
        expected_months = len(generate_monthly_dates(start, end))
        actual_months = len(months)
        missing_months = max(0, expected_months - actual_months)
        completeness = actual_months / expected_months if expected_months else 0.0

        warnings = []
        if missing_months > 0:
            warnings.append(f"{missing_months} months with missing data")
        if available_from > month_start(start):
            warnings.append(f"Data available only from {available_from.isoformat()}")
        if available_to < month_start(end):
            warnings.append(f"Data available only until {available_to.isoformat()}")
        if invalid:
            warnings.append(f"{len(invalid)} records with invalid prices")

        return DataAvailability(
            ticker=ticker,
            available_from=available_from,
            available_to=available_to,
            total_months=actual_months,
            missing_months=missing_months,
            data_quality=DataQuality.from_completeness(completeness),
            warnings=warnings,
        )

    def _common_period(
        self,
        availability: list[DataAvailability],
        start: date,
        end: date,
    ) -> tuple[date, date, int]:
        """Latest start and earliest end month among assets with data."""
        with_data = [a for a in availability if a.total_months > 0]
        if not with_data:
            return month_start(start), month_start(end), 0

        latest_start = max([month_start(start)] + [a.available_from for a in with_data])
        earliest_end = min([month_start(end)] + [a.available_to for a in with_data])
        return latest_start, earliest_end, _month_count(latest_start, earliest_end)

    def _warnings_and_recommendations(
        self,
        availability: list[DataAvailability],
        months_available: int,
        global_warnings: list[str],
        recommendations: list[str],
    ) -> None:
        with_data = [a for a in availability if a.total_months > 0]
        without_data = [a for a in availability if a.total_months == 0]
        poor = [a for a in availability if a.data_quality is DataQuality.POOR]
        fair = [a for a in availability if a.data_quality is DataQuality.FAIR]

        if without_data:
            global_warnings.append(
                f"{len(without_data)} asset(s) without historical data: "
                f"{', '.join(a.ticker for a in without_data)}"
            )
        if poor:
            global_warnings.append(
                f"{len(poor)} asset(s) with poor data quality: "
                f"{', '.join(a.ticker for a in poor)}"
            )
        if fair:
            global_warnings.append(
                f"{len(fair)} asset(s) with fair data quality: "
                f"{', '.join(a.ticker for a in fair)}"
            )
        if months_available < self.min_months:
            global_warnings.append(
                f"Available period ({months_available} months) is shorter than "
                f"the recommended minimum ({self.min_months} months)"
            )
        if months_available < SHORT_PERIOD_MONTHS:
            global_warnings.append("Short period may produce less reliable metrics")

        if without_data:
            recommendations.append(
                "Consider removing assets without historical data or choosing alternatives"
            )
        if poor:
            recommendations.append(
                "Assets with poor data quality may affect the accuracy of the results"
            )
        if self.min_months <= months_available < ROBUST_PERIOD_MONTHS:
            recommendations.append(
                "For more robust results, consider a period of at least 3 years"
            )
        if len(availability) > MANY_ASSETS:
            recommendations.append(
                "Portfolios with many assets have more complex rebalancing"
            )

        if with_data:
            average_score = sum(_QUALITY_SCORES[a.data_quality] for a in with_data) / len(with_data)
        else:
            average_score = 0.0
        if average_score >= 3.5:
            recommendations.append("Overall data quality is excellent for backtesting")
        elif average_score >= 2.5:
            recommendations.append("Overall data quality is adequate for backtesting")
        else:
            recommendations.append("Consider revising the asset selection for better data quality")


def validate_tickers(
    tickers: Iterable[str],
    price_history: Mapping[str, Sequence[PricePoint]],
) -> tuple[list[str], list[str]]:
    """
    Split tickers into those with any price data and those without.

    Args:
        tickers: Tickers to check
        price_history: Raw price points by ticker

    Returns:
        Tuple of (valid_tickers, invalid_tickers)
    """
    valid = []
    invalid = []
    for ticker in tickers:
        if price_history.get(ticker):
            valid.append(ticker)
        else:
            invalid.append(ticker)
    return valid, invalid
