"""
Monthly price series normalization.

Raw provider data rarely lines up with the first day of each month: trading
days shift, some months are missing entirely and new listings start partway
through a backtest. This module maps raw observations onto the expected
monthly grid, filling gaps from neighbouring points and recording which
points are genuine so the simulation can tell real data from filler.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from adaptive_backtest.models import PricePoint

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_DAYS = 7


def month_start(value: date) -> date:
    """First day of the month containing value."""
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """Shift a first-of-month date by a number of months."""
    total = value.year * 12 + (value.month - 1) + months
    return date(total // 12, total % 12 + 1, 1)


def months_between(start: date, end: date) -> int:
    """Inclusive count of calendar months from start to end."""
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def generate_monthly_dates(start: date, end: date) -> list[date]:
    """
    Generate the expected month dates for a backtest period.

    Args:
        start: Period start (any day of the first month)
        end: Period end (inclusive)

    Returns:
        First day of each month from the month of start through end
    """
    dates = []
    current = month_start(start)
    while current <= end:
        dates.append(current)
        current = add_months(current, 1)
    return dates


def price_window(
    start: date,
    end: date,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> tuple[date, date]:
    """
    Date range of raw prices that can match a month date of the period.

    The first month date is the first of the start month, so observations a
    few days before a mid-month start still count.

    Args:
        start: Period start (any day of the first month)
        end: Period end (inclusive)
        tolerance_days: Matching window in days

    Returns:
        Tuple of (fetch_start, fetch_end)
    """
    tolerance = timedelta(days=tolerance_days)
    return month_start(start) - tolerance, end + tolerance


@dataclass(frozen=True)
class NormalizedSeries:
    """
    A price series aligned to month dates.

    Genuine points keep their raw observation date, which may fall a few
    days either side of the month date, so lookups go through month_dates.

    Attributes:
        ticker: Asset ticker
        month_dates: Expected month date of each point
        points: One point per covered month date, in date order
        exact_matches: Number of genuine raw matches
        forward_fills: Number of forward- or back-filled points
    """
    ticker: str
    month_dates: tuple[date, ...] = ()
    points: tuple[PricePoint, ...] = ()
    exact_matches: int = 0
    forward_fills: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.points

    @property
    def fill_ratio(self) -> float:
        if not self.points:
            return 0.0
        return self.forward_fills / len(self.points)

    @property
    def is_degenerate(self) -> bool:
        """True when filled points outnumber genuine ones."""
        return self.forward_fills > self.exact_matches

    @property
    def first_available(self) -> Optional[date]:
        for month_date, point in zip(self.month_dates, self.points):
            if not point.filled:
                return month_date
        return None

    def point_for(self, month_date: date) -> Optional[PricePoint]:
        """
        Point for a month, forward filled from the last earlier month.

        Args:
            month_date: Any date within the month of interest

        Returns:
            The point for that month, the most recent earlier point, or None
        """
        target = month_start(month_date)
        found = None
        for expected, point in zip(self.month_dates, self.points):
            if expected > target:
                break
            found = point
        return found

    def price_on(self, month_date: date) -> Optional[Decimal]:
        """Adjusted close used to value positions in a month."""
        point = self.point_for(month_date)
        if point is None:
            return None
        return point.adjusted_close

    def is_available(self, month_date: date) -> bool:
        """True only when the month has a genuine observation."""
        target = month_start(month_date)
        for expected, point in zip(self.month_dates, self.points):
            if expected == target:
                return not point.filled
        return False


def _is_valid_point(point: PricePoint) -> bool:
    return (
        point.price is not None
        and point.adjusted_close is not None
        and point.price > 0
        and point.adjusted_close > 0
    )


def normalize_price_series(
    raw: Iterable[PricePoint],
    start: date,
    end: date,
    ticker: str = "",
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> NormalizedSeries:
    """
    Align raw price observations to the monthly grid.

    For each expected month date the nearest raw point within the tolerance
    window is taken as a genuine match. Months without a match are forward
    filled from the previous normalized point, or back filled from the next
    raw point when nothing earlier exists. Filled points carry the expected
    month date and ``filled=True``.

    Args:
        raw: Raw price points in any order
        start: Period start
        end: Period end (inclusive)
        ticker: Ticker used in diagnostics
        tolerance_days: Genuine matches lie strictly less than this many days away

    Returns:
        NormalizedSeries (empty when no valid raw points exist)
    """
    valid = sorted(
        (p for p in raw if _is_valid_point(p)),
        key=lambda p: p.date,
    )
    if not valid:
        logger.debug("%s: no valid price points to normalize", ticker)
        return NormalizedSeries(ticker=ticker, points=())

    tolerance = timedelta(days=tolerance_days)
    month_dates: list[date] = []
    points: list[PricePoint] = []
    exact_matches = 0
    forward_fills = 0

    for expected in generate_monthly_dates(start, end):
        match = _nearest_within(valid, expected, tolerance)
        if match is not None:
            points.append(
                PricePoint(
                    date=match.date,
                    price=match.price,
                    adjusted_close=match.adjusted_close,
                )
            )
            month_dates.append(expected)
            exact_matches += 1
            continue

        source = points[-1] if points else _next_after(valid, expected)
        if source is None:
            continue

        logger.debug("%s: filling %s from %s", ticker, expected, source.date)
        points.append(
            PricePoint(
                date=expected,
                price=source.price,
                adjusted_close=source.adjusted_close,
                filled=True,
            )
        )
        month_dates.append(expected)
        forward_fills += 1

    series = NormalizedSeries(
        ticker=ticker,
        month_dates=tuple(month_dates),
        points=tuple(points),
        exact_matches=exact_matches,
        forward_fills=forward_fills,
    )

    logger.debug(
        "%s: %d exact matches, %d fills, %d total",
        ticker, exact_matches, forward_fills, len(points),
    )
    if series.is_degenerate:
        logger.warning(
            "%s: fills (%d) outnumber genuine matches (%d); returns will be flattened",
            ticker, forward_fills, exact_matches,
        )

    return series


def genuine_months(
    raw: Iterable[PricePoint],
    start: date,
    end: date,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> list[date]:
    """Month dates of the period that have a raw observation within the window."""
    valid = sorted((p for p in raw if _is_valid_point(p)), key=lambda p: p.date)
    tolerance = timedelta(days=tolerance_days)
    return [
        expected
        for expected in generate_monthly_dates(start, end)
        if _nearest_within(valid, expected, tolerance) is not None
    ]


def _nearest_within(
    points: list[PricePoint],
    target: date,
    tolerance: timedelta,
) -> Optional[PricePoint]:
    best = None
    best_distance = None
    for point in points:
        distance = abs(point.date - target)
        if distance >= tolerance:
            continue
        if best_distance is None or distance < best_distance:
            best = point
            best_distance = distance
    return best


def _next_after(points: list[PricePoint], target: date) -> Optional[PricePoint]:
    for point in points:
        if point.date > target:
            return point
    return None
