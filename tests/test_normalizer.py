"""
Tests for monthly price series normalization.
"""

from datetime import date
from decimal import Decimal

from adaptive_backtest.data.normalizer import (
    add_months,
    generate_monthly_dates,
    genuine_months,
    month_start,
    months_between,
    normalize_price_series,
    price_window,
)
from adaptive_backtest.models import PricePoint


def _point(d: date, price: str) -> PricePoint:
    return PricePoint(date=d, price=Decimal(price), adjusted_close=Decimal(price))


class TestDateHelpers:
    """Tests for month arithmetic helpers."""

    def test_month_start(self):
        assert month_start(date(2020, 2, 29)) == date(2020, 2, 1)

    def test_add_months_crosses_year(self):
        assert add_months(date(2020, 11, 1), 3) == date(2021, 2, 1)
        assert add_months(date(2020, 1, 1), -1) == date(2019, 12, 1)

    def test_months_between_is_inclusive(self):
        assert months_between(date(2020, 1, 1), date(2020, 12, 1)) == 12
        assert months_between(date(2020, 1, 1), date(2020, 1, 31)) == 1

    def test_generate_monthly_dates(self):
        dates = generate_monthly_dates(date(2020, 1, 15), date(2020, 3, 1))
        assert dates == [date(2020, 1, 1), date(2020, 2, 1), date(2020, 3, 1)]


class TestNormalizePriceSeries:
    """Tests for normalize_price_series."""

    def test_exact_matches(self):
        """Points on the month dates are all genuine."""
        raw = [_point(date(2020, m, 1), "10") for m in (1, 2, 3)]
        series = normalize_price_series(raw, date(2020, 1, 1), date(2020, 3, 1), "AAA")

        assert len(series.points) == 3
        assert series.exact_matches == 3
        assert series.forward_fills == 0
        assert not series.is_degenerate
        assert all(series.is_available(d) for d in series.month_dates)

    def test_nearest_match_within_tolerance(self):
        """The closest raw point inside the window wins, even in the prior month."""
        raw = [
            _point(date(2019, 12, 30), "9"),
            _point(date(2020, 1, 4), "11"),
        ]
        series = normalize_price_series(raw, date(2020, 1, 1), date(2020, 1, 1), "AAA")

        assert series.exact_matches == 1
        assert series.price_on(date(2020, 1, 1)) == Decimal("9")
        assert series.is_available(date(2020, 1, 1))
        assert series.first_available == date(2020, 1, 1)

    def test_gap_is_forward_filled(self):
        """A month with no point inside the window is filled from the previous month."""
        raw = [_point(date(2020, 1, 1), "10"), _point(date(2020, 3, 1), "12")]
        series = normalize_price_series(raw, date(2020, 1, 1), date(2020, 3, 1), "AAA")

        assert series.exact_matches == 2
        assert series.forward_fills == 1
        feb = series.point_for(date(2020, 2, 1))
        assert feb.filled
        assert feb.date == date(2020, 2, 1)
        assert feb.adjusted_close == Decimal("10")
        assert not series.is_available(date(2020, 2, 1))

    def test_outside_tolerance_is_not_a_match(self):
        raw = [_point(date(2020, 1, 1), "10"), _point(date(2020, 2, 12), "15")]
        series = normalize_price_series(
            raw, date(2020, 1, 1), date(2020, 2, 1), "AAA", tolerance_days=7
        )

        assert not series.is_available(date(2020, 2, 1))
        assert series.price_on(date(2020, 2, 1)) == Decimal("10")

    def test_leading_gap_is_back_filled(self):
        """Months before the first observation borrow the next available point."""
        raw = [_point(date(2020, 3, 1), "20")]
        series = normalize_price_series(raw, date(2020, 1, 1), date(2020, 3, 1), "AAA")

        assert len(series.points) == 3
        assert series.price_on(date(2020, 1, 1)) == Decimal("20")
        assert series.first_available == date(2020, 3, 1)
        assert series.is_degenerate

    def test_no_raw_data_gives_empty_series(self):
        series = normalize_price_series([], date(2020, 1, 1), date(2020, 3, 1), "AAA")

        assert series.is_empty
        assert series.price_on(date(2020, 1, 1)) is None
        assert series.fill_ratio == 0.0

    def test_invalid_prices_are_dropped(self):
        """Zero prices are removed before matching and treated as missing."""
        raw = [_point(date(2020, 1, 1), "10"), _point(date(2020, 2, 1), "0")]
        series = normalize_price_series(raw, date(2020, 1, 1), date(2020, 2, 1), "AAA")

        assert series.exact_matches == 1
        assert series.forward_fills == 1
        assert series.price_on(date(2020, 2, 1)) == Decimal("10")

    def test_price_after_series_end_is_forward_filled(self):
        raw = [_point(date(2020, 1, 1), "10")]
        series = normalize_price_series(raw, date(2020, 1, 1), date(2020, 1, 1), "AAA")

        assert series.price_on(date(2020, 5, 1)) == Decimal("10")
        assert not series.is_available(date(2020, 5, 1))
        assert series.price_on(date(2019, 12, 1)) is None

    def test_window_is_strict(self):
        """A point exactly tolerance_days away is not a genuine match."""
        six_days = normalize_price_series(
            [_point(date(2020, 1, 7), "10")], date(2020, 1, 1), date(2020, 1, 1), "AAA"
        )
        seven_days = normalize_price_series(
            [_point(date(2020, 1, 8), "10")], date(2020, 1, 1), date(2020, 1, 1), "AAA"
        )

        assert six_days.is_available(date(2020, 1, 1))
        assert not seven_days.is_available(date(2020, 1, 1))
        assert seven_days.forward_fills == 1


class TestPriceWindow:
    """Tests for the raw price fetch window and month matching."""

    def test_window_starts_before_first_month(self):
        fetch_start, fetch_end = price_window(date(2020, 1, 15), date(2020, 3, 31))

        assert fetch_start == date(2019, 12, 25)
        assert fetch_end == date(2020, 4, 7)

    def test_mid_month_start_counts_first_of_month(self):
        raw = [_point(date(2020, m, 1), "10") for m in (1, 2, 3)]

        months = genuine_months(raw, date(2020, 1, 2), date(2020, 3, 1))

        assert months == [date(2020, 1, 1), date(2020, 2, 1), date(2020, 3, 1)]

    def test_gaps_and_invalid_points_are_not_genuine(self):
        raw = [
            _point(date(2020, 1, 1), "10"),
            _point(date(2020, 2, 1), "0"),
            _point(date(2020, 3, 20), "12"),
        ]

        assert genuine_months(raw, date(2020, 1, 1), date(2020, 3, 1)) == [date(2020, 1, 1)]
