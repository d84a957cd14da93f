"""Tests for period-over-period and rolling-window analysis."""

from datetime import datetime
from decimal import Decimal

import pytest

from commerce_audit.foundation.time_windows import (
    UnsortedSeriesError,
    period_over_period,
    rolling_average,
)


def day(n):
    return datetime(2024, 1, n)


class TestPeriodOverPeriod:
    def test_first_point_has_no_growth(self):
        growth = period_over_period([(day(1), Decimal("100.00")), (day(2), Decimal("125.00"))])
        assert growth[0].previous_value is None
        assert growth[0].growth_pct is None
        assert growth[1].previous_value == Decimal("100.00")
        assert growth[1].growth_pct == Decimal("25.00")

    def test_decline_and_rounding(self):
        growth = period_over_period([(day(1), 3), (day(2), 2)])
        assert growth[1].growth_pct == Decimal("-33.33")

    def test_zero_previous_value_yields_none(self):
        growth = period_over_period([(day(1), 0), (day(2), 10), (day(3), 20)])
        assert growth[1].growth_pct is None
        assert growth[2].growth_pct == Decimal("100.00")

    def test_gaps_compare_with_previous_point(self):
        """A missing month is skipped, not treated as zero."""
        series = [(datetime(2024, 1, 1), 100), (datetime(2024, 4, 1), 80)]
        growth = period_over_period(series)
        assert growth[1].previous_value == 100
        assert growth[1].growth_pct == Decimal("-20.00")

    def test_empty_series(self):
        assert period_over_period([]) == []

    def test_unsorted_series_raises(self):
        with pytest.raises(UnsortedSeriesError):
            period_over_period([(day(2), 1), (day(1), 1)])

    def test_duplicate_period_raises(self):
        with pytest.raises(ValueError, match="strictly ascending"):
            period_over_period([(day(1), 1), (day(1), 2)])


class TestRollingAverage:
    def test_short_series_averages_available_points(self):
        """Three points with a window of 7 average to their plain mean."""
        rolling = rolling_average([(day(1), 10), (day(2), 20), (day(5), 60)], window=7)
        assert rolling[-1].rolling_avg == Decimal("30.00")
        assert [p.window_size for p in rolling] == [1, 2, 3]

    def test_window_slides(self):
        values = [10, 20, 60, 30]
        rolling = rolling_average([(day(i + 1), v) for i, v in enumerate(values)], window=2)
        assert [p.rolling_avg for p in rolling] == [
            Decimal("10.00"),
            Decimal("15.00"),
            Decimal("40.00"),
            Decimal("45.00"),
        ]
        assert rolling[-1].window_size == 2

    def test_window_of_one_is_identity(self):
        rolling = rolling_average([(day(1), Decimal("1.25")), (day(2), Decimal("7.50"))], window=1)
        assert [p.rolling_avg for p in rolling] == [Decimal("1.25"), Decimal("7.50")]

    def test_invalid_window_raises(self):
        with pytest.raises(ValueError, match="window must be >= 1"):
            rolling_average([(day(1), 1)], window=0)

    def test_unsorted_series_raises(self):
        with pytest.raises(UnsortedSeriesError):
            rolling_average([(day(3), 1), (day(2), 1)])

    def test_empty_series(self):
        assert rolling_average([]) == []
