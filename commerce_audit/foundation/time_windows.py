"""Period-over-period and rolling-window analysis over ordered series.

Both operations work on an explicitly materialised series of
``(period, value)`` points that the caller has already sorted ascending
by period. Gaps in the calendar are not filled: the "previous" period is
the previous point in the series, and a rolling window spans the previous
points, not a fixed number of calendar days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence, Union

Number = Union[int, Decimal]
SeriesPoint = tuple[datetime, Number]

PRECISION = Decimal("0.01")
DEFAULT_ROLLING_WINDOW = 7


class UnsortedSeriesError(ValueError):
    """Raised when a series is not strictly ascending by period."""


@dataclass(frozen=True)
class PeriodGrowth:
    """Change of a metric relative to the previous point in the series.

    ``previous_value`` is None for the first point; ``growth_pct`` is None
    when there is no previous value or it is zero.
    """

    period: datetime
    value: Number
    previous_value: Number | None
    growth_pct: Decimal | None


@dataclass(frozen=True)
class RollingPoint:
    """Trailing-window average of a metric ending at ``period``."""

    period: datetime
    value: Number
    rolling_avg: Decimal
    window_size: int


def _ensure_sorted(points: Sequence[SeriesPoint]) -> None:
    for index in range(1, len(points)):
        if points[index][0] <= points[index - 1][0]:
            raise UnsortedSeriesError(
                f"Series must be strictly ascending by period: point {index} "
                f"({points[index][0]}) does not follow {points[index - 1][0]}"
            )


def period_over_period(points: Sequence[SeriesPoint]) -> list[PeriodGrowth]:
    """Compute growth of each point relative to the preceding one.

    growth_pct = (current - previous) / previous * 100, rounded to 2 places.

    Raises
    ------
    UnsortedSeriesError
        If the periods are not strictly ascending.

    Examples
    --------
    >>> series = [(datetime(2024, 1, 1), 100), (datetime(2024, 3, 1), 150)]
    >>> [g.growth_pct for g in period_over_period(series)]
    [None, Decimal('50.00')]
    """
    _ensure_sorted(points)

    growth: list[PeriodGrowth] = []
    previous: Number | None = None
    for period, value in points:
        if previous is None or previous == 0:
            growth_pct = None
        else:
            growth_pct = (
                (Decimal(value) - Decimal(previous)) / Decimal(previous) * 100
            ).quantize(PRECISION, rounding=ROUND_HALF_UP)
        growth.append(
            PeriodGrowth(
                period=period,
                value=value,
                previous_value=previous,
                growth_pct=growth_pct,
            )
        )
        previous = value
    return growth


def rolling_average(
    points: Sequence[SeriesPoint], window: int = DEFAULT_ROLLING_WINDOW
) -> list[RollingPoint]:
    """Average each point with up to ``window - 1`` preceding points.

    The window shrinks at the start of the series instead of padding, so
    the first point's average is its own value.

    Raises
    ------
    ValueError
        If ``window`` is below 1.
    UnsortedSeriesError
        If the periods are not strictly ascending.

    Examples
    --------
    >>> series = [(datetime(2024, 1, d), v) for d, v in ((1, 10), (2, 20), (5, 60))]
    >>> [p.rolling_avg for p in rolling_average(series, window=7)]
    [Decimal('10.00'), Decimal('15.00'), Decimal('30.00')]
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    _ensure_sorted(points)

    rolling: list[RollingPoint] = []
    running_total = Decimal("0")
    for index, (period, value) in enumerate(points):
        running_total += Decimal(value)
        if index >= window:
            running_total -= Decimal(points[index - window][1])
        size = min(index + 1, window)
        rolling.append(
            RollingPoint(
                period=period,
                value=value,
                rolling_avg=(running_total / size).quantize(
                    PRECISION, rounding=ROUND_HALF_UP
                ),
                window_size=size,
            )
        )
    return rolling
