"""Revenue trend reports: monthly, weekday, hourly, growth and rolling KPIs."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from commerce_audit.foundation.aggregation import (
    aggregate,
    by_day,
    by_hour,
    by_month,
    by_weekday,
)
from commerce_audit.foundation.time_windows import (
    DEFAULT_ROLLING_WINDOW,
    PeriodGrowth,
    period_over_period,
    rolling_average,
)
from commerce_audit.foundation.transactions import TransactionRecord

# Index 0 = Sunday, matching the weekday numbers produced by by_weekday.
WEEKDAY_NAMES = tuple(calendar.day_name[(index - 1) % 7] for index in range(7))


@dataclass(frozen=True)
class MonthlyTrend:
    month: datetime
    revenue: Decimal
    orders: int
    unique_customers: int


@dataclass(frozen=True)
class WeekdayRevenue:
    day_of_week: int
    day_name: str
    revenue: Decimal
    orders: int


@dataclass(frozen=True)
class HourlyRevenue:
    hour_of_day: int
    revenue: Decimal
    orders: int


@dataclass(frozen=True)
class RollingDailyMetrics:
    """Daily revenue and orders with trailing-window averages."""

    date: datetime
    revenue: Decimal
    orders: int
    rolling_avg_revenue: Decimal
    rolling_avg_orders: Decimal
    window_size: int


def monthly_revenue_trend(transactions: Sequence[TransactionRecord]) -> list[MonthlyTrend]:
    """Revenue, orders and unique customers per calendar month."""
    return [
        MonthlyTrend(
            month=month.key,
            revenue=month.revenue,
            orders=month.order_count,
            unique_customers=month.customer_count,
        )
        for month in aggregate(transactions, key=by_month)
    ]


def revenue_by_weekday(transactions: Sequence[TransactionRecord]) -> list[WeekdayRevenue]:
    """Revenue per day of week, 0 = Sunday through 6 = Saturday."""
    return [
        WeekdayRevenue(
            day_of_week=day.key,
            day_name=WEEKDAY_NAMES[day.key],
            revenue=day.revenue,
            orders=day.order_count,
        )
        for day in aggregate(transactions, key=by_weekday)
    ]


def revenue_by_hour(transactions: Sequence[TransactionRecord]) -> list[HourlyRevenue]:
    return [
        HourlyRevenue(hour_of_day=hour.key, revenue=hour.revenue, orders=hour.order_count)
        for hour in aggregate(transactions, key=by_hour)
    ]


def month_over_month_growth(transactions: Sequence[TransactionRecord]) -> list[PeriodGrowth]:
    """Monthly revenue with the previous month present in the data and growth %.

    Months without sales are absent, so the comparison is against the
    nearest earlier month that has revenue.
    """
    months = aggregate(transactions, key=by_month)
    return period_over_period([(month.key, month.revenue) for month in months])


def rolling_daily_metrics(
    transactions: Sequence[TransactionRecord],
    window: int = DEFAULT_ROLLING_WINDOW,
) -> list[RollingDailyMetrics]:
    """Daily revenue and order counts with ``window``-day trailing averages.

    The window counts days with sales, not calendar days.
    """
    days = aggregate(transactions, key=by_day)
    revenue = rolling_average([(day.key, day.revenue) for day in days], window)
    orders = rolling_average([(day.key, day.order_count) for day in days], window)
    return [
        RollingDailyMetrics(
            date=rev.period,
            revenue=rev.value,
            orders=ords.value,
            rolling_avg_revenue=rev.rolling_avg,
            rolling_avg_orders=ords.rolling_avg,
            window_size=rev.window_size,
        )
        for rev, ords in zip(revenue, orders)
    ]
