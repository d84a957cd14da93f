"""Headline business metrics and daily KPIs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from commerce_audit.foundation.aggregation import aggregate, by_day, summarize
from commerce_audit.foundation.transactions import (
    TransactionRecord,
    is_customer_sale,
)


@dataclass(frozen=True)
class BusinessSummary:
    """Totals over every valid, customer-attributed sale."""

    total_revenue: Decimal
    total_transactions: int
    total_customers: int
    total_products: int
    avg_order_value: Decimal | None


@dataclass(frozen=True)
class DailyKPI:
    date: datetime
    revenue: Decimal
    orders: int
    customers: int
    avg_order_value: Decimal | None


def business_summary(transactions: Sequence[TransactionRecord]) -> BusinessSummary:
    """Return revenue, invoice, customer and product totals.

    An empty dataset yields zeros and a None average order value.
    """
    totals = summarize(transactions, predicate=is_customer_sale)
    return BusinessSummary(
        total_revenue=totals.revenue,
        total_transactions=totals.order_count,
        total_customers=totals.customer_count,
        total_products=totals.product_count,
        avg_order_value=totals.avg_order_value,
    )


def daily_kpis(transactions: Sequence[TransactionRecord]) -> list[DailyKPI]:
    """Return one KPI row per day with sales, ordered by date."""
    return [
        DailyKPI(
            date=day.key,
            revenue=day.revenue,
            orders=day.order_count,
            customers=day.customer_count,
            avg_order_value=day.avg_order_value,
        )
        for day in aggregate(transactions, key=by_day)
    ]
