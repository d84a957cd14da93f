"""Customer-level reports: RFM table, segment summary and lifetime value."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from commerce_audit.foundation.aggregation import aggregate, by_customer, quantize_money
from commerce_audit.foundation.quantiles import DEFAULT_BUCKET_COUNT
from commerce_audit.foundation.segments import (
    CustomerSegmentAssignment,
    SegmentSummary,
    run_rfm_pipeline,
)
from commerce_audit.foundation.transactions import TransactionRecord, is_customer_sale

DAYS_PER_YEAR = 365
DEFAULT_TOP_CUSTOMERS = 20


@dataclass(frozen=True)
class CustomerLifetimeValue:
    """Value estimate for a repeat customer.

    ``annualized_value`` is None when every purchase fell on the same day
    (zero-day lifespan).
    """

    customer_id: str
    order_count: int
    total_revenue: Decimal
    lifespan_days: int
    annualized_value: Decimal | None
    avg_order_value: Decimal


def rfm_table(
    transactions: Sequence[TransactionRecord],
    reference_date: datetime | None = None,
    bucket_count: int = DEFAULT_BUCKET_COUNT,
    **aggregate_options,
) -> list[CustomerSegmentAssignment]:
    """Per-customer RFM metrics, scores and segment, highest spend first."""
    analysis = run_rfm_pipeline(
        transactions, reference_date, bucket_count=bucket_count, **aggregate_options
    )
    return sorted(
        analysis.assignments, key=lambda a: (-a.monetary, a.customer_id)
    )


def segment_summary(
    transactions: Sequence[TransactionRecord],
    reference_date: datetime | None = None,
    bucket_count: int = DEFAULT_BUCKET_COUNT,
    **aggregate_options,
) -> list[SegmentSummary]:
    """Customer count, spend and share per segment, highest revenue first."""
    return run_rfm_pipeline(
        transactions, reference_date, bucket_count=bucket_count, **aggregate_options
    ).summary


def customer_lifetime_value(
    transactions: Sequence[TransactionRecord],
    limit: int | None = DEFAULT_TOP_CUSTOMERS,
) -> list[CustomerLifetimeValue]:
    """Estimate annualised value for customers with more than one invoice."""
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    estimates: list[CustomerLifetimeValue] = []
    for customer in aggregate(transactions, key=by_customer, predicate=is_customer_sale):
        if customer.order_count <= 1:
            continue
        lifespan_days = (customer.last_ts - customer.first_ts).days
        annualized = (
            quantize_money(customer.revenue / lifespan_days * DAYS_PER_YEAR)
            if lifespan_days
            else None
        )
        estimates.append(
            CustomerLifetimeValue(
                customer_id=str(customer.key),
                order_count=customer.order_count,
                total_revenue=customer.revenue,
                lifespan_days=lifespan_days,
                annualized_value=annualized,
                avg_order_value=customer.avg_order_value,
            )
        )

    estimates.sort(key=lambda e: (-e.total_revenue, e.customer_id))
    return estimates[:limit]
