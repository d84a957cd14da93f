"""RFM (Recency-Frequency-Monetary) calculation utilities.

RFM analysis segments customers based on three dimensions:
- Recency: How recently did the customer make a purchase?
- Frequency: How many distinct invoices did they place?
- Monetary: How much did they spend in total?

Metrics come from a single customer-keyed aggregation over the filtered
transaction view; scores come from three independent NTILE rankings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from commerce_audit.foundation.aggregation import (
    DEFAULT_PARALLEL_THRESHOLD,
    aggregate,
    by_customer,
)
from commerce_audit.foundation.quantiles import DEFAULT_BUCKET_COUNT, ntile
from commerce_audit.foundation.transactions import (
    TransactionRecord,
    is_customer_sale,
    max_invoice_date,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerRFMMetrics:
    """RFM metrics for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency_days:
        Whole days between the customer's last purchase and reference_date
    frequency:
        Number of distinct invoices
    monetary:
        Total spend (sum of quantity × unit_price), rounded to 2 places
    first_purchase:
        Timestamp of the customer's first qualifying purchase
    last_purchase:
        Timestamp of the customer's last qualifying purchase
    reference_date:
        Recency anchor used for this run
    """

    customer_id: str
    recency_days: int
    frequency: int
    monetary: Decimal
    first_purchase: datetime
    last_purchase: datetime
    reference_date: datetime

    def __post_init__(self) -> None:
        """Validate RFM metrics."""
        if self.recency_days < 0:
            raise ValueError(
                f"Recency cannot be negative: {self.recency_days} (customer_id={self.customer_id})"
            )
        if self.frequency <= 0:
            raise ValueError(
                f"Frequency must be positive: {self.frequency} (customer_id={self.customer_id})"
            )
        if self.monetary < 0:
            raise ValueError(
                f"Monetary value cannot be negative: {self.monetary} (customer_id={self.customer_id})"
            )
        if self.first_purchase > self.last_purchase:
            raise ValueError(
                f"first_purchase ({self.first_purchase}) is after last_purchase "
                f"({self.last_purchase}) (customer_id={self.customer_id})"
            )


def calculate_rfm(
    transactions: Sequence[TransactionRecord],
    reference_date: datetime | None = None,
    parallel: bool = False,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
) -> list[CustomerRFMMetrics]:
    """Calculate RFM metrics per customer.

    **Recency Anchor**: recency is measured against ``reference_date``. When
    omitted, the dataset's own maximum invoice_date (over every loaded row,
    returns included) is used, never wall-clock time, so reports are
    reproducible for a given snapshot.

    **Timezone Assumptions**: all timestamps and ``reference_date`` must be
    consistently timezone-aware or naive. ``TransactionContract`` and
    ``ReportConfig`` both produce naive UTC values.

    Parameters
    ----------
    transactions:
        Raw transaction records; returns, zero-price lines and lines without
        a customer are excluded.
    reference_date:
        Optional recency anchor override.
    parallel, parallel_threshold, n_workers:
        Passed through to :func:`~commerce_audit.foundation.aggregation.aggregate`.

    Returns
    -------
    list[CustomerRFMMetrics]
        One entry per customer, sorted by customer_id.

    Raises
    ------
    ValueError
        If a customer's last purchase falls after ``reference_date``.

    Examples
    --------
    >>> from decimal import Decimal
    >>> rows = [
    ...     TransactionRecord("inv1", "P1", "", 2, Decimal("5.00"), datetime(2024, 1, 5), "A"),
    ...     TransactionRecord("inv2", "P2", "", 1, Decimal("10.00"), datetime(2024, 2, 10), "A"),
    ... ]
    >>> rfm = calculate_rfm(rows)
    >>> (rfm[0].recency_days, rfm[0].frequency, rfm[0].monetary)
    (0, 2, Decimal('20.00'))
    """
    if reference_date is None:
        reference_date = max_invoice_date(transactions)
    if reference_date is None:
        return []

    customers = aggregate(
        transactions,
        key=by_customer,
        predicate=is_customer_sale,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
    excluded = sum(1 for txn in transactions if not is_customer_sale(txn))
    if excluded:
        logger.warning(
            "Excluded %d of %d rows from RFM (returns, non-positive prices "
            "or missing customer_id)",
            excluded,
            len(transactions),
        )

    rfm_metrics: list[CustomerRFMMetrics] = []
    for customer in customers:
        if customer.last_ts > reference_date:
            raise ValueError(
                f"Transaction timestamp ({customer.last_ts}) cannot be after "
                f"reference_date ({reference_date}) for customer {customer.key}"
            )
        rfm_metrics.append(
            CustomerRFMMetrics(
                customer_id=str(customer.key),
                recency_days=(reference_date - customer.last_ts).days,
                frequency=customer.order_count,
                monetary=customer.revenue,
                first_purchase=customer.first_ts,
                last_purchase=customer.last_ts,
                reference_date=reference_date,
            )
        )

    logger.debug(
        "Calculated RFM metrics for %d customers (reference_date=%s)",
        len(rfm_metrics),
        reference_date.isoformat(),
    )
    return rfm_metrics


@dataclass(frozen=True)
class RFMScore:
    """RFM bucket scores for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    r_score:
        Recency score (highest = most recent)
    f_score:
        Frequency score (highest = most invoices)
    m_score:
        Monetary score (highest = highest spend)
    rfm_score:
        Combined score string (e.g., "555" for best customers)
    """

    customer_id: str
    r_score: int
    f_score: int
    m_score: int
    rfm_score: str

    def __post_init__(self) -> None:
        """Validate RFM scores."""
        for score_name, score_value in [
            ("r_score", self.r_score),
            ("f_score", self.f_score),
            ("m_score", self.m_score),
        ]:
            if score_value < 1:
                raise ValueError(
                    f"{score_name} must be at least 1: {score_value} (customer_id={self.customer_id})"
                )
        expected_rfm = f"{self.r_score}{self.f_score}{self.m_score}"
        if self.rfm_score != expected_rfm:
            raise ValueError(
                f"rfm_score ({self.rfm_score}) does not match r/f/m scores ({expected_rfm}) (customer_id={self.customer_id})"
            )


def calculate_rfm_scores(
    rfm_metrics: Sequence[CustomerRFMMetrics],
    bucket_count: int = DEFAULT_BUCKET_COUNT,
) -> list[RFMScore]:
    """Score RFM metrics into NTILE buckets.

    Recency is ranked descending (fewest days = highest score); frequency
    and monetary ascending (largest value = highest score). Ties keep the
    order of ``rfm_metrics``.

    **Note on Small Datasets**: with fewer customers than ``bucket_count``
    the bucket count is lowered to the population size, which is what SQL
    ``NTILE(k)`` yields over fewer than ``k`` rows (scores 1..n). The change
    is logged at INFO level.

    Parameters
    ----------
    rfm_metrics:
        RFM metrics to score.
    bucket_count:
        Number of buckets per dimension (default: 5 for quintiles).

    Returns
    -------
    list[RFMScore]
        Scores in the same order as ``rfm_metrics``.

    Examples
    --------
    >>> from decimal import Decimal
    >>> metrics = [
    ...     CustomerRFMMetrics("A", 0, 2, Decimal("20.00"), datetime(2024, 1, 5), datetime(2024, 2, 10), datetime(2024, 2, 10)),
    ...     CustomerRFMMetrics("B", 0, 1, Decimal("6.00"), datetime(2024, 2, 10), datetime(2024, 2, 10), datetime(2024, 2, 10)),
    ... ]
    >>> [s.f_score for s in calculate_rfm_scores(metrics)]
    [2, 1]
    """
    if not rfm_metrics:
        return []
    if bucket_count < 1:
        raise ValueError(f"bucket_count must be >= 1, got {bucket_count}")

    buckets = min(bucket_count, len(rfm_metrics))
    if buckets < bucket_count:
        logger.info(
            "Lowering bucket_count from %d to %d: only %d customers to score",
            bucket_count,
            buckets,
            len(rfm_metrics),
        )
    r_scores = ntile(
        [(m.customer_id, m.recency_days) for m in rfm_metrics], buckets, descending=True
    )
    f_scores = ntile([(m.customer_id, m.frequency) for m in rfm_metrics], buckets)
    m_scores = ntile([(m.customer_id, m.monetary) for m in rfm_metrics], buckets)

    return [
        RFMScore(
            customer_id=m.customer_id,
            r_score=r_scores[m.customer_id],
            f_score=f_scores[m.customer_id],
            m_score=m_scores[m.customer_id],
            rfm_score=f"{r_scores[m.customer_id]}{f_scores[m.customer_id]}{m_scores[m.customer_id]}",
        )
        for m in rfm_metrics
    ]
