"""Rule-based customer segmentation over RFM scores.

Segments are assigned by an ordered rule list: the first rule whose
predicate matches the (r, f, m) triple determines the label. Rules overlap,
so order is part of the definition.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Sequence

from commerce_audit.foundation.aggregation import quantize_money
from commerce_audit.foundation.rfm import (
    CustomerRFMMetrics,
    RFMScore,
    calculate_rfm,
    calculate_rfm_scores,
)
from commerce_audit.foundation.quantiles import DEFAULT_BUCKET_COUNT
from commerce_audit.foundation.transactions import TransactionRecord

logger = logging.getLogger(__name__)

PERCENTAGE_PRECISION = Decimal("0.01")
MIN_SCORE = 1
MAX_SCORE = 5


class CustomerSegment(str, Enum):
    """Closed set of customer segment labels."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    NEW_CUSTOMERS = "New Customers"
    AT_RISK = "At Risk"
    LOST = "Lost"
    OTHERS = "Others"


SegmentRule = Callable[[int, int, int], bool]

#: Evaluated top to bottom; the first match wins.
SEGMENT_RULES: tuple[tuple[SegmentRule, CustomerSegment], ...] = (
    (lambda r, f, m: r >= 4 and f >= 4 and m >= 4, CustomerSegment.CHAMPIONS),
    (lambda r, f, m: r >= 3 and f >= 3 and m >= 3, CustomerSegment.LOYAL_CUSTOMERS),
    (lambda r, f, m: r >= 4 and f <= 2, CustomerSegment.NEW_CUSTOMERS),
    (lambda r, f, m: r <= 2 and f >= 3 and m >= 3, CustomerSegment.AT_RISK),
    (lambda r, f, m: r <= 2 and f <= 2 and m <= 2, CustomerSegment.LOST),
)


def classify_segment(r_score: int, f_score: int, m_score: int) -> CustomerSegment:
    """Return the segment for an (r, f, m) score triple.

    Examples
    --------
    >>> classify_segment(5, 5, 5).value
    'Champions'
    >>> classify_segment(4, 2, 5).value
    'New Customers'
    >>> classify_segment(3, 1, 1).value
    'Others'
    """
    for name, value in (("r_score", r_score), ("f_score", f_score), ("m_score", m_score)):
        if not MIN_SCORE <= value <= MAX_SCORE:
            raise ValueError(
                f"{name} must be between {MIN_SCORE} and {MAX_SCORE}: {value}"
            )
    for rule, segment in SEGMENT_RULES:
        if rule(r_score, f_score, m_score):
            return segment
    return CustomerSegment.OTHERS


@dataclass(frozen=True)
class CustomerSegmentAssignment:
    """A customer's RFM metrics, scores and resulting segment."""

    customer_id: str
    recency_days: int
    frequency: int
    monetary: Decimal
    r_score: int
    f_score: int
    m_score: int
    segment: CustomerSegment


@dataclass(frozen=True)
class SegmentSummary:
    """Aggregate figures for one segment.

    Attributes
    ----------
    segment:
        Segment label
    customer_count:
        Customers in the segment
    avg_monetary:
        Average customer spend in the segment
    total_revenue:
        Total spend of the segment
    pct_customers:
        Share of all segmented customers, as a percentage
    """

    segment: CustomerSegment
    customer_count: int
    avg_monetary: Decimal
    total_revenue: Decimal
    pct_customers: Decimal

    def __post_init__(self) -> None:
        if self.customer_count <= 0:
            raise ValueError(
                f"customer_count must be positive: {self.customer_count} (segment={self.segment})"
            )
        if not 0 <= self.pct_customers <= 100:
            raise ValueError(
                f"pct_customers must be 0-100: {self.pct_customers} (segment={self.segment})"
            )


def segment_customers(
    rfm_metrics: Sequence[CustomerRFMMetrics],
    rfm_scores: Sequence[RFMScore],
) -> list[CustomerSegmentAssignment]:
    """Join metrics with scores and classify each customer.

    Raises
    ------
    ValueError
        If a customer has metrics but no score.
    """
    scores_by_customer = {score.customer_id: score for score in rfm_scores}
    assignments: list[CustomerSegmentAssignment] = []
    for metrics in rfm_metrics:
        score = scores_by_customer.get(metrics.customer_id)
        if score is None:
            raise ValueError(f"No RFM score for customer {metrics.customer_id}")
        assignments.append(
            CustomerSegmentAssignment(
                customer_id=metrics.customer_id,
                recency_days=metrics.recency_days,
                frequency=metrics.frequency,
                monetary=metrics.monetary,
                r_score=score.r_score,
                f_score=score.f_score,
                m_score=score.m_score,
                segment=classify_segment(score.r_score, score.f_score, score.m_score),
            )
        )
    return assignments


def summarize_segments(
    assignments: Sequence[CustomerSegmentAssignment],
) -> list[SegmentSummary]:
    """Summarise segments, ordered by total revenue (highest first)."""
    if not assignments:
        return []

    grouped: dict[CustomerSegment, list[Decimal]] = defaultdict(list)
    for assignment in assignments:
        grouped[assignment.segment].append(assignment.monetary)

    total_customers = len(assignments)
    summaries = [
        SegmentSummary(
            segment=segment,
            customer_count=len(values),
            avg_monetary=quantize_money(sum(values, Decimal("0")) / len(values)),
            total_revenue=quantize_money(sum(values, Decimal("0"))),
            pct_customers=(
                Decimal(len(values)) * 100 / Decimal(total_customers)
            ).quantize(PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP),
        )
        for segment, values in grouped.items()
    ]
    summaries.sort(key=lambda s: s.total_revenue, reverse=True)
    return summaries


@dataclass(frozen=True)
class RFMAnalysis:
    """Every stage of one RFM pipeline run."""

    reference_date: datetime | None
    metrics: list[CustomerRFMMetrics]
    scores: list[RFMScore]
    assignments: list[CustomerSegmentAssignment]
    summary: list[SegmentSummary]


def run_rfm_pipeline(
    transactions: Sequence[TransactionRecord],
    reference_date: datetime | None = None,
    bucket_count: int = DEFAULT_BUCKET_COUNT,
    **aggregate_options,
) -> RFMAnalysis:
    """Run metrics → scores → segments → summary over one transaction set.

    The customer aggregation happens once and is reused by every stage.
    ``aggregate_options`` (``parallel``, ``n_workers`` ...) are forwarded to
    :func:`~commerce_audit.foundation.rfm.calculate_rfm`.
    """
    metrics = calculate_rfm(transactions, reference_date, **aggregate_options)
    scores = calculate_rfm_scores(metrics, bucket_count=bucket_count)
    assignments = segment_customers(metrics, scores)
    summary = summarize_segments(assignments)
    logger.info(
        "RFM pipeline segmented %d customers into %d segments",
        len(assignments),
        len(summary),
    )
    return RFMAnalysis(
        reference_date=metrics[0].reference_date if metrics else reference_date,
        metrics=metrics,
        scores=scores,
        assignments=assignments,
        summary=summary,
    )
