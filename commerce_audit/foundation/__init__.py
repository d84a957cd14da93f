"""Foundational building blocks for transaction analytics.

This package exposes the transaction contract, the aggregation engine,
NTILE-style quantile scoring, RFM segmentation, period-over-period and
rolling-window analysis, and monthly cohort tracking.
"""

from .aggregation import (
    Aggregate,
    AggregateAccumulator,
    PeriodGranularity,
    aggregate,
    summarize,
    truncate_to_period,
)
from .cohorts import CohortCell, CohortRetention, build_cohort_table, retention_matrix
from .quantiles import ntile
from .rfm import CustomerRFMMetrics, RFMScore, calculate_rfm, calculate_rfm_scores
from .segments import (
    CustomerSegment,
    RFMAnalysis,
    SegmentSummary,
    classify_segment,
    run_rfm_pipeline,
)
from .time_windows import (
    PeriodGrowth,
    RollingPoint,
    UnsortedSeriesError,
    period_over_period,
    rolling_average,
)
from .transactions import TransactionContract, TransactionRecord

__all__ = [
    "Aggregate",
    "AggregateAccumulator",
    "PeriodGranularity",
    "aggregate",
    "summarize",
    "truncate_to_period",
    "CohortCell",
    "CohortRetention",
    "build_cohort_table",
    "retention_matrix",
    "ntile",
    "CustomerRFMMetrics",
    "RFMScore",
    "calculate_rfm",
    "calculate_rfm_scores",
    "CustomerSegment",
    "RFMAnalysis",
    "SegmentSummary",
    "classify_segment",
    "run_rfm_pipeline",
    "PeriodGrowth",
    "RollingPoint",
    "UnsortedSeriesError",
    "period_over_period",
    "rolling_average",
    "TransactionContract",
    "TransactionRecord",
]
