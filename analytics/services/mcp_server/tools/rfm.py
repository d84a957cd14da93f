"""RFM segmentation tool."""

from datetime import datetime

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field, field_validator

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.state import (
    TRANSACTIONS_KEY,
    get_shared_state,
    rfm_analysis_key,
)
from commerce_audit.exports import rows_to_records
from commerce_audit.foundation.aggregation import DEFAULT_PARALLEL_THRESHOLD
from commerce_audit.foundation.segments import run_rfm_pipeline
from commerce_audit.foundation.transactions import to_naive_utc

logger = structlog.get_logger(__name__)


class AnalyzeRFMRequest(BaseModel):
    """Request to score and segment customers."""

    reference_date: datetime | None = Field(
        default=None,
        description="Recency anchor; defaults to the latest invoice date in the loaded data",
    )
    bucket_count: int = Field(
        default=5, ge=1, le=5, description="NTILE buckets per RFM dimension"
    )
    enable_parallel: bool = Field(
        default=False, description="Aggregate customers across worker processes"
    )
    parallel_threshold: int = Field(
        default=DEFAULT_PARALLEL_THRESHOLD,
        ge=1,
        description="Row count from which enable_parallel fans out",
    )
    top_customers: int = Field(
        default=10, ge=0, description="Number of highest-spending customers to return"
    )

    @field_validator("reference_date")
    @classmethod
    def _normalise_reference_date(cls, value: datetime | None) -> datetime | None:
        return None if value is None else to_naive_utc(value)


class RFMSegmentsResponse(BaseModel):
    """Segment breakdown of the customer base."""

    customer_count: int
    reference_date: str | None
    segments: list[dict]
    top_customers: list[dict]


async def _analyze_rfm_segments_impl(
    request: AnalyzeRFMRequest, ctx: Context
) -> RFMSegmentsResponse:
    """Implementation of RFM segmentation logic."""
    await ctx.info("Starting RFM segmentation")

    shared_state = get_shared_state()
    transactions = shared_state.require(
        TRANSACTIONS_KEY, "Run load_transactions first."
    )

    await ctx.report_progress(progress=0.2, total=1.0)
    cache_key = rfm_analysis_key(request.reference_date, request.bucket_count)
    analysis = shared_state.get(cache_key)
    if analysis is None:
        analysis = run_rfm_pipeline(
            transactions,
            request.reference_date,
            bucket_count=request.bucket_count,
            parallel=request.enable_parallel,
            parallel_threshold=request.parallel_threshold,
        )
        shared_state.set(cache_key, analysis)
    else:
        logger.info("rfm_analysis_reused", key=cache_key)
    await ctx.report_progress(progress=0.8, total=1.0)

    top = sorted(analysis.assignments, key=lambda a: (-a.monetary, a.customer_id))
    await ctx.info(
        f"RFM segmentation complete: {len(analysis.assignments)} customers "
        f"in {len(analysis.summary)} segments"
    )
    logger.info(
        "rfm_segments_computed",
        customers=len(analysis.assignments),
        segments=[s.segment.value for s in analysis.summary],
    )

    return RFMSegmentsResponse(
        customer_count=len(analysis.assignments),
        reference_date=(
            analysis.reference_date.isoformat() if analysis.reference_date else None
        ),
        segments=rows_to_records(analysis.summary),
        top_customers=rows_to_records(top[: request.top_customers]),
    )


@mcp.tool()
async def analyze_rfm_segments(
    request: AnalyzeRFMRequest, ctx: Context
) -> RFMSegmentsResponse:
    """
    Score customers on Recency, Frequency and Monetary value and segment them.

    Each dimension is split into NTILE buckets (5 = best); customers are then
    labelled Champions, Loyal Customers, New Customers, At Risk, Lost or
    Others. Requires load_transactions to have been called.
    """
    return await _analyze_rfm_segments_impl(request, ctx)
