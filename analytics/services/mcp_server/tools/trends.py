"""Revenue trend tool: period-over-period growth and rolling averages."""

from typing import Literal

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.state import TRANSACTIONS_KEY, get_shared_state
from commerce_audit.foundation.aggregation import PeriodGranularity, aggregate, period_key
from commerce_audit.foundation.time_windows import (
    DEFAULT_ROLLING_WINDOW,
    period_over_period,
    rolling_average,
)

logger = structlog.get_logger(__name__)


class AnalyzeRevenueTrendsRequest(BaseModel):
    """Request for a revenue time series."""

    granularity: Literal["day", "month"] = Field(
        default="month", description="Bucket revenue by calendar day or month"
    )
    rolling_window: int = Field(
        default=DEFAULT_ROLLING_WINDOW,
        ge=1,
        description="Number of trailing periods (with sales) in the rolling average",
    )


class RevenueTrendPoint(BaseModel):
    period: str
    revenue: float
    orders: int
    customers: int
    growth_pct: float | None
    rolling_avg_revenue: float


class RevenueTrendsResponse(BaseModel):
    """Revenue per period with growth and trailing average."""

    granularity: str
    period_count: int
    total_revenue: float
    points: list[RevenueTrendPoint]
    best_period: str | None
    worst_period: str | None


async def _analyze_revenue_trends_impl(
    request: AnalyzeRevenueTrendsRequest, ctx: Context
) -> RevenueTrendsResponse:
    """Implementation of revenue trend analysis."""
    shared_state = get_shared_state()
    transactions = shared_state.require(
        TRANSACTIONS_KEY, "Run load_transactions first."
    )

    granularity = PeriodGranularity(request.granularity)
    await ctx.info(f"Aggregating revenue by {granularity.value}")

    periods = aggregate(transactions, key=period_key(granularity))
    series = [(p.key, p.revenue) for p in periods]
    growth = period_over_period(series)
    rolling = rolling_average(series, request.rolling_window)

    points = [
        RevenueTrendPoint(
            period=p.key.date().isoformat(),
            revenue=float(p.revenue),
            orders=p.order_count,
            customers=p.customer_count,
            growth_pct=float(g.growth_pct) if g.growth_pct is not None else None,
            rolling_avg_revenue=float(r.rolling_avg),
        )
        for p, g, r in zip(periods, growth, rolling)
    ]

    best = max(points, key=lambda pt: pt.revenue).period if points else None
    worst = min(points, key=lambda pt: pt.revenue).period if points else None

    logger.info(
        "revenue_trends_computed",
        granularity=granularity.value,
        period_count=len(points),
    )

    return RevenueTrendsResponse(
        granularity=granularity.value,
        period_count=len(points),
        total_revenue=float(sum(p.revenue for p in periods)),
        points=points,
        best_period=best,
        worst_period=worst,
    )


@mcp.tool()
async def analyze_revenue_trends(
    request: AnalyzeRevenueTrendsRequest, ctx: Context
) -> RevenueTrendsResponse:
    """
    Revenue per day or month with growth over the previous period and a
    trailing rolling average.

    Periods without sales are absent; growth compares against the previous
    period that has sales. Requires load_transactions to have been called.
    """
    return await _analyze_revenue_trends_impl(request, ctx)
