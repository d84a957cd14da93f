"""Cohort retention tool."""

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.state import (
    COHORT_TABLE_KEY,
    TRANSACTIONS_KEY,
    get_shared_state,
)
from commerce_audit.foundation.cohorts import build_cohort_table, retention_matrix

logger = structlog.get_logger(__name__)


class AnalyzeCohortRetentionRequest(BaseModel):
    """Request for monthly cohort retention."""

    max_months: int | None = Field(
        default=None,
        ge=0,
        description="Only report months 0..max_months after acquisition",
    )


class CohortRetentionRow(BaseModel):
    cohort_month: str
    cohort_size: int
    active_customers: dict[int, int]
    retention_pct: dict[int, float]


class CohortRetentionResponse(BaseModel):
    """Retention curves, one row per acquisition month."""

    cohort_count: int
    customer_count: int
    cohorts: list[CohortRetentionRow]


async def _analyze_cohort_retention_impl(
    request: AnalyzeCohortRetentionRequest, ctx: Context
) -> CohortRetentionResponse:
    """Implementation of cohort retention logic."""
    shared_state = get_shared_state()
    transactions = shared_state.require(
        TRANSACTIONS_KEY, "Run load_transactions first."
    )

    if shared_state.has(COHORT_TABLE_KEY):
        cells = shared_state.get(COHORT_TABLE_KEY)
        logger.info("cohort_table_reused", cell_count=len(cells))
    else:
        await ctx.info("Building monthly acquisition cohorts")
        cells = build_cohort_table(transactions)
        shared_state.set(COHORT_TABLE_KEY, cells)

    rows: dict[str, CohortRetentionRow] = {}
    for cell in retention_matrix(cells):
        if request.max_months is not None and cell.month_number > request.max_months:
            continue
        label = cell.cohort_month.strftime("%Y-%m")
        row = rows.setdefault(
            label,
            CohortRetentionRow(
                cohort_month=label,
                cohort_size=cell.cohort_size,
                active_customers={},
                retention_pct={},
            ),
        )
        row.active_customers[cell.month_number] = cell.customer_count
        row.retention_pct[cell.month_number] = float(cell.retention_pct)

    cohorts = list(rows.values())
    await ctx.info(f"Cohort retention complete: {len(cohorts)} cohorts")
    logger.info("cohort_retention_computed", cohort_count=len(cohorts))

    return CohortRetentionResponse(
        cohort_count=len(cohorts),
        customer_count=sum(row.cohort_size for row in cohorts),
        cohorts=cohorts,
    )


@mcp.tool()
async def analyze_cohort_retention(
    request: AnalyzeCohortRetentionRequest, ctx: Context
) -> CohortRetentionResponse:
    """
    Group customers by the month of their first purchase and report how many
    buy again in each following month.

    Month 0 is the acquisition month, so its retention is always 100%.
    Requires load_transactions to have been called.
    """
    return await _analyze_cohort_retention_impl(request, ctx)
