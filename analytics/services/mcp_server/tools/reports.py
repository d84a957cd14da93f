"""Named report tool."""

from datetime import datetime

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.state import TRANSACTIONS_KEY, get_shared_state
from commerce_audit.config import ReportConfig
from commerce_audit.exports import rows_to_records
from commerce_audit.reports.registry import available_reports, run_report as run_named_report

logger = structlog.get_logger(__name__)


class RunReportRequest(BaseModel):
    """Request to run one of the named reports."""

    report_name: str = Field(
        description=f"One of: {', '.join(available_reports())}",
    )
    reference_date: datetime | None = Field(
        default=None, description="Recency anchor for the RFM reports"
    )
    rolling_window: int = Field(default=7, ge=1)
    limit: int | None = Field(
        default=None,
        ge=1,
        description="Override the row limit of top-N reports",
    )


class RunReportResponse(BaseModel):
    report_name: str
    row_count: int
    rows: list[dict]


async def _run_report_impl(request: RunReportRequest, ctx: Context) -> RunReportResponse:
    """Implementation of named report dispatch."""
    shared_state = get_shared_state()
    transactions = shared_state.require(
        TRANSACTIONS_KEY, "Run load_transactions first."
    )

    overrides = {}
    if request.limit is not None:
        overrides = {
            name: request.limit
            for name in (
                "top_products",
                "top_countries",
                "top_country_shares",
                "top_customers",
                "top_pairs",
            )
        }
    config = ReportConfig(
        reference_date=request.reference_date,
        rolling_window=request.rolling_window,
        **overrides,
    )

    await ctx.info(f"Running report {request.report_name}")
    rows = run_named_report(request.report_name, transactions, config)
    logger.info("report_completed", report=request.report_name, row_count=len(rows))

    return RunReportResponse(
        report_name=request.report_name,
        row_count=len(rows),
        rows=rows_to_records(rows),
    )


@mcp.tool()
async def run_report(request: RunReportRequest, ctx: Context) -> RunReportResponse:
    """
    Run a named report (business summary, trends, products, customers,
    geography or cohorts) over the loaded transactions.

    Requires load_transactions to have been called.
    """
    return await _run_report_impl(request, ctx)
