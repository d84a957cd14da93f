"""
Commerce Audit Analytics MCP Server

Exposes the transaction analytics (RFM segmentation, revenue trends, cohort
retention and the named reports) as MCP tools.
"""

import logging
import sys
from contextlib import asynccontextmanager

import structlog

# Configure structlog to write to stderr, not stdout (to avoid interfering with MCP JSON protocol)
logging.basicConfig(
    format="%(message)s",
    stream=sys.stderr,
    level=logging.INFO,
)

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

logger = structlog.get_logger(__name__)

# Import MCP server instance (must be imported before tools to avoid circular imports)
from analytics.services.mcp_server.instance import VERSION, mcp  # noqa: E402
from analytics.services.mcp_server.state import get_shared_state  # noqa: E402


@asynccontextmanager
async def app_lifespan(app):
    """Log startup and clear loaded datasets on shutdown."""
    logger.info("mcp_server_starting", version=VERSION)

    yield

    get_shared_state().clear()
    logger.info("mcp_server_stopping")


mcp.lifespan = app_lifespan


# These imports MUST happen before mcp.run() is called
# Each module registers its tools using the @mcp.tool() decorator
from analytics.services.mcp_server.tools import (  # noqa: E402, F401
    cohorts,
    data_loader,
    reports,
    rfm,
    trends,
)

logger.info(
    "mcp_server_initialized",
    tools=[
        "load_transactions",
        "analyze_rfm_segments",
        "analyze_revenue_trends",
        "analyze_cohort_retention",
        "run_report",
    ],
)


def run() -> None:
    mcp.run()


if __name__ == "__main__":
    run()
