"""MCP tools for commerce audit analytics."""

from .cohorts import analyze_cohort_retention
from .data_loader import load_transactions
from .reports import run_report
from .rfm import analyze_rfm_segments
from .trends import analyze_revenue_trends

__all__ = [
    "load_transactions",
    "analyze_rfm_segments",
    "analyze_revenue_trends",
    "analyze_cohort_retention",
    "run_report",
]
