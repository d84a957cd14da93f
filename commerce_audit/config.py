"""Report parameters shared by the CLI, the tool server and the Python API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from commerce_audit.foundation.aggregation import DEFAULT_PARALLEL_THRESHOLD
from commerce_audit.foundation.time_windows import DEFAULT_ROLLING_WINDOW
from commerce_audit.foundation.transactions import to_naive_utc
from commerce_audit.reports.customers import DEFAULT_TOP_CUSTOMERS
from commerce_audit.reports.geography import DEFAULT_TOP_COUNTRIES, DEFAULT_TOP_SHARES
from commerce_audit.reports.products import (
    DEFAULT_BASKET_MIN_COUNT,
    DEFAULT_TOP_PAIRS,
    DEFAULT_TOP_PRODUCTS,
)


class ReportConfig(BaseModel):
    """Parameters for a report run.

    ``reference_date`` overrides the recency anchor; by default it is the
    dataset's own latest invoice date. Aware values are converted to naive
    UTC, matching the records built by ``TransactionContract``.
    """

    reference_date: datetime | None = Field(
        default=None,
        description="Recency anchor for RFM (defaults to the latest invoice date)",
    )
    bucket_count: int = Field(
        default=5, ge=1, le=5, description="NTILE buckets per RFM dimension"
    )
    rolling_window: int = Field(
        default=DEFAULT_ROLLING_WINDOW, ge=1, description="Trailing window in days with sales"
    )
    top_products: int = Field(default=DEFAULT_TOP_PRODUCTS, ge=1)
    top_countries: int = Field(default=DEFAULT_TOP_COUNTRIES, ge=1)
    top_country_shares: int = Field(default=DEFAULT_TOP_SHARES, ge=1)
    top_customers: int = Field(default=DEFAULT_TOP_CUSTOMERS, ge=1)
    top_pairs: int = Field(default=DEFAULT_TOP_PAIRS, ge=1)
    basket_min_count: int = Field(
        default=DEFAULT_BASKET_MIN_COUNT,
        ge=0,
        description="Pairs must appear on more than this many invoices",
    )
    parallel: bool = Field(
        default=False, description="Aggregate customers across worker processes"
    )
    parallel_threshold: int = Field(
        default=DEFAULT_PARALLEL_THRESHOLD,
        ge=1,
        description="Row count from which the parallel path is taken",
    )
    n_workers: int | None = Field(default=None, ge=1)

    @field_validator("reference_date")
    @classmethod
    def _normalise_reference_date(cls, value: datetime | None) -> datetime | None:
        return None if value is None else to_naive_utc(value)
