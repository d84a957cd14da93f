"""Named report dispatch used by the CLI and the tool server."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from commerce_audit.config import ReportConfig
from commerce_audit.foundation.cohorts import build_cohort_table, retention_matrix
from commerce_audit.foundation.transactions import TransactionRecord
from commerce_audit.reports import customers, geography, overview, products, trends

logger = logging.getLogger(__name__)

ReportRunner = Callable[[Sequence[TransactionRecord], ReportConfig], Any]


def _rfm_options(config: ReportConfig) -> dict[str, Any]:
    return {
        "reference_date": config.reference_date,
        "bucket_count": config.bucket_count,
        "parallel": config.parallel,
        "parallel_threshold": config.parallel_threshold,
        "n_workers": config.n_workers,
    }


REPORTS: dict[str, ReportRunner] = {
    "business_summary": lambda txns, config: [overview.business_summary(txns)],
    "daily_kpis": lambda txns, config: overview.daily_kpis(txns),
    "monthly_trend": lambda txns, config: trends.monthly_revenue_trend(txns),
    "weekday_revenue": lambda txns, config: trends.revenue_by_weekday(txns),
    "hourly_revenue": lambda txns, config: trends.revenue_by_hour(txns),
    "month_over_month": lambda txns, config: trends.month_over_month_growth(txns),
    "rolling_daily": lambda txns, config: trends.rolling_daily_metrics(
        txns, window=config.rolling_window
    ),
    "top_products_revenue": lambda txns, config: products.top_products(
        txns, by="revenue", limit=config.top_products
    ),
    "top_products_quantity": lambda txns, config: products.top_products(
        txns, by="quantity", limit=config.top_products
    ),
    "category_performance": lambda txns, config: products.category_performance(txns),
    "bought_together": lambda txns, config: products.frequently_bought_together(
        txns, more_than=config.basket_min_count, limit=config.top_pairs
    ),
    "rfm": lambda txns, config: customers.rfm_table(txns, **_rfm_options(config)),
    "segment_summary": lambda txns, config: customers.segment_summary(
        txns, **_rfm_options(config)
    ),
    "customer_lifetime_value": lambda txns, config: customers.customer_lifetime_value(
        txns, limit=config.top_customers
    ),
    "country_revenue": lambda txns, config: geography.revenue_by_country(
        txns, limit=config.top_countries
    ),
    "country_share": lambda txns, config: geography.country_revenue_share(
        txns, limit=config.top_country_shares
    ),
    "cohorts": lambda txns, config: build_cohort_table(txns),
    "cohort_retention": lambda txns, config: retention_matrix(build_cohort_table(txns)),
}


def available_reports() -> list[str]:
    return sorted(REPORTS)


def run_report(
    name: str,
    transactions: Sequence[TransactionRecord],
    config: ReportConfig | None = None,
) -> list[Any]:
    """Run the named report and return its rows.

    Raises
    ------
    ValueError
        If ``name`` is not a known report.
    """
    runner = REPORTS.get(name)
    if runner is None:
        raise ValueError(
            f"Unknown report {name!r}. Available reports: {', '.join(available_reports())}"
        )
    config = config or ReportConfig()
    rows = runner(transactions, config)
    logger.info("Report %s produced %d rows", name, len(rows))
    return rows
