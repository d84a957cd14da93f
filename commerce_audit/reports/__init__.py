"""Thin reporting queries layered on the aggregation engine.

Every report returns a list of frozen dataclass rows; formatting and
serialisation are left to :mod:`commerce_audit.exports` and the pandas
adapters. Named dispatch lives in :mod:`commerce_audit.reports.registry`.
"""

from .customers import CustomerLifetimeValue, customer_lifetime_value, rfm_table, segment_summary
from .geography import CountryRevenue, CountryShare, country_revenue_share, revenue_by_country
from .overview import BusinessSummary, DailyKPI, business_summary, daily_kpis
from .products import (
    CategoryPerformance,
    ProductPair,
    ProductSales,
    categorize,
    category_performance,
    frequently_bought_together,
    top_products,
)
from .trends import (
    HourlyRevenue,
    MonthlyTrend,
    RollingDailyMetrics,
    WeekdayRevenue,
    month_over_month_growth,
    monthly_revenue_trend,
    revenue_by_hour,
    revenue_by_weekday,
    rolling_daily_metrics,
)

__all__ = [
    # Overview
    "BusinessSummary",
    "DailyKPI",
    "business_summary",
    "daily_kpis",
    # Trends
    "HourlyRevenue",
    "MonthlyTrend",
    "RollingDailyMetrics",
    "WeekdayRevenue",
    "month_over_month_growth",
    "monthly_revenue_trend",
    "revenue_by_hour",
    "revenue_by_weekday",
    "rolling_daily_metrics",
    # Products
    "CategoryPerformance",
    "ProductPair",
    "ProductSales",
    "categorize",
    "category_performance",
    "frequently_bought_together",
    "top_products",
    # Customers
    "CustomerLifetimeValue",
    "customer_lifetime_value",
    "rfm_table",
    "segment_summary",
    # Geography
    "CountryRevenue",
    "CountryShare",
    "country_revenue_share",
    "revenue_by_country",
]
