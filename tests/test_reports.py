"""Tests for the reporting queries and the named report registry."""

from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from commerce_audit.config import ReportConfig
from commerce_audit.foundation.segments import CustomerSegment
from commerce_audit.reports import (
    business_summary,
    categorize,
    category_performance,
    country_revenue_share,
    customer_lifetime_value,
    daily_kpis,
    frequently_bought_together,
    month_over_month_growth,
    monthly_revenue_trend,
    revenue_by_country,
    revenue_by_hour,
    revenue_by_weekday,
    rfm_table,
    rolling_daily_metrics,
    segment_summary,
    top_products,
)
from commerce_audit.reports.registry import REPORTS, available_reports, run_report
from commerce_audit.foundation.transactions import TransactionRecord


def make_txn(invoice_no, stock_code, description, quantity, unit_price, ts, customer_id, country="United Kingdom"):
    return TransactionRecord(
        invoice_no=invoice_no,
        stock_code=stock_code,
        description=description,
        quantity=quantity,
        unit_price=Decimal(unit_price),
        invoice_date=ts,
        customer_id=customer_id,
        country=country,
    )


@pytest.fixture
def retail_transactions():
    """A small slice of retail activity over three months."""
    return [
        # 2024-01-07 is a Sunday
        make_txn("536365", "85123A", "WHITE HANGING HEART T-LIGHT HOLDER", 6, "2.55", datetime(2024, 1, 7, 8, 26), "17850"),
        make_txn("536365", "71053", "WHITE METAL LANTERN", 6, "3.39", datetime(2024, 1, 7, 8, 26), "17850"),
        make_txn("536366", "22633", "HAND WARMER UNION JACK", 6, "1.85", datetime(2024, 1, 8, 8, 28), "17850"),
        make_txn("536367", "84879", "ASSORTED COLOUR BIRD ORNAMENT", 32, "1.69", datetime(2024, 1, 8, 8, 34), "13047"),
        make_txn("536367", "85123A", "WHITE HANGING HEART T-LIGHT HOLDER", 2, "2.55", datetime(2024, 1, 8, 8, 34), "13047"),
        make_txn("536370", "22728", "ALARM CLOCK BAKELIKE PINK", 24, "3.75", datetime(2024, 2, 1, 8, 45), "12583", "France"),
        make_txn("536370", "71053", "WHITE METAL LANTERN", 4, "3.39", datetime(2024, 2, 1, 8, 45), "12583", "France"),
        make_txn("C536379", "D", "Discount", -1, "27.50", datetime(2024, 2, 3, 9, 41), "14527"),
        make_txn("536381", "22139", "RETROSPOT TEA SET CERAMIC 11 PC", 1, "4.95", datetime(2024, 3, 1, 9, 41), None),
        make_txn("536382", "85123A", "WHITE HANGING HEART T-LIGHT HOLDER", 4, "2.55", datetime(2024, 3, 4, 14, 5), "13047"),
    ]


class TestOverview:
    def test_business_summary_counts_customer_sales(self, retail_transactions):
        summary = business_summary(retail_transactions)
        # 15.30 + 20.34 + 11.10 + 54.08 + 5.10 + 90.00 + 13.56 + 10.20
        assert summary.total_revenue == Decimal("219.68")
        assert summary.total_transactions == 5
        assert summary.total_customers == 3
        assert summary.total_products == 5
        assert summary.avg_order_value == Decimal("43.94")

    def test_business_summary_empty(self):
        summary = business_summary([])
        assert summary.total_revenue == Decimal("0.00")
        assert summary.avg_order_value is None

    def test_daily_kpis_include_guest_sales(self, retail_transactions):
        kpis = daily_kpis(retail_transactions)
        assert [k.date.day for k in kpis] == [7, 8, 1, 1, 4]
        guest_day = kpis[3]
        assert guest_day.revenue == Decimal("4.95")
        assert guest_day.customers == 0


class TestTrends:
    def test_monthly_revenue_trend(self, retail_transactions):
        trend = monthly_revenue_trend(retail_transactions)
        assert [t.month for t in trend] == [
            datetime(2024, 1, 1),
            datetime(2024, 2, 1),
            datetime(2024, 3, 1),
        ]
        assert trend[0].revenue == Decimal("105.92")
        assert trend[0].orders == 3
        assert trend[0].unique_customers == 2
        assert trend[2].unique_customers == 1

    def test_revenue_by_weekday(self, retail_transactions):
        weekdays = {w.day_name: w for w in revenue_by_weekday(retail_transactions)}
        assert weekdays["Sunday"].day_of_week == 0
        assert weekdays["Sunday"].revenue == Decimal("35.64")
        assert "Saturday" not in weekdays  # only the return fell on a Saturday

    def test_revenue_by_hour(self, retail_transactions):
        hours = {h.hour_of_day: h for h in revenue_by_hour(retail_transactions)}
        assert set(hours) == {8, 9, 14}
        assert hours[14].orders == 1

    def test_month_over_month_growth(self, retail_transactions):
        growth = month_over_month_growth(retail_transactions)
        assert growth[0].growth_pct is None
        # 103.56 vs 105.92
        assert growth[1].growth_pct == Decimal("-2.23")

    def test_rolling_daily_metrics(self, retail_transactions):
        rolling = rolling_daily_metrics(retail_transactions, window=2)
        assert len(rolling) == 5
        assert rolling[0].rolling_avg_revenue == rolling[0].revenue
        assert rolling[1].rolling_avg_orders == Decimal("1.50")
        assert rolling[-1].window_size == 2


class TestProducts:
    def test_top_products_by_revenue(self, retail_transactions):
        products = top_products(retail_transactions, limit=2)
        assert [p.stock_code for p in products] == ["22728", "84879"]
        assert products[0].total_revenue == Decimal("90.00")

    def test_top_products_by_quantity(self, retail_transactions):
        products = top_products(retail_transactions, by="quantity", limit=3)
        assert [(p.stock_code, p.total_quantity) for p in products] == [
            ("84879", 32),
            ("22728", 24),
            ("85123A", 12),
        ]

    def test_top_products_rejects_unknown_ranking(self, retail_transactions):
        with pytest.raises(ValueError, match="by must be"):
            top_products(retail_transactions, by="margin")

    def test_invalid_limit(self, retail_transactions):
        with pytest.raises(ValueError, match="limit must be >= 1"):
            top_products(retail_transactions, limit=0)

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("JUMBO BAG RED RETROSPOT", "Bags"),
            ("LUNCH BOX I LOVE LONDON", "Boxes"),
            ("CHRISTMAS CANDLE HOLDER", "Candles"),  # candle rule precedes christmas
            ("ALARM CLOCK BAKELIKE PINK", "Clocks"),
            ("WHITE HANGING HEART T-LIGHT HOLDER", "Heart Items"),
            ("HAND WARMER UNION JACK", "Other"),
        ],
    )
    def test_categorize(self, description, expected):
        assert categorize(description) == expected

    def test_category_performance(self, retail_transactions):
        categories = {c.category: c for c in category_performance(retail_transactions)}
        assert categories["Clocks"].total_revenue == Decimal("90.00")
        assert categories["Heart Items"].product_count == 1
        assert categories["Other"].product_count == 4

    def test_frequently_bought_together(self, retail_transactions):
        pairs = frequently_bought_together(retail_transactions, more_than=0)
        assert len(pairs) == 3
        assert all(p.times_bought_together == 1 for p in pairs)
        assert frequently_bought_together(retail_transactions, more_than=1) == []

    def test_pair_orientation_follows_stock_code(self, retail_transactions):
        pairs = frequently_bought_together(retail_transactions, more_than=0)
        oriented = {(p.product_a, p.product_b) for p in pairs}
        assert ("ALARM CLOCK BAKELIKE PINK", "WHITE METAL LANTERN") in oriented


class TestCustomers:
    def test_rfm_table_highest_spend_first(self, retail_transactions):
        table = rfm_table(retail_transactions)
        assert [row.customer_id for row in table] == ["12583", "13047", "17850"]
        assert table[0].monetary == Decimal("103.56")

    def test_rfm_table_recency_anchor(self, retail_transactions):
        by_id = {row.customer_id: row for row in rfm_table(retail_transactions)}
        # Anchor is the latest invoice, 2024-03-04 14:05
        assert by_id["13047"].recency_days == 0
        assert by_id["17850"].recency_days == 56

    def test_segment_summary_covers_all_customers(self, retail_transactions):
        summary = segment_summary(retail_transactions)
        assert sum(s.customer_count for s in summary) == 3
        assert all(isinstance(s.segment, CustomerSegment) for s in summary)

    def test_customer_lifetime_value(self, retail_transactions):
        clv = customer_lifetime_value(retail_transactions)
        assert [c.customer_id for c in clv] == ["13047", "17850"]
        repeat = clv[0]
        assert repeat.order_count == 2
        assert repeat.lifespan_days == 56
        assert repeat.annualized_value == Decimal("452.21")

    def test_same_day_repeat_has_no_annualized_value(self):
        rows = [
            make_txn("I1", "P1", "MUG", 1, "5.00", datetime(2024, 1, 1, 9), "C1"),
            make_txn("I2", "P1", "MUG", 1, "5.00", datetime(2024, 1, 1, 17), "C1"),
        ]
        clv = customer_lifetime_value(rows)
        assert clv[0].lifespan_days == 0
        assert clv[0].annualized_value is None


class TestGeography:
    def test_revenue_by_country(self, retail_transactions):
        countries = revenue_by_country(retail_transactions)
        assert [c.country for c in countries] == ["United Kingdom", "France"]
        uk = countries[0]
        assert uk.total_revenue == Decimal("121.07")
        assert uk.customer_count == 2
        assert uk.avg_line_value == Decimal("17.30")

    def test_country_share(self, retail_transactions):
        shares = country_revenue_share(retail_transactions, limit=1)
        assert len(shares) == 1
        assert shares[0].pct_of_total == Decimal("53.90")

    def test_country_share_empty(self):
        assert country_revenue_share([]) == []


class TestRegistry:
    def test_every_report_runs(self, retail_transactions):
        for name in available_reports():
            rows = run_report(name, retail_transactions)
            assert isinstance(rows, list), name

    def test_unknown_report_raises(self, retail_transactions):
        with pytest.raises(ValueError, match="Unknown report"):
            run_report("profit_margin", retail_transactions)

    def test_config_is_applied(self, retail_transactions):
        rows = run_report(
            "top_products_revenue", retail_transactions, ReportConfig(top_products=1)
        )
        assert len(rows) == 1

    def test_reports_sorted(self):
        assert available_reports() == sorted(REPORTS)


class TestReportConfig:
    def test_defaults(self):
        config = ReportConfig()
        assert config.bucket_count == 5
        assert config.rolling_window == 7
        assert config.reference_date is None
        assert config.parallel_threshold == 1_000_000

    def test_aware_reference_date_made_naive_utc(self):
        config = ReportConfig(reference_date="2024-03-01T01:00:00+01:00")
        assert config.reference_date == datetime(2024, 3, 1)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("bucket_count", 0),
            ("bucket_count", 6),
            ("rolling_window", 0),
            ("top_products", 0),
            ("parallel_threshold", 0),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            ReportConfig(**{field: value})
