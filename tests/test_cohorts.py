"""Tests for monthly acquisition cohorts and retention."""

from datetime import datetime
from decimal import Decimal

import pytest

from commerce_audit.foundation.cohorts import (
    CohortCell,
    build_cohort_table,
    first_purchase_months,
    months_between,
    retention_matrix,
)
from commerce_audit.foundation.transactions import TransactionRecord


def make_txn(customer_id, ts, quantity=1, unit_price="2.00", invoice_no=None):
    return TransactionRecord(
        invoice_no=invoice_no or f"{customer_id}-{ts:%Y%m%d}",
        stock_code="P1",
        description="",
        quantity=quantity,
        unit_price=Decimal(unit_price),
        invoice_date=ts,
        customer_id=customer_id,
    )


def as_tuples(cells):
    return [(c.cohort_month.strftime("%Y-%m"), c.month_number, c.customer_count) for c in cells]


class TestMonthsBetween:
    @pytest.mark.parametrize(
        "start, end, expected",
        [
            (datetime(2024, 1, 1), datetime(2024, 1, 1), 0),
            (datetime(2024, 1, 1), datetime(2024, 3, 1), 2),
            (datetime(2023, 11, 1), datetime(2024, 2, 1), 3),
            (datetime(2024, 1, 31), datetime(2024, 2, 1), 1),
        ],
    )
    def test_calendar_months(self, start, end, expected):
        assert months_between(start, end) == expected


class TestBuildCohortTable:
    def test_single_customer_two_months(self):
        rows = [
            make_txn("C1", datetime(2024, 1, 15)),
            make_txn("C1", datetime(2024, 3, 20)),
        ]
        assert as_tuples(build_cohort_table(rows)) == [
            ("2024-01", 0, 1),
            ("2024-01", 2, 1),
        ]

    def test_distinct_customers_per_cell(self):
        rows = [
            make_txn("C1", datetime(2024, 1, 2)),
            make_txn("C1", datetime(2024, 1, 20)),
            make_txn("C2", datetime(2024, 1, 9)),
            make_txn("C3", datetime(2024, 2, 1)),
            make_txn("C2", datetime(2024, 2, 14)),
        ]
        assert as_tuples(build_cohort_table(rows)) == [
            ("2024-01", 0, 2),
            ("2024-01", 1, 1),
            ("2024-02", 0, 1),
        ]

    def test_invalid_lines_do_not_define_cohort(self):
        """A return before the first sale does not move the cohort month."""
        rows = [
            make_txn("C1", datetime(2023, 12, 5), quantity=-1),
            make_txn("C1", datetime(2024, 1, 10)),
            make_txn(None, datetime(2023, 11, 1)),
        ]
        assert as_tuples(build_cohort_table(rows)) == [("2024-01", 0, 1)]
        assert first_purchase_months(rows) == {"C1": datetime(2024, 1, 1)}

    def test_empty(self):
        assert build_cohort_table([]) == []


class TestRetentionMatrix:
    def test_retention_percentages(self):
        rows = [
            make_txn("C1", datetime(2024, 1, 2)),
            make_txn("C2", datetime(2024, 1, 3)),
            make_txn("C3", datetime(2024, 1, 4)),
            make_txn("C1", datetime(2024, 2, 2)),
        ]
        retention = retention_matrix(build_cohort_table(rows))
        assert [(r.month_number, r.cohort_size, r.retention_pct) for r in retention] == [
            (0, 3, Decimal("100.00")),
            (1, 3, Decimal("33.33")),
        ]

    def test_missing_month_zero_raises(self):
        cells = [CohortCell(datetime(2024, 1, 1), 1, 4)]
        with pytest.raises(ValueError, match="has no month 0 cell"):
            retention_matrix(cells)


class TestCohortCell:
    def test_negative_month_number_raises(self):
        with pytest.raises(ValueError, match="month_number must be >= 0"):
            CohortCell(datetime(2024, 1, 1), -1, 1)

    def test_empty_cell_raises(self):
        with pytest.raises(ValueError, match="customer_count must be positive"):
            CohortCell(datetime(2024, 1, 1), 0, 0)
