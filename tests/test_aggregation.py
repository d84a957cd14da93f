"""Tests for the aggregation engine."""

from datetime import datetime
from decimal import Decimal

import pytest

from commerce_audit.foundation.aggregation import (
    AggregateAccumulator,
    PeriodGranularity,
    aggregate,
    by_country,
    by_customer,
    by_day,
    by_invoice,
    by_month,
    by_product,
    by_stock_code,
    by_weekday,
    merge_partials,
    _accumulate,
    summarize,
    truncate_to_period,
)
from commerce_audit.foundation.transactions import (
    TransactionRecord,
    is_customer_sale,
    is_valid_sale,
)


def make_txn(invoice_no, stock_code, quantity, unit_price, ts, customer_id="C1", country="United Kingdom"):
    return TransactionRecord(
        invoice_no=invoice_no,
        stock_code=stock_code,
        description=f"ITEM {stock_code}",
        quantity=quantity,
        unit_price=Decimal(unit_price),
        invoice_date=ts,
        customer_id=customer_id,
        country=country,
    )


@pytest.fixture
def sample_transactions():
    return [
        make_txn("I1", "P1", 6, "2.55", datetime(2024, 1, 5, 8, 26), "C1"),
        make_txn("I1", "P2", 2, "3.39", datetime(2024, 1, 5, 8, 26), "C1"),
        make_txn("I2", "P1", 12, "2.10", datetime(2024, 1, 20, 14, 0), "C2", "France"),
        make_txn("C3", "P1", -6, "2.55", datetime(2024, 1, 21, 9, 0), "C1"),  # return
        make_txn("I4", "M", 1, "0", datetime(2024, 2, 2, 10, 0), "C2"),  # adjustment
        make_txn("I5", "P3", 4, "1.25", datetime(2024, 2, 3, 11, 0), None),  # guest
        make_txn("I6", "P2", 1, "3.39", datetime(2024, 2, 10, 16, 45), "C3", "Germany"),
    ]


class TestAggregateTotals:
    """Revenue and counts must equal manual sums over valid rows only."""

    def test_revenue_matches_manual_sum(self, sample_transactions):
        expected = sum(
            (t.line_total for t in sample_transactions if is_valid_sale(t)),
            Decimal("0"),
        )
        total = summarize(sample_transactions)
        assert total.revenue == expected.quantize(Decimal("0.01"))
        assert total.revenue == Decimal("55.67")

    def test_counts(self, sample_transactions):
        total = summarize(sample_transactions)
        assert total.order_count == 4  # I1, I2, I5, I6
        assert total.line_count == 5
        assert total.customer_count == 3  # guest line counts revenue, not customers
        assert total.product_count == 3
        assert total.total_quantity == 25
        assert total.first_ts == datetime(2024, 1, 5, 8, 26)
        assert total.last_ts == datetime(2024, 2, 10, 16, 45)

    def test_averages(self, sample_transactions):
        total = summarize(sample_transactions)
        assert total.avg_order_value == Decimal("13.92")  # 55.67 / 4
        assert total.avg_line_value == Decimal("11.13")  # 55.67 / 5

    def test_customer_predicate_excludes_guests(self, sample_transactions):
        total = summarize(sample_transactions, predicate=is_customer_sale)
        assert total.revenue == Decimal("50.67")
        assert total.order_count == 3

    def test_empty_set_yields_zeroes(self):
        total = summarize([])
        assert total.revenue == Decimal("0.00")
        assert total.order_count == 0
        assert total.customer_count == 0
        assert total.avg_order_value is None
        assert total.avg_line_value is None
        assert total.first_ts is None

    def test_only_invalid_rows_yields_zeroes(self, sample_transactions):
        returns = [t for t in sample_transactions if not is_valid_sale(t)]
        assert summarize(returns).order_count == 0
        assert aggregate(returns, key=by_customer) == []


class TestGroupings:
    """Test key extractors."""

    def test_by_customer_sorted(self, sample_transactions):
        customers = aggregate(sample_transactions, key=by_customer)
        # Guest group sorts last
        assert [c.key for c in customers] == ["C1", "C2", "C3", None]
        assert customers[0].revenue == Decimal("22.08")
        assert customers[0].order_count == 1

    def test_by_month(self, sample_transactions):
        months = aggregate(sample_transactions, key=by_month)
        assert [m.key for m in months] == [datetime(2024, 1, 1), datetime(2024, 2, 1)]
        assert months[1].revenue == Decimal("8.39")

    def test_by_day_truncates_time(self, sample_transactions):
        days = aggregate(sample_transactions, key=by_day)
        assert days[0].key == datetime(2024, 1, 5)
        assert days[0].line_count == 2

    def test_by_product_uses_code_and_description(self, sample_transactions):
        products = aggregate(sample_transactions, key=by_product)
        assert products[0].key == ("P1", "ITEM P1")
        assert products[0].total_quantity == 18

    def test_by_invoice(self, sample_transactions):
        invoices = {i.key: i for i in aggregate(sample_transactions, key=by_invoice)}
        # Return C3 and zero-price I4 are excluded
        assert sorted(invoices) == ["I1", "I2", "I5", "I6"]
        assert invoices["I1"].revenue == Decimal("22.08")
        assert invoices["I1"].product_count == 2

    def test_by_stock_code(self, sample_transactions):
        codes = {c.key: c for c in aggregate(sample_transactions, key=by_stock_code)}
        assert codes["P1"].total_quantity == 18
        assert codes["P1"].order_count == 2
        assert codes["P2"].revenue == Decimal("10.17")

    def test_by_country(self, sample_transactions):
        countries = {c.key: c for c in aggregate(sample_transactions, key=by_country)}
        assert countries["France"].revenue == Decimal("25.20")
        assert countries["Germany"].customer_count == 1

    def test_by_weekday_sunday_is_zero(self):
        sunday = make_txn("I1", "P1", 1, "1.00", datetime(2024, 1, 7, 12, 0))
        saturday = make_txn("I2", "P1", 1, "1.00", datetime(2024, 1, 6, 12, 0))
        assert by_weekday(sunday) == 0
        assert by_weekday(saturday) == 6

    def test_truncate_to_period(self):
        ts = datetime(2024, 3, 17, 13, 45, 12)
        assert truncate_to_period(ts, PeriodGranularity.DAY) == datetime(2024, 3, 17)
        assert truncate_to_period(ts, PeriodGranularity.MONTH) == datetime(2024, 3, 1)


class TestMerge:
    """Partial accumulators merge associatively and commutatively."""

    @staticmethod
    def _partials(transactions):
        return [
            _accumulate(transactions[:2], by_customer, is_valid_sale),
            _accumulate(transactions[2:4], by_customer, is_valid_sale),
            _accumulate(transactions[4:], by_customer, is_valid_sale),
        ]

    def test_merge_is_commutative(self, sample_transactions):
        a = _accumulate(sample_transactions[:1], by_customer, is_valid_sale)["C1"]
        b = _accumulate(sample_transactions[1:2], by_customer, is_valid_sale)["C1"]
        assert a.merge(b).finalize("C1") == b.merge(a).finalize("C1")

    def test_merge_is_associative(self, sample_transactions):
        p1, p2, p3 = (
            _accumulate([t], by_customer, lambda t: True).get(
                "C1", AggregateAccumulator()
            )
            for t in sample_transactions[:3]
        )
        left = p1.merge(p2).merge(p3).finalize("C1")
        right = p1.merge(p2.merge(p3)).finalize("C1")
        assert left == right

    def test_partition_matches_single_pass(self, sample_transactions):
        serial = _accumulate(sample_transactions, by_customer, is_valid_sale)
        merged = merge_partials(self._partials(sample_transactions))
        reversed_merge = merge_partials(reversed(self._partials(sample_transactions)))
        for key, bucket in serial.items():
            assert merged[key].finalize(key) == bucket.finalize(key)
            assert reversed_merge[key].finalize(key) == bucket.finalize(key)


class TestParallelAggregation:
    """The parallel path must match the serial path."""

    def test_parallel_matches_serial(self, sample_transactions):
        transactions = sample_transactions * 20
        serial = aggregate(transactions, key=by_customer)
        parallel = aggregate(
            transactions,
            key=by_customer,
            parallel=True,
            parallel_threshold=10,
            n_workers=2,
        )
        assert parallel == serial

    def test_parallel_below_threshold_runs_serially(self, sample_transactions):
        result = aggregate(sample_transactions, key=by_customer, parallel=True)
        assert result == aggregate(sample_transactions, key=by_customer)
