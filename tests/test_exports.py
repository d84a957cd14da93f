"""Tests for report exports."""

import json
from datetime import datetime
from decimal import Decimal

import pandas as pd
import pytest

from commerce_audit.exports import export_report_csv, export_report_json, rows_to_records
from commerce_audit.foundation.segments import CustomerSegment, SegmentSummary
from commerce_audit.reports.products import ProductPair
from commerce_audit.reports.trends import MonthlyTrend


@pytest.fixture
def monthly_rows():
    return [
        MonthlyTrend(datetime(2024, 1, 1), Decimal("105.92"), 3, 2),
        MonthlyTrend(datetime(2024, 2, 1), Decimal("103.56"), 1, 1),
    ]


class TestRowsToRecords:
    def test_plain_values(self, monthly_rows):
        records = rows_to_records(monthly_rows)
        assert records[0] == {
            "month": "2024-01-01T00:00:00",
            "revenue": 105.92,
            "orders": 3,
            "unique_customers": 2,
        }

    def test_enum_values(self):
        summary = SegmentSummary(
            CustomerSegment.AT_RISK, 1, Decimal("5.00"), Decimal("5.00"), Decimal("100.00")
        )
        assert rows_to_records([summary])[0]["segment"] == "At Risk"

    def test_non_dataclass_rows_raise(self):
        with pytest.raises(TypeError, match="dataclass instances"):
            rows_to_records([{"revenue": 1}])


class TestExportReportJSON:
    def test_export_json_creates_file(self, tmp_path, monthly_rows):
        output_path = tmp_path / "reports" / "monthly.json"

        export_report_json(monthly_rows, output_path, "monthly_trend", metadata={"source": "test"})

        payload = json.loads(output_path.read_text())
        assert payload["report"] == "monthly_trend"
        assert payload["metadata"] == {"source": "test"}
        assert payload["row_count"] == 2
        assert payload["rows"][1]["revenue"] == 103.56
        assert "generated_at" in payload


class TestExportReportCSV:
    def test_export_csv(self, tmp_path):
        output_path = tmp_path / "pairs.csv"
        rows = [ProductPair("ALARM CLOCK BAKELIKE PINK", "WHITE METAL LANTERN", 57)]

        export_report_csv(rows, output_path)

        df = pd.read_csv(output_path)
        assert list(df.columns) == ["product_a", "product_b", "times_bought_together"]
        assert df.loc[0, "times_bought_together"] == 57
