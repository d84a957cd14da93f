"""Export report rows to JSON and CSV.

Reports produce frozen dataclasses holding Decimals, datetimes and enums;
this module is the boundary that turns them into plain records and files.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

logger = logging.getLogger(__name__)


def _to_plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_to_plain(item) for item in value]
    return value


def rows_to_records(rows: Sequence[Any]) -> list[dict[str, Any]]:
    """Convert dataclass report rows into JSON-serialisable dictionaries.

    Decimals become floats, datetimes ISO strings and enums their values;
    None stays None.

    Raises
    ------
    TypeError
        If a row is not a dataclass instance.
    """
    records: list[dict[str, Any]] = []
    for row in rows:
        if not dataclasses.is_dataclass(row) or isinstance(row, type):
            raise TypeError(f"Report rows must be dataclass instances, got {type(row).__name__}")
        records.append(
            {
                field.name: _to_plain(getattr(row, field.name))
                for field in dataclasses.fields(row)
            }
        )
    return records


def export_report_json(
    rows: Sequence[Any],
    output_path: str | Path,
    report_name: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Write report rows to a JSON document.

    Examples
    --------
    >>> rows = monthly_revenue_trend(transactions)
    >>> export_report_json(rows, "monthly.json", "monthly_trend",
    ...                    metadata={"source": "online_retail.csv"})
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "report": report_name,
        "metadata": metadata or {},
        "generated_at": datetime.now().isoformat(),
        "row_count": len(rows),
        "rows": rows_to_records(rows),
    }
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(f"Report {report_name} exported to {output_path}")


def export_report_csv(rows: Sequence[Any], output_path: str | Path) -> None:
    """Write report rows to CSV, one column per dataclass field.

    An empty report produces an empty file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(rows_to_records(rows))
    df.to_csv(output_path, index=False)

    logger.info(f"Report exported to CSV: {output_path} ({len(df)} rows)")
