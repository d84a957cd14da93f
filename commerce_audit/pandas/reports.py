"""Pandas DataFrame adapters for report rows and RFM results."""

import dataclasses
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Sequence

import pandas as pd  # type: ignore

from commerce_audit.foundation.rfm import CustomerRFMMetrics
from commerce_audit.foundation.segments import run_rfm_pipeline
from commerce_audit.foundation.quantiles import DEFAULT_BUCKET_COUNT
from .transactions import dataframe_to_transactions
from ._utils import decimal_to_float

RFM_COLUMNS = [
    "customer_id",
    "recency_days",
    "frequency",
    "monetary",
    "first_purchase",
    "last_purchase",
    "reference_date",
]


def _cell(value: Any) -> Any:
    if isinstance(value, Decimal):
        return decimal_to_float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return " / ".join(str(part) for part in value)
    return value


def report_to_dataframe(rows: Sequence[Any]) -> pd.DataFrame:
    """Convert dataclass report rows to a DataFrame, one column per field.

    Decimal values become floats and enums their string values; datetimes
    are kept as timestamps.

    Example:
        >>> df = report_to_dataframe(monthly_revenue_trend(transactions))
        >>> df.plot(x='period', y='revenue')
    """
    if not rows:
        return pd.DataFrame()

    return pd.DataFrame(
        [
            {field.name: _cell(getattr(row, field.name)) for field in dataclasses.fields(row)}
            for row in rows
        ]
    )


def rfm_to_dataframe(rfm_metrics: Sequence[CustomerRFMMetrics]) -> pd.DataFrame:
    """Convert RFM metrics to a DataFrame sorted by customer_id."""
    if not rfm_metrics:
        return pd.DataFrame(columns=RFM_COLUMNS)

    df = report_to_dataframe(rfm_metrics)
    return df.sort_values("customer_id").reset_index(drop=True)


def segment_customers_df(
    transactions_df: pd.DataFrame,
    reference_date: Optional[datetime] = None,
    bucket_count: int = DEFAULT_BUCKET_COUNT,
) -> pd.DataFrame:
    """Run RFM segmentation on a transaction DataFrame.

    Convenience function combining conversion and analysis.

    Returns:
        DataFrame with one row per customer: RFM metrics, the three scores
        and the segment name

    Example:
        >>> df = pd.read_csv('online_retail.csv', encoding='ISO-8859-1')
        >>> segments_df = segment_customers_df(df)
        >>> segments_df.groupby('segment')['monetary'].sum()
    """
    transactions = dataframe_to_transactions(transactions_df)
    analysis = run_rfm_pipeline(transactions, reference_date, bucket_count=bucket_count)
    return report_to_dataframe(analysis.assignments)
