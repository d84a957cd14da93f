"""Pandas DataFrame adapters for commerce audit components."""

from .transactions import (
    dataframe_to_transactions,
    normalise_columns,
    read_transactions_csv,
    transactions_to_dataframe,
)
from .reports import (
    report_to_dataframe,
    rfm_to_dataframe,
    segment_customers_df,
)

__all__ = [
    # Transaction adapters
    "dataframe_to_transactions",
    "normalise_columns",
    "read_transactions_csv",
    "transactions_to_dataframe",
    # Report adapters
    "report_to_dataframe",
    "rfm_to_dataframe",
    "segment_customers_df",
]
