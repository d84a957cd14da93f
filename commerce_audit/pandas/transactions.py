"""Pandas DataFrame adapters for transaction logs."""

from pathlib import Path
from typing import List, Sequence

import pandas as pd  # type: ignore

from commerce_audit.foundation.transactions import TransactionContract, TransactionRecord
from ._utils import decimal_to_float, to_pydatetime

#: Column names used by the UCI Online Retail export, mapped to record fields.
UCI_COLUMNS = {
    "InvoiceNo": "invoice_no",
    "StockCode": "stock_code",
    "Description": "description",
    "Quantity": "quantity",
    "InvoiceDate": "invoice_date",
    "UnitPrice": "unit_price",
    "CustomerID": "customer_id",
    "Country": "country",
}

TRANSACTION_COLUMNS = list(UCI_COLUMNS.values())


def normalise_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename UCI-style headers (``InvoiceNo``, ``UnitPrice``...) to field names.

    Columns already using field names are left untouched.
    """
    return df.rename(columns={k: v for k, v in UCI_COLUMNS.items() if k in df.columns})


def dataframe_to_transactions(df: pd.DataFrame) -> List[TransactionRecord]:
    """Convert a DataFrame of invoice lines to validated transaction records.

    Args:
        df: DataFrame with either UCI headers or field-name headers. The
            ``description``, ``customer_id`` and ``country`` columns are
            optional and may contain nulls.

    Returns:
        List of TransactionRecord objects in row order

    Raises:
        ValueError: If required columns are missing or contain nulls

    Example:
        >>> df = pd.read_csv('online_retail.csv', encoding='ISO-8859-1')
        >>> transactions = dataframe_to_transactions(df)
    """
    df = normalise_columns(df)
    required_cols = list(TransactionContract.REQUIRED_FIELDS)

    missing_cols = set(required_cols) - set(df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if df.empty:
        return []

    null_cols = df[required_cols].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(
            f"Null/NaN values found in columns: {null_col_names}. "
            "Transactions require invoice, product, quantity, price and date."
        )

    df = df.copy()
    df["invoice_date"] = pd.to_datetime(df["invoice_date"])
    for col in ("description", "country"):
        if col in df.columns:
            df[col] = df[col].fillna("")

    records = []
    for record in df.to_dict("records"):
        record["invoice_date"] = to_pydatetime(record["invoice_date"])
        records.append(record)

    return TransactionContract().validate_records(records)


def transactions_to_dataframe(transactions: Sequence[TransactionRecord]) -> pd.DataFrame:
    """Convert transaction records to a DataFrame with a ``line_total`` column."""
    if not transactions:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS + ["line_total"])

    rows = [
        {
            "invoice_no": txn.invoice_no,
            "stock_code": txn.stock_code,
            "description": txn.description,
            "quantity": txn.quantity,
            "invoice_date": txn.invoice_date,
            "unit_price": decimal_to_float(txn.unit_price),
            "customer_id": txn.customer_id,
            "country": txn.country,
            "line_total": decimal_to_float(txn.line_total),
        }
        for txn in transactions
    ]
    return pd.DataFrame(rows)


def read_transactions_csv(
    path: str | Path, encoding: str = "ISO-8859-1"
) -> List[TransactionRecord]:
    """Read a transaction CSV (UCI Online Retail layout or field names).

    The UCI export is Latin-1 encoded, hence the default encoding.
    """
    # Codes such as 85123A or C536379 must stay strings
    header = pd.read_csv(path, encoding=encoding, nrows=0).columns
    text_cols = {"InvoiceNo", "StockCode", "invoice_no", "stock_code"}
    df = pd.read_csv(
        path,
        encoding=encoding,
        dtype={col: str for col in header if col in text_cols},
    )
    return dataframe_to_transactions(df)
