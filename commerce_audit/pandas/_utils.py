"""Shared utilities for pandas conversion operations."""

from decimal import Decimal

import pandas as pd  # type: ignore


def decimal_to_float(value: Decimal | None) -> float | None:
    """Convert Decimal to float for pandas compatibility (None passes through)."""
    return None if value is None else float(value)


def to_pydatetime(value):
    """Convert a pandas/NumPy timestamp (or string) to ``datetime``."""
    return pd.to_datetime(value).to_pydatetime()
