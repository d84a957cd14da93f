"""Monthly acquisition cohorts and retention tracking.

Customers are grouped by the calendar month of their first qualifying
purchase. Each later month in which they buy again is measured as a whole
number of calendar months after that cohort month.

Quick Start
-----------
>>> from datetime import datetime
>>> from decimal import Decimal
>>> from commerce_audit.foundation.transactions import TransactionRecord
>>> rows = [
...     TransactionRecord("I1", "P1", "", 1, Decimal("2.00"), datetime(2024, 1, 15), "C1"),
...     TransactionRecord("I2", "P1", "", 1, Decimal("2.00"), datetime(2024, 3, 20), "C1"),
... ]
>>> [(c.cohort_month.strftime("%Y-%m"), c.month_number) for c in build_cohort_table(rows)]
[('2024-01', 0), ('2024-01', 2)]
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from commerce_audit.foundation.aggregation import PeriodGranularity, truncate_to_period
from commerce_audit.foundation.transactions import (
    TransactionRecord,
    filter_transactions,
    is_customer_sale,
)

logger = logging.getLogger(__name__)

PERCENTAGE_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class CohortCell:
    """Distinct active customers of a cohort in one month offset.

    Attributes
    ----------
    cohort_month:
        First day of the month in which the cohort's customers first bought.
    month_number:
        Whole calendar months between cohort_month and the activity month
        (0 = acquisition month).
    customer_count:
        Distinct customers of the cohort active in that month.
    """

    cohort_month: datetime
    month_number: int
    customer_count: int

    def __post_init__(self) -> None:
        """Validate cohort cell constraints."""
        if self.month_number < 0:
            raise ValueError(f"month_number must be >= 0, got {self.month_number}")
        if self.customer_count <= 0:
            raise ValueError(
                f"customer_count must be positive, got {self.customer_count}"
            )


@dataclass(frozen=True)
class CohortRetention:
    """Cohort cell expressed relative to the cohort's size in month 0."""

    cohort_month: datetime
    month_number: int
    customer_count: int
    cohort_size: int
    retention_pct: Decimal


def months_between(start: datetime, end: datetime) -> int:
    """Return the whole calendar months from ``start`` to ``end``.

    Days within the month are ignored: 2024-01-31 to 2024-02-01 is one month.

    Examples
    --------
    >>> months_between(datetime(2023, 11, 1), datetime(2024, 2, 1))
    3
    """
    return (end.year - start.year) * 12 + (end.month - start.month)


def first_purchase_months(
    transactions: Sequence[TransactionRecord],
) -> dict[str, datetime]:
    """Map each customer to the month of their first qualifying purchase."""
    first_purchase: dict[str, datetime] = {}
    for txn in filter_transactions(transactions, is_customer_sale):
        current = first_purchase.get(txn.customer_id)
        if current is None or txn.invoice_date < current:
            first_purchase[txn.customer_id] = txn.invoice_date
    return {
        customer_id: truncate_to_period(ts, PeriodGranularity.MONTH)
        for customer_id, ts in first_purchase.items()
    }


def build_cohort_table(transactions: Sequence[TransactionRecord]) -> list[CohortCell]:
    """Count distinct active customers per (cohort_month, month_number).

    Only qualifying lines (positive quantity and price, known customer)
    define both the cohort month and later activity. A customer who bought
    in a single month contributes exactly one cell, ``(cohort_month, 0)``.

    Returns
    -------
    list[CohortCell]
        Cells ordered by cohort_month, then month_number.
    """
    cohort_months = first_purchase_months(transactions)
    if not cohort_months:
        return []

    active: dict[tuple[datetime, int], set[str]] = defaultdict(set)
    for txn in filter_transactions(transactions, is_customer_sale):
        cohort_month = cohort_months[txn.customer_id]
        activity_month = truncate_to_period(txn.invoice_date, PeriodGranularity.MONTH)
        active[(cohort_month, months_between(cohort_month, activity_month))].add(
            txn.customer_id
        )

    cells = [
        CohortCell(cohort_month=month, month_number=offset, customer_count=len(ids))
        for (month, offset), ids in active.items()
    ]
    cells.sort(key=lambda cell: (cell.cohort_month, cell.month_number))
    logger.debug(
        "Built %d cohort cells for %d cohorts",
        len(cells),
        len(set(cohort_months.values())),
    )
    return cells


def retention_matrix(cells: Sequence[CohortCell]) -> list[CohortRetention]:
    """Express each cohort cell as a percentage of its month-0 size.

    Raises
    ------
    ValueError
        If a cohort has cells but no month-0 cell.
    """
    cohort_sizes = {
        cell.cohort_month: cell.customer_count
        for cell in cells
        if cell.month_number == 0
    }

    retention: list[CohortRetention] = []
    for cell in cells:
        size = cohort_sizes.get(cell.cohort_month)
        if size is None:
            raise ValueError(
                f"Cohort {cell.cohort_month.strftime('%Y-%m')} has no month 0 cell"
            )
        retention.append(
            CohortRetention(
                cohort_month=cell.cohort_month,
                month_number=cell.month_number,
                customer_count=cell.customer_count,
                cohort_size=size,
                retention_pct=(
                    Decimal(cell.customer_count) * 100 / Decimal(size)
                ).quantize(PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP),
            )
        )
    return retention
