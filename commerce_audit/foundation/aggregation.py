"""Aggregation engine for transaction-level summaries.

Every report in the package is built from :func:`aggregate`: one pass over
the filtered transaction view producing one :class:`Aggregate` per distinct
grouping key (customer, product, country, day, month, ...).
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Callable, Hashable, Iterable, Optional, Sequence

from commerce_audit.foundation.transactions import TransactionRecord, is_valid_sale

logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")
DEFAULT_PARALLEL_THRESHOLD = 1_000_000

KeyFunc = Callable[[TransactionRecord], Hashable]
Predicate = Callable[[TransactionRecord], bool]


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary amount to 2 decimal places (half up)."""
    return value.quantize(MONEY, rounding=ROUND_HALF_UP)


class PeriodGranularity(str, Enum):
    """Supported calendar granularities for period aggregates."""

    DAY = "day"
    MONTH = "month"


@dataclass(frozen=True)
class Aggregate:
    """Summary metrics for one grouping key.

    Attributes
    ----------
    key:
        Grouping key produced by the key extractor.
    revenue:
        Sum of quantity × unit_price, rounded to 2 decimal places.
    order_count:
        Number of distinct invoices.
    customer_count:
        Number of distinct known customers.
    product_count:
        Number of distinct stock codes.
    total_quantity:
        Sum of quantities.
    line_count:
        Number of contributing invoice lines.
    first_ts / last_ts:
        Earliest and latest invoice timestamps in the group (None if empty).
    avg_order_value:
        revenue / order_count, or None when there are no orders.
    avg_line_value:
        revenue / line_count, or None when there are no lines.
    """

    key: Any
    revenue: Decimal
    order_count: int
    customer_count: int
    product_count: int
    total_quantity: int
    line_count: int
    first_ts: datetime | None
    last_ts: datetime | None
    avg_order_value: Decimal | None
    avg_line_value: Decimal | None


@dataclass(slots=True)
class AggregateAccumulator:
    """Mergeable partial state behind an :class:`Aggregate`.

    ``merge`` is associative and commutative, so partials computed over any
    partition of the rows combine to the same totals in any order.
    """

    revenue: Decimal = Decimal("0")
    total_quantity: int = 0
    line_count: int = 0
    invoices: set = field(default_factory=set)
    customers: set = field(default_factory=set)
    products: set = field(default_factory=set)
    first_ts: datetime | None = None
    last_ts: datetime | None = None

    def add(self, txn: TransactionRecord) -> None:
        self.revenue += txn.line_total
        self.total_quantity += txn.quantity
        self.line_count += 1
        self.invoices.add(txn.invoice_no)
        if txn.customer_id is not None:
            self.customers.add(txn.customer_id)
        self.products.add(txn.stock_code)
        if self.first_ts is None or txn.invoice_date < self.first_ts:
            self.first_ts = txn.invoice_date
        if self.last_ts is None or txn.invoice_date > self.last_ts:
            self.last_ts = txn.invoice_date

    def merge(self, other: AggregateAccumulator) -> AggregateAccumulator:
        """Return a new accumulator combining ``self`` and ``other``."""
        firsts = [ts for ts in (self.first_ts, other.first_ts) if ts is not None]
        lasts = [ts for ts in (self.last_ts, other.last_ts) if ts is not None]
        return AggregateAccumulator(
            revenue=self.revenue + other.revenue,
            total_quantity=self.total_quantity + other.total_quantity,
            line_count=self.line_count + other.line_count,
            invoices=self.invoices | other.invoices,
            customers=self.customers | other.customers,
            products=self.products | other.products,
            first_ts=min(firsts) if firsts else None,
            last_ts=max(lasts) if lasts else None,
        )

    def finalize(self, key: Any) -> Aggregate:
        order_count = len(self.invoices)
        avg_order_value = (
            quantize_money(self.revenue / order_count) if order_count else None
        )
        avg_line_value = (
            quantize_money(self.revenue / self.line_count) if self.line_count else None
        )
        return Aggregate(
            key=key,
            revenue=quantize_money(self.revenue),
            order_count=order_count,
            customer_count=len(self.customers),
            product_count=len(self.products),
            total_quantity=self.total_quantity,
            line_count=self.line_count,
            first_ts=self.first_ts,
            last_ts=self.last_ts,
            avg_order_value=avg_order_value,
            avg_line_value=avg_line_value,
        )


# Key extractors are module-level so they can be shipped to worker processes.


def by_total(txn: TransactionRecord) -> Hashable:
    return "all"


def by_customer(txn: TransactionRecord) -> Hashable:
    return txn.customer_id


def by_invoice(txn: TransactionRecord) -> Hashable:
    return txn.invoice_no


def by_stock_code(txn: TransactionRecord) -> Hashable:
    return txn.stock_code


def by_product(txn: TransactionRecord) -> Hashable:
    return (txn.stock_code, txn.description)


def by_country(txn: TransactionRecord) -> Hashable:
    return txn.country


def by_day(txn: TransactionRecord) -> Hashable:
    return truncate_to_period(txn.invoice_date, PeriodGranularity.DAY)


def by_month(txn: TransactionRecord) -> Hashable:
    return truncate_to_period(txn.invoice_date, PeriodGranularity.MONTH)


def by_weekday(txn: TransactionRecord) -> Hashable:
    # 0 = Sunday ... 6 = Saturday
    return txn.invoice_date.isoweekday() % 7


def by_hour(txn: TransactionRecord) -> Hashable:
    return txn.invoice_date.hour


def period_key(granularity: PeriodGranularity) -> KeyFunc:
    """Return the key extractor for a calendar granularity."""
    if granularity is PeriodGranularity.DAY:
        return by_day
    if granularity is PeriodGranularity.MONTH:
        return by_month
    raise ValueError(f"Unsupported granularity: {granularity}")  # pragma: no cover


def truncate_to_period(dt: datetime, granularity: PeriodGranularity) -> datetime:
    """Truncate a timestamp to the start of its day or month."""

    if granularity is PeriodGranularity.DAY:
        return dt.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity is PeriodGranularity.MONTH:
        return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    raise ValueError(f"Unsupported granularity: {granularity}")  # pragma: no cover


def _accumulate(
    transactions: Iterable[TransactionRecord],
    key: KeyFunc,
    predicate: Predicate,
) -> dict[Hashable, AggregateAccumulator]:
    """Build partial accumulators for one chunk of transactions.

    Called directly for serial runs and by multiprocessing workers.
    """
    buckets: dict[Hashable, AggregateAccumulator] = {}
    for txn in transactions:
        if not (is_valid_sale(txn) and predicate(txn)):
            continue
        group = key(txn)
        bucket = buckets.get(group)
        if bucket is None:
            bucket = buckets[group] = AggregateAccumulator()
        bucket.add(txn)
    return buckets


def merge_partials(
    partials: Iterable[dict[Hashable, AggregateAccumulator]],
) -> dict[Hashable, AggregateAccumulator]:
    """Merge per-chunk accumulators key by key."""
    merged: dict[Hashable, AggregateAccumulator] = {}
    for partial in partials:
        for group, bucket in partial.items():
            existing = merged.get(group)
            merged[group] = bucket if existing is None else existing.merge(bucket)
    return merged


def aggregate(
    transactions: Sequence[TransactionRecord],
    key: KeyFunc = by_total,
    predicate: Predicate = is_valid_sale,
    parallel: bool = False,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
) -> list[Aggregate]:
    """Aggregate transactions into one record per distinct key.

    Rows must satisfy both ``is_valid_sale`` (quantity > 0 and
    unit_price > 0) and ``predicate`` to contribute; other rows are
    silently excluded.

    **Parallel Processing**: with ``parallel=True`` and more rows than
    ``parallel_threshold``, rows are split into chunks that are accumulated
    in a ``multiprocessing.Pool`` and merged. ``key`` and ``predicate`` must
    then be picklable (module-level functions such as :func:`by_customer`).

    Parameters
    ----------
    transactions:
        Transaction records to aggregate.
    key:
        Grouping key extractor (default: a single group for the whole set).
    predicate:
        Additional row filter, e.g. ``is_customer_sale``.
    parallel:
        Enable chunked parallel aggregation for large inputs.
    parallel_threshold:
        Row count from which the parallel path is taken.
    n_workers:
        Worker process count (default: CPU count).

    Returns
    -------
    list[Aggregate]
        Aggregates sorted by key.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> rows = [
    ...     TransactionRecord("I1", "P1", "MUG", 2, Decimal("5.00"), datetime(2024, 1, 5), "A", "UK"),
    ...     TransactionRecord("I2", "P1", "MUG", -1, Decimal("5.00"), datetime(2024, 1, 6), "A", "UK"),
    ... ]
    >>> [agg.revenue for agg in aggregate(rows, key=by_customer)]
    [Decimal('10.00')]
    """
    use_parallel = parallel and len(transactions) >= parallel_threshold

    if use_parallel:
        workers = max(1, n_workers) if n_workers is not None else (os.cpu_count() or 1)
        rows = list(transactions)
        chunk_size = max(1, len(rows) // workers)
        chunks = [
            (rows[i : i + chunk_size], key, predicate)
            for i in range(0, len(rows), chunk_size)
        ]
        logger.debug(
            "Aggregating %d rows in %d chunks across %d workers",
            len(rows),
            len(chunks),
            workers,
        )
        with multiprocessing.Pool(processes=workers) as pool:
            partials = pool.starmap(_accumulate, chunks)
        buckets = merge_partials(partials)
    else:
        buckets = _accumulate(transactions, key, predicate)

    aggregates = [bucket.finalize(group) for group, bucket in buckets.items()]
    aggregates.sort(key=lambda agg: (agg.key is None, agg.key))
    return aggregates


def summarize(
    transactions: Sequence[TransactionRecord],
    predicate: Predicate = is_valid_sale,
) -> Aggregate:
    """Return the whole-set aggregate.

    An empty filtered set yields zero counts, zero revenue and None averages.
    """
    aggregates = aggregate(transactions, key=by_total, predicate=predicate)
    if aggregates:
        return aggregates[0]
    return AggregateAccumulator().finalize("all")
