"""Product rankings, keyword categories and co-purchase pairs."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from decimal import Decimal
from itertools import combinations
from typing import Callable, Hashable, Literal, Sequence

from commerce_audit.foundation.aggregation import aggregate, by_product
from commerce_audit.foundation.transactions import (
    TransactionRecord,
    filter_transactions,
)

DEFAULT_TOP_PRODUCTS = 10
DEFAULT_BASKET_MIN_COUNT = 50
DEFAULT_TOP_PAIRS = 20
OTHER_CATEGORY = "Other"


def _contains(keyword: str) -> Callable[[str], bool]:
    return lambda description: keyword in description


#: Keyword rules over the lower-cased description; the first match wins.
CATEGORY_RULES: tuple[tuple[Callable[[str], bool], str], ...] = (
    (_contains("bag"), "Bags"),
    (_contains("box"), "Boxes"),
    (_contains("candle"), "Candles"),
    (_contains("christmas"), "Christmas"),
    (_contains("clock"), "Clocks"),
    (_contains("frame"), "Frames"),
    (_contains("heart"), "Heart Items"),
    (_contains("light"), "Lights"),
)


@dataclass(frozen=True)
class ProductSales:
    stock_code: str
    description: str
    total_quantity: int
    total_revenue: Decimal
    order_count: int


@dataclass(frozen=True)
class CategoryPerformance:
    category: str
    product_count: int
    total_revenue: Decimal


@dataclass(frozen=True)
class ProductPair:
    product_a: str
    product_b: str
    times_bought_together: int


def _check_limit(limit: int | None) -> None:
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")


def top_products(
    transactions: Sequence[TransactionRecord],
    by: Literal["revenue", "quantity"] = "revenue",
    limit: int | None = DEFAULT_TOP_PRODUCTS,
) -> list[ProductSales]:
    """Rank (stock_code, description) pairs by revenue or units sold."""
    _check_limit(limit)
    if by not in ("revenue", "quantity"):
        raise ValueError(f"by must be 'revenue' or 'quantity', got {by!r}")

    products = [
        ProductSales(
            stock_code=product.key[0],
            description=product.key[1],
            total_quantity=product.total_quantity,
            total_revenue=product.revenue,
            order_count=product.order_count,
        )
        for product in aggregate(transactions, key=by_product)
    ]
    if by == "revenue":
        products.sort(key=lambda p: (-p.total_revenue, p.stock_code, p.description))
    else:
        products.sort(key=lambda p: (-p.total_quantity, p.stock_code, p.description))
    return products[:limit]


def categorize(description: str) -> str:
    """Return the category label for a product description.

    Examples
    --------
    >>> categorize("RED HEART CANDLE HOLDER")
    'Candles'
    >>> categorize("WHITE METAL LANTERN")
    'Other'
    """
    lowered = description.lower()
    for matches, label in CATEGORY_RULES:
        if matches(lowered):
            return label
    return OTHER_CATEGORY


def by_category(txn: TransactionRecord) -> Hashable:
    return categorize(txn.description)


def category_performance(
    transactions: Sequence[TransactionRecord],
) -> list[CategoryPerformance]:
    """Distinct products and revenue per keyword category, highest revenue first."""
    categories = [
        CategoryPerformance(
            category=category.key,
            product_count=category.product_count,
            total_revenue=category.revenue,
        )
        for category in aggregate(transactions, key=by_category)
    ]
    categories.sort(key=lambda c: (-c.total_revenue, c.category))
    return categories


def frequently_bought_together(
    transactions: Sequence[TransactionRecord],
    more_than: int = DEFAULT_BASKET_MIN_COUNT,
    limit: int | None = DEFAULT_TOP_PAIRS,
) -> list[ProductPair]:
    """Count product pairs appearing on the same invoice.

    Each invoice contributes a pair at most once. Pairs are oriented by
    stock code (``product_a`` has the lower code) and keyed by description;
    only pairs seen on more than ``more_than`` invoices are returned.
    """
    _check_limit(limit)

    baskets: dict[str, set[tuple[str, str]]] = defaultdict(set)
    for txn in filter_transactions(transactions):
        baskets[txn.invoice_no].add((txn.stock_code, txn.description))

    pair_counts: Counter[tuple[str, str]] = Counter()
    for items in baskets.values():
        for (code_a, desc_a), (code_b, desc_b) in combinations(sorted(items), 2):
            if code_a < code_b:
                pair_counts[(desc_a, desc_b)] += 1

    pairs = [
        ProductPair(product_a=a, product_b=b, times_bought_together=count)
        for (a, b), count in pair_counts.items()
        if count > more_than
    ]
    pairs.sort(key=lambda p: (-p.times_bought_together, p.product_a, p.product_b))
    return pairs[:limit]
