"""Revenue by country."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from commerce_audit.foundation.aggregation import aggregate, by_country
from commerce_audit.foundation.transactions import TransactionRecord

DEFAULT_TOP_COUNTRIES = 15
DEFAULT_TOP_SHARES = 10
PERCENTAGE_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class CountryRevenue:
    """Sales figures for one country.

    ``avg_line_value`` averages invoice-line totals, not whole orders.
    """

    country: str
    customer_count: int
    order_count: int
    total_revenue: Decimal
    avg_line_value: Decimal | None


@dataclass(frozen=True)
class CountryShare:
    country: str
    revenue: Decimal
    pct_of_total: Decimal | None


def _check_limit(limit: int | None) -> None:
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")


def revenue_by_country(
    transactions: Sequence[TransactionRecord],
    limit: int | None = DEFAULT_TOP_COUNTRIES,
) -> list[CountryRevenue]:
    """Top countries by revenue."""
    _check_limit(limit)
    countries = [
        CountryRevenue(
            country=country.key,
            customer_count=country.customer_count,
            order_count=country.order_count,
            total_revenue=country.revenue,
            avg_line_value=country.avg_line_value,
        )
        for country in aggregate(transactions, key=by_country)
    ]
    countries.sort(key=lambda c: (-c.total_revenue, c.country))
    return countries[:limit]


def country_revenue_share(
    transactions: Sequence[TransactionRecord],
    limit: int | None = DEFAULT_TOP_SHARES,
) -> list[CountryShare]:
    """Top countries with their share of total revenue across all countries."""
    _check_limit(limit)
    countries = aggregate(transactions, key=by_country)
    total = sum((country.revenue for country in countries), Decimal("0"))

    shares = [
        CountryShare(
            country=country.key,
            revenue=country.revenue,
            pct_of_total=(
                (country.revenue * 100 / total).quantize(
                    PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP
                )
                if total
                else None
            ),
        )
        for country in countries
    ]
    shares.sort(key=lambda s: (-s.revenue, s.country))
    return shares[:limit]
