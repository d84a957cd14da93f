"""Transaction record definitions and validation utilities.

The transaction contract captures the line-item shape every downstream
analysis relies on: an invoice line with product, quantity, price,
timestamp, optional customer and country. Raw rows are validated into
immutable :class:`TransactionRecord` instances once, then filtered through
predicates so returns and price adjustments never reach revenue totals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class TransactionRecord:
    """A single invoice line from the transaction log.

    Attributes
    ----------
    invoice_no:
        Invoice (order) identifier. One invoice may span many lines.
    stock_code:
        Product code.
    description:
        Free-text product description.
    quantity:
        Units on the line. Negative values denote returns.
    unit_price:
        Price per unit. Zero or negative values denote adjustments.
    invoice_date:
        Timestamp of the invoice.
    customer_id:
        Customer identifier, or None for guest/unattributed lines.
    country:
        Country of the customer placing the order.
    """

    invoice_no: str
    stock_code: str
    description: str
    quantity: int
    unit_price: Decimal
    invoice_date: datetime
    customer_id: str | None = None
    country: str = ""

    @property
    def line_total(self) -> Decimal:
        """Return quantity × unit_price for the line."""
        return self.unit_price * self.quantity


def is_valid_sale(txn: TransactionRecord) -> bool:
    """Return True if the line is a sale: positive quantity and price."""
    return txn.quantity > 0 and txn.unit_price > 0


def is_customer_sale(txn: TransactionRecord) -> bool:
    """Return True for valid sales attributed to a known customer."""
    return is_valid_sale(txn) and txn.customer_id is not None


def filter_transactions(
    transactions: Iterable[TransactionRecord],
    predicate=is_valid_sale,
) -> list[TransactionRecord]:
    """Return the filtered view of ``transactions``.

    Rows failing ``is_valid_sale`` are always excluded, whatever predicate
    is supplied.
    """
    return [txn for txn in transactions if is_valid_sale(txn) and predicate(txn)]


def to_naive_utc(value: datetime) -> datetime:
    """Return ``value`` as a naive UTC datetime (naive values pass through).

    Mixing aware and naive timestamps makes comparisons raise ``TypeError``;
    boundary code normalises every timestamp with this helper.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def max_invoice_date(transactions: Sequence[TransactionRecord]) -> datetime | None:
    """Return the latest invoice_date in the dataset (None when empty)."""
    if not transactions:
        return None
    return max(txn.invoice_date for txn in transactions)


class TransactionContract:
    """Validate raw transaction rows into canonical records."""

    #: Fields that must be present on every raw row.
    REQUIRED_FIELDS = ("invoice_no", "stock_code", "quantity", "unit_price", "invoice_date")

    def validate_records(
        self, records: Iterable[Mapping[str, Any]]
    ) -> list[TransactionRecord]:
        """Validate raw rows and return canonical transaction records.

        Parameters
        ----------
        records:
            Iterable of raw dictionaries. ``invoice_date`` may be a datetime
            or an ISO 8601 string; timezone-aware values are converted
            to naive UTC. ``customer_id`` may be missing, None or blank, all
            of which are normalised to None.

        Raises
        ------
        ValueError
            If a required field is missing or a numeric field cannot be parsed.
        TypeError
            If ``invoice_date`` is neither a datetime nor a string.
        """

        canonical: list[TransactionRecord] = []
        for idx, record in enumerate(records):
            missing = [
                name
                for name in self.REQUIRED_FIELDS
                if name not in record or record[name] is None
            ]
            if missing:
                raise ValueError(
                    "Record missing required transaction fields",
                    {"missing_fields": missing, "record_index": idx},
                )

            invoice_date = record["invoice_date"]
            if isinstance(invoice_date, str):
                try:
                    invoice_date = datetime.fromisoformat(
                        invoice_date.replace("Z", "+00:00")
                    )
                except ValueError as exc:
                    raise ValueError(
                        f"Record {idx}: failed to parse invoice_date: {invoice_date}"
                    ) from exc
            elif not isinstance(invoice_date, datetime):
                raise TypeError(
                    "invoice_date must be a datetime instance or ISO string",
                    {"record_index": idx, "value": invoice_date},
                )
            invoice_date = to_naive_utc(invoice_date)

            try:
                quantity = int(record["quantity"])
                unit_price = Decimal(str(record["unit_price"]))
            except (ValueError, TypeError, InvalidOperation) as exc:
                raise ValueError(
                    f"Record {idx}: quantity/unit_price must be numeric",
                    {"quantity": record["quantity"], "unit_price": record["unit_price"]},
                ) from exc

            canonical.append(
                TransactionRecord(
                    invoice_no=str(record["invoice_no"]),
                    stock_code=str(record["stock_code"]),
                    description=str(record.get("description") or ""),
                    quantity=quantity,
                    unit_price=unit_price,
                    invoice_date=invoice_date,
                    customer_id=normalise_customer_id(record.get("customer_id")),
                    country=str(record.get("country") or ""),
                )
            )
        return canonical

    def to_serialisable(
        self, transactions: Iterable[TransactionRecord]
    ) -> list[dict[str, Any]]:
        """Convert records into JSON-serialisable dictionaries."""

        return [
            {
                "invoice_no": txn.invoice_no,
                "stock_code": txn.stock_code,
                "description": txn.description,
                "quantity": txn.quantity,
                "unit_price": str(txn.unit_price),
                "invoice_date": txn.invoice_date.isoformat(),
                "customer_id": txn.customer_id,
                "country": txn.country,
            }
            for txn in transactions
        ]


def normalise_customer_id(value: Any) -> str | None:
    """Return a canonical customer id, or None when absent.

    Numeric ids exported from spreadsheets (``17850.0``) are normalised to
    their integer form (``"17850"``).
    """
    if value is None:
        return None
    if isinstance(value, float):
        if value != value:  # NaN
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return None
    return text
