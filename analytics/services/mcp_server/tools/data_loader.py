"""Data loading tool: read a transaction file into shared state."""

import os
from pathlib import Path

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.state import (
    TRANSACTIONS_KEY,
    TRANSACTIONS_METADATA_KEY,
    get_shared_state,
)
from commerce_audit.cli import load_transactions as load_transaction_file
from commerce_audit.foundation.transactions import is_valid_sale, max_invoice_date

logger = structlog.get_logger(__name__)


def allowed_base_dir() -> Path:
    """Directory tool file loads are confined to.

    Defaults to the current working directory; override with the
    ``COMMERCE_AUDIT_DATA_DIR`` environment variable.
    """
    return Path(os.environ.get("COMMERCE_AUDIT_DATA_DIR", os.getcwd())).resolve()


class LoadTransactionsRequest(BaseModel):
    """Request to load transaction data from file."""

    file_path: str = Field(
        description="Path to a JSON or CSV transaction file (relative to the data directory or absolute)",
    )
    limit: int | None = Field(
        default=None,
        ge=1,
        description="Optional limit on number of transaction lines to keep",
    )


class LoadTransactionsResponse(BaseModel):
    """Summary of the loaded transaction data."""

    total_count: int
    loaded_count: int
    valid_sale_count: int
    customer_count: int
    file_path: str
    message: str
    date_range: tuple[str, str] | None = None


async def _load_transactions_impl(
    request: LoadTransactionsRequest, ctx: Context
) -> LoadTransactionsResponse:
    """Implementation of transaction loading logic."""
    base_dir = allowed_base_dir()
    file_path = Path(request.file_path)
    if not file_path.is_absolute():
        file_path = base_dir / file_path

    resolved_path = file_path.resolve()
    try:
        resolved_path.relative_to(base_dir)
    except ValueError as e:
        raise ValueError(
            f"Path {resolved_path} is outside allowed directory {base_dir}. "
            f"Only files within the allowed directory can be loaded."
        ) from e

    if not resolved_path.exists():
        raise FileNotFoundError(f"Transaction file not found: {resolved_path}")

    await ctx.info(f"Loading transactions from {resolved_path.name}")
    transactions = load_transaction_file(resolved_path)
    total_count = len(transactions)

    if request.limit is not None:
        transactions = transactions[: request.limit]
        message = (
            f"Loaded {len(transactions)} of {total_count} transaction lines "
            f"from {resolved_path.name}"
        )
    else:
        message = f"Loaded {total_count} transaction lines from {resolved_path.name}"

    valid_count = sum(1 for txn in transactions if is_valid_sale(txn))
    customer_count = len({txn.customer_id for txn in transactions if txn.customer_id})
    date_range = None
    if transactions:
        first = min(txn.invoice_date for txn in transactions)
        date_range = (first.isoformat(), max_invoice_date(transactions).isoformat())

    shared_state = get_shared_state()
    shared_state.invalidate_derived()
    shared_state.set(TRANSACTIONS_KEY, transactions)
    shared_state.set(
        TRANSACTIONS_METADATA_KEY,
        {
            "file_path": str(resolved_path),
            "loaded_count": len(transactions),
            "date_range": date_range,
        },
    )

    logger.info(
        "transactions_loaded",
        file_path=str(resolved_path),
        loaded_count=len(transactions),
        excluded_count=len(transactions) - valid_count,
    )

    return LoadTransactionsResponse(
        total_count=total_count,
        loaded_count=len(transactions),
        valid_sale_count=valid_count,
        customer_count=customer_count,
        file_path=str(resolved_path),
        message=message,
        date_range=date_range,
    )


@mcp.tool()
async def load_transactions(
    request: LoadTransactionsRequest, ctx: Context
) -> LoadTransactionsResponse:
    """Load invoice lines from a JSON or CSV file.

    CSV files may use the UCI Online Retail headers (InvoiceNo, StockCode,
    Description, Quantity, InvoiceDate, UnitPrice, CustomerID, Country).
    Loading a new file discards results computed from the previous one.

    Examples:
        load_transactions(file_path="online_retail.csv")
        load_transactions(file_path="orders.json", limit=1000)
    """
    return await _load_transactions_impl(request, ctx)
