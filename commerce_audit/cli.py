"""Command line entry points for the commerce audit toolkit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from commerce_audit.config import ReportConfig
from commerce_audit.exports import export_report_csv, export_report_json, rows_to_records
from commerce_audit.foundation.aggregation import DEFAULT_PARALLEL_THRESHOLD
from commerce_audit.foundation.segments import run_rfm_pipeline
from commerce_audit.foundation.transactions import TransactionContract, TransactionRecord
from commerce_audit.pandas.reports import report_to_dataframe
from commerce_audit.pandas.transactions import read_transactions_csv
from commerce_audit.reports.registry import available_reports, run_report

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB JSON cap to avoid accidental OOM


def load_transactions(path: Path) -> list[TransactionRecord]:
    """Load and validate transactions from a JSON list or a CSV file.

    The size cap applies to JSON only, which is parsed in one piece; CSV
    files such as the full UCI export go through pandas.

    Raises
    ------
    ValueError
        If a JSON file exceeds ``MAX_INPUT_BYTES`` or the file holds invalid rows.
    """
    resolved = path.resolve()
    if resolved.suffix.lower() == ".csv":
        return read_transactions_csv(resolved)

    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )

    with resolved.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, list):
        raise ValueError("Expected a list of transactions in the input file")
    return TransactionContract().validate_records(payload)


def _resolve_output(path: Path) -> Path:
    output_path = path.resolve()
    cwd = Path.cwd().resolve()
    try:
        output_path.relative_to(cwd)
    except ValueError:
        raise ValueError(
            f"Output path {output_path} must reside within the current working directory"
        )
    return output_path


def _parse_date(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value.replace("Z", "+00:00")) if value else None


def _add_parallel_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--parallel",
        action="store_true",
        help="Aggregate customers across worker processes",
    )
    parser.add_argument(
        "--parallel-threshold",
        type=int,
        default=DEFAULT_PARALLEL_THRESHOLD,
        help=f"Row count from which --parallel fans out (default: {DEFAULT_PARALLEL_THRESHOLD})",
    )
    parser.add_argument(
        "--workers", type=int, help="Worker process count (default: CPU count)"
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def report_cli(argv: list[str] | None = None) -> int:
    """Run a named report over a transaction file.

    Results go to ``--output`` as JSON or CSV, or to stdout as JSON when no
    output path is given.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 for invalid input)
    """
    parser = argparse.ArgumentParser(description="Run an e-commerce analytics report")
    parser.add_argument(
        "input", type=Path, help="Path to a JSON or CSV file with invoice lines"
    )
    parser.add_argument(
        "--report",
        choices=available_reports(),
        default="business_summary",
        help="Report to run (default: business_summary)",
    )
    parser.add_argument("--output", type=Path, help="Optional output file path")
    parser.add_argument(
        "--format",
        choices=["json", "csv"],
        default="json",
        help="Output format when --output is given (default: json)",
    )
    parser.add_argument(
        "--reference-date",
        type=str,
        help="Recency anchor for RFM reports (ISO format). Defaults to the latest invoice date.",
    )
    parser.add_argument(
        "--rolling-window",
        type=int,
        default=7,
        help="Trailing window for rolling metrics (default: 7)",
    )
    _add_parallel_arguments(parser)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )

    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        config = ReportConfig(
            reference_date=_parse_date(args.reference_date),
            rolling_window=args.rolling_window,
            parallel=args.parallel,
            parallel_threshold=args.parallel_threshold,
            n_workers=args.workers,
        )
        logger.info(f"Loading transactions from {args.input}")
        transactions = load_transactions(args.input)
        logger.info(f"Running {args.report} over {len(transactions)} transaction lines")
        rows = run_report(args.report, transactions, config)

        if args.output:
            output_path = _resolve_output(args.output)
            if args.format == "csv":
                export_report_csv(rows, output_path)
            else:
                export_report_json(
                    rows, output_path, args.report, metadata={"source": str(args.input)}
                )
        else:  # stdout fallback enables piping in shell usage.
            json.dump(rows_to_records(rows), fp=sys.stdout, indent=2)
            print()
    except (ValueError, TypeError, OSError) as exc:
        logger.error(f"Report {args.report} failed: {exc}")
        return 1

    return 0


def rfm_cli(argv: list[str] | None = None) -> int:
    """Segment customers by RFM and export the per-customer table to CSV.

    The segment summary is logged; the CSV holds one row per customer with
    recency, frequency, monetary, the three scores and the segment.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 for invalid input or no customers)
    """
    parser = argparse.ArgumentParser(description="Segment customers by RFM scores")
    parser.add_argument(
        "input", type=Path, help="Path to a JSON or CSV file with invoice lines"
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Path for the output CSV with per-customer segments",
    )
    parser.add_argument(
        "--reference-date",
        type=str,
        help="Recency anchor (ISO format). Defaults to the latest invoice date.",
    )
    parser.add_argument(
        "--bucket-count",
        type=int,
        default=5,
        help="Number of NTILE buckets per dimension (default: 5)",
    )
    _add_parallel_arguments(parser)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )

    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        config = ReportConfig(
            reference_date=_parse_date(args.reference_date),
            bucket_count=args.bucket_count,
            parallel=args.parallel,
            parallel_threshold=args.parallel_threshold,
            n_workers=args.workers,
        )
        transactions = load_transactions(args.input)
        analysis = run_rfm_pipeline(
            transactions,
            config.reference_date,
            bucket_count=config.bucket_count,
            parallel=config.parallel,
            parallel_threshold=config.parallel_threshold,
            n_workers=config.n_workers,
        )
        if not analysis.assignments:
            logger.error("No customer sales found in input file")
            return 1

        output_path = _resolve_output(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        report_to_dataframe(analysis.assignments).to_csv(output_path, index=False)
    except (ValueError, TypeError, OSError) as exc:
        logger.error(f"RFM segmentation failed: {exc}")
        return 1

    logger.info(f"Customer segments exported to {output_path}")
    for summary in analysis.summary:
        logger.info(
            f"{summary.segment.value}: {summary.customer_count} customers "
            f"({summary.pct_customers}%), revenue {summary.total_revenue}"
        )

    return 0


def main() -> None:
    raise SystemExit(report_cli())


def rfm_main() -> None:
    raise SystemExit(rfm_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
