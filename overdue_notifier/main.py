"""Overdue Invoice Notifier -- Main Batch Orchestrator.

Runs the monthly overdue invoice job:

    1. Query open invoices due before the first day of the current month
    2. Group them by customer, dropping duplicate (customer, invoice) rows
    3. For each customer: resolve email and sender, render the CSV,
       send one email with the CSV attached
    4. Log a run summary

A failing invoice query aborts the run.  A failing customer is logged and
the loop moves on to the next one.

Usage::

    # From the project root, against an ERP export workbook:
    python -m overdue_notifier.main --xlsx data/erp_export.xlsx

    # Dry run (write .eml files instead of sending):
    python -m overdue_notifier.main --dry-run

    # Re-run as of a specific date:
    python -m overdue_notifier.main --as-of 2024-03-01 --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from .adapters import (
    EmlMessagingService,
    InMemoryDirectory,
    InMemoryInvoiceStore,
    LocalFileService,
    SmtpMessagingService,
)
from .config import NotifierConfig, get_config
from .data_loader import load_workbook
from .dispatcher import NotificationDispatcher
from .exceptions import ConfigurationError, InvoiceQueryError
from .grouping import group_invoices_by_customer
from .invoice_query import as_utc, fetch_overdue_invoices
from .models import RunResult
from .services import DirectoryService, FileService, InvoiceQueryService, MessagingService

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


# ---------------------------------------------------------------------------
# Batch job
# ---------------------------------------------------------------------------

def run_job(
    query: InvoiceQueryService,
    directory: DirectoryService,
    messaging: MessagingService,
    files: FileService,
    *,
    config: NotifierConfig | None = None,
    now: datetime | None = None,
) -> RunResult:
    """Execute one run of the overdue invoice notification job.

    Args:
        query: Invoice query capability.
        directory: Customer / employee lookups.
        messaging: Outbound email.
        files: Attachment creation.
        config: Job configuration.  Defaults to ``get_config()``.
        now: Reference instant.  Defaults to the current UTC time.

    Returns:
        RunResult with counters and one outcome per customer.

    Raises:
        InvoiceQueryError: If the invoice query fails.
    """
    config = config or get_config()
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    result = RunResult(as_of=now, started_at=datetime.now())

    logger.info("Overdue invoice notification run started (as of %s)", now.date())

    invoices = fetch_overdue_invoices(query, now)
    result.rows_fetched = len(invoices)

    grouping = group_invoices_by_customer(invoices, now)
    result.missing_customer_rows = grouping.missing_customer_rows
    result.duplicate_rows = grouping.duplicate_rows
    result.invoice_count = grouping.invoice_count
    result.customer_count = len(grouping.groups)

    if grouping.is_empty:
        logger.info("No overdue invoices found for the previous month.")
        result.completed_at = datetime.now()
        return result

    logger.info("Invoices found: %d overdue invoices", result.invoice_count)
    logger.info("Customers to notify: %d", result.customer_count)

    dispatcher = NotificationDispatcher(directory, messaging, files, config=config)
    result.outcomes = dispatcher.dispatch_all(grouping.groups.values(), now)

    result.completed_at = datetime.now()
    logger.info(
        "Run complete: %d sent, %d skipped, %d failed in %.1f seconds",
        len(result.sent), len(result.skipped), len(result.failed),
        result.duration_seconds,
    )
    return result


# ---------------------------------------------------------------------------
# CLI wiring
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool, log_file: Path | None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def _parse_as_of(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"--as-of must be YYYY-MM-DD, got {value!r}"
        ) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Overdue Invoice Notifier - email each customer their overdue invoices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m overdue_notifier.main\n"
            "  python -m overdue_notifier.main --xlsx data/erp_export.xlsx\n"
            "  python -m overdue_notifier.main --config custom.yaml --dry-run\n"
            "  python -m overdue_notifier.main --as-of 2024-03-01 --verbose\n"
        ),
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: project root config.yaml)",
    )
    parser.add_argument(
        "--xlsx",
        type=str,
        default=None,
        help="Path to the ERP export workbook (overrides config)",
    )
    parser.add_argument(
        "--as-of",
        type=_parse_as_of,
        default=None,
        help="Run as if today were this date (YYYY-MM-DD, UTC)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Write .eml files to the output directory instead of sending",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 = run completed, 1 = fatal error).
    """
    args = build_parser().parse_args(argv)

    try:
        config = get_config(args.config)
    except ConfigurationError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1

    _configure_logging(args.verbose, config.output.resolved_log_file)

    xlsx_path = Path(args.xlsx) if args.xlsx else config.data_files.resolve(
        config.data_files.erp_export_xlsx
    )

    try:
        data = load_workbook(xlsx_path)
        for warning in data.warnings:
            logger.warning(warning)

        directory = InMemoryDirectory(data.customers, data.employees)
        query = InMemoryInvoiceStore(data.invoices)
        files = LocalFileService(config.attachment.resolved_dir)
        if args.dry_run:
            messaging = EmlMessagingService(
                config.output.resolved_eml_dir, directory, config.sender,
            )
        else:
            messaging = SmtpMessagingService(config.smtp, directory, config.sender)

        result = run_job(
            query, directory, messaging, files, config=config, now=args.as_of,
        )
    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("Data error: %s", exc)
        return 1
    except InvoiceQueryError:
        logger.exception("Overdue invoice run aborted")
        return 1

    print()
    print(result.summary())
    if args.dry_run:
        print(f"\n[DRY RUN] .eml files written to {config.output.resolved_eml_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
