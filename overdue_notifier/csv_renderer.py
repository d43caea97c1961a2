"""CSV attachment rendering.

One header row, then one row per invoice in group order.  Amounts are
written with ``str(Decimal)`` so no currency symbol or thousands separator
is added.  Quoting is left to the csv module's minimal mode, which quotes
only fields that contain the delimiter, a quote or a newline (in practice
only customer names).
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Sequence
from datetime import datetime

from .models import DEFAULT_CUSTOMER_NAME, InvoiceSummary

INVOICE_HEADER = ["Invoice Number", "Amount", "Days Overdue"]
CUSTOMER_HEADER = ["Customer Name", "Customer Email"]

DEFAULT_FILENAME_PREFIX = "Overdue_Invoices"
_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]+")


def csv_header(include_customer_columns: bool = False) -> list[str]:
    if include_customer_columns:
        return INVOICE_HEADER + CUSTOMER_HEADER
    return list(INVOICE_HEADER)


def render_invoice_csv(
    invoices: Sequence[InvoiceSummary],
    customer_name: str | None = None,
    customer_email: str | None = None,
    include_customer_columns: bool = False,
) -> str:
    """Render a customer's overdue invoices as CSV text.

    Args:
        invoices: The customer's invoice summaries, already de-duplicated.
        customer_name: Written on every row when customer columns are on.
        customer_email: Written on every row when customer columns are on.
        include_customer_columns: Append name and email columns.

    Returns:
        CSV text with ``\\n`` line endings, header first.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(csv_header(include_customer_columns))

    for inv in invoices:
        row = [inv.invoice_number, str(inv.amount), inv.days_overdue]
        if include_customer_columns:
            row += [customer_name or "", customer_email or ""]
        writer.writerow(row)

    return buf.getvalue()


def safe_filename_part(name: str) -> str:
    """Collapse every run of non-alphanumeric characters to ``_``.

    >>> safe_filename_part("Acme, Inc. (East)")
    'Acme_Inc_East'
    """
    cleaned = _UNSAFE_CHARS.sub("_", name or "").strip("_")
    return cleaned or DEFAULT_CUSTOMER_NAME


def build_attachment_filename(
    customer_name: str,
    timestamp: datetime | None = None,
    prefix: str = DEFAULT_FILENAME_PREFIX,
) -> str:
    """File name for a customer's CSV, e.g. ``Overdue_Invoices_Acme_Inc.csv``.

    When ``timestamp`` is given it is appended:
    ``Overdue_Invoices_Acme_Inc_20240301_060000.csv``.  Names are not unique
    per customer; ``LocalFileService`` numbers any that collide on disk.
    """
    stem = f"{prefix}_{safe_filename_part(customer_name)}"
    if timestamp is not None:
        stem = f"{stem}_{timestamp.strftime(_TIMESTAMP_FORMAT)}"
    return f"{stem}.csv"
