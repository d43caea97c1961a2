"""Customer grouping.

Folds the flat invoice query result into one ``CustomerGroup`` per
customer.  Joined search columns can return the same invoice more than
once, so rows are de-duplicated on (customer id, invoice number) before
they reach a group.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from .invoice_query import compute_days_overdue
from .models import CustomerGroup, Invoice, InvoiceSummary

logger = logging.getLogger(__name__)


@dataclass
class GroupingResult:
    """Groups keyed by customer id, in first-seen order, plus row counters."""

    groups: dict[str, CustomerGroup] = field(default_factory=dict)
    rows_seen: int = 0
    missing_customer_rows: int = 0
    duplicate_rows: int = 0

    @property
    def invoice_count(self) -> int:
        return sum(len(g.invoices) for g in self.groups.values())

    @property
    def is_empty(self) -> bool:
        return not self.groups


def summarize_invoice(invoice: Invoice, now: datetime) -> InvoiceSummary:
    """Build the per-customer summary of one invoice row."""
    return InvoiceSummary(
        invoice_number=invoice.invoice_number,
        amount=invoice.amount,
        due_date=invoice.due_date,
        days_overdue=compute_days_overdue(invoice.due_date, now),
    )


def group_invoices_by_customer(
    invoices: Iterable[Invoice],
    now: datetime,
) -> GroupingResult:
    """Group invoice rows by customer id.

    Args:
        invoices: Rows from the invoice query, in query order.
        now: Reference instant for days-overdue.

    Returns:
        GroupingResult.  Rows without a customer id are counted and
        skipped; repeated (customer id, invoice number) pairs are counted
        and dropped.
    """
    result = GroupingResult()
    seen: set[tuple[str, str]] = set()

    for invoice in invoices:
        result.rows_seen += 1

        customer_id = invoice.customer_id
        if not customer_id:
            result.missing_customer_rows += 1
            logger.warning(
                "Skipping invoice %s with no customer id", invoice.invoice_number,
            )
            continue

        key = (customer_id, invoice.invoice_number)
        if key in seen:
            result.duplicate_rows += 1
            logger.debug(
                "Duplicate row for customer %s invoice %s dropped",
                customer_id, invoice.invoice_number,
            )
            continue
        seen.add(key)

        summary = summarize_invoice(invoice, now)
        group = result.groups.get(customer_id)
        if group is None:
            group = CustomerGroup(customer_id=customer_id)
            result.groups[customer_id] = group
        group.add_invoice(summary)

        logger.debug(
            "Invoice found: customer %s, invoice %s, amount %s, %d days overdue",
            customer_id, invoice.invoice_number, invoice.amount,
            summary.days_overdue,
        )

    return result
