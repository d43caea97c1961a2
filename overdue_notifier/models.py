"""Data models for the overdue invoice notifier.

All models are plain dataclasses with type hints.  Everything here is
built fresh at the start of a run and discarded at the end; nothing is
persisted except the CSV files handed to the messaging service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


# Placeholder display name when a customer has neither company nor first name.
DEFAULT_CUSTOMER_NAME = "Customer"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DispatchStatus(Enum):
    """Final state of one customer's notification."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(Enum):
    """Why a customer group was excluded from dispatch."""

    NO_CUSTOMER_EMAIL = "Customer record has no email address"


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Invoice:
    """A single open invoice row as returned by the invoice query.

    ``customer_id`` may be None when the source row has no customer; such
    rows are dropped during grouping.
    """

    customer_id: str | None
    invoice_number: str
    amount: Decimal
    due_date: date
    sales_rep_id: str | None = None


@dataclass(frozen=True)
class InvoiceSummary:
    """Per-customer view of one overdue invoice."""

    invoice_number: str
    amount: Decimal
    due_date: date
    days_overdue: int


# ---------------------------------------------------------------------------
# Directory records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CustomerRecord:
    """Customer fields read from the directory service."""

    customer_id: str
    company_name: str = ""
    first_name: str = ""
    email: str = ""
    sales_rep_id: str | None = None

    @property
    def display_name(self) -> str:
        """Company name, else first name, else the generic placeholder."""
        return self.company_name or self.first_name or DEFAULT_CUSTOMER_NAME


@dataclass(frozen=True)
class EmployeeRecord:
    """Employee (sales rep) fields read from the directory service."""

    employee_id: str
    email: str = ""
    name: str = ""


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

@dataclass
class CustomerGroup:
    """All overdue invoices for one customer, in query order.

    ``customer_name``, ``customer_email`` and ``sales_rep_id`` are empty
    until the group is resolved against the directory.
    """

    customer_id: str
    invoices: list[InvoiceSummary] = field(default_factory=list)
    customer_name: str = ""
    customer_email: str = ""
    sales_rep_id: str | None = None

    def add_invoice(self, summary: InvoiceSummary) -> None:
        self.invoices.append(summary)

    @property
    def invoice_numbers(self) -> list[str]:
        return [inv.invoice_number for inv in self.invoices]

    @property
    def total_amount(self) -> Decimal:
        return sum((inv.amount for inv in self.invoices), Decimal("0"))

    @property
    def has_email(self) -> bool:
        return bool(self.customer_email)


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SenderChoice:
    """The "From" actor for a customer's email.

    Either the sales rep's id or the configured administrator sentinel.
    """

    sender_id: str
    is_fallback: bool = False
    reason: str = ""


@dataclass(frozen=True)
class FileHandle:
    """A created file, usable as an email attachment."""

    name: str
    mime_type: str
    content: str
    path: str | None = None


@dataclass
class OutgoingEmail:
    """One email handed to the messaging service."""

    sender_id: str
    recipient: str
    subject: str
    body: str
    attachments: list[FileHandle] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Run results
# ---------------------------------------------------------------------------

@dataclass
class CustomerOutcome:
    """What happened to one customer group during dispatch."""

    customer_id: str
    status: DispatchStatus
    customer_name: str = ""
    recipient: str = ""
    sender: SenderChoice | None = None
    invoice_count: int = 0
    attachment_name: str = ""
    error_message: str = ""
    skip_reason: SkipReason | None = None

    @property
    def is_sent(self) -> bool:
        return self.status is DispatchStatus.SENT


@dataclass
class RunResult:
    """Audit record for a full batch run."""

    as_of: datetime | None = None
    rows_fetched: int = 0
    missing_customer_rows: int = 0
    duplicate_rows: int = 0
    invoice_count: int = 0
    customer_count: int = 0
    outcomes: list[CustomerOutcome] = field(default_factory=list)

    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def sent(self) -> list[CustomerOutcome]:
        return [o for o in self.outcomes if o.status is DispatchStatus.SENT]

    @property
    def skipped(self) -> list[CustomerOutcome]:
        return [o for o in self.outcomes if o.status is DispatchStatus.SKIPPED]

    @property
    def failed(self) -> list[CustomerOutcome]:
        return [o for o in self.outcomes if o.status is DispatchStatus.FAILED]

    @property
    def emails_sent(self) -> int:
        return len(self.sent)

    @property
    def duration_seconds(self) -> float:
        """Run time in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines = [
            f"Overdue invoice run: {self.as_of.date() if self.as_of else 'n/a'}",
            f"  Rows fetched          : {self.rows_fetched}",
            f"  Rows without customer : {self.missing_customer_rows}",
            f"  Duplicate rows        : {self.duplicate_rows}",
            f"  Overdue invoices      : {self.invoice_count}",
            f"  Customers             : {self.customer_count}",
            f"  Emails sent           : {len(self.sent)}",
            f"  Skipped               : {len(self.skipped)}",
            f"  Failed                : {len(self.failed)}",
        ]
        for outcome in self.failed:
            lines.append(f"    ! {outcome.customer_id}: {outcome.error_message}")
        return "\n".join(lines)
