"""Overdue Invoice Notifier.

Monthly batch job: query open invoices due before the current month, group
them by customer, and email each customer a CSV of their overdue invoices
from their sales rep (or the administrator when the rep cannot send).

The job talks to the outside world only through the capability protocols
in ``services``, so it can be driven by the ERP's web services, an XLSX
export, or in-memory fakes.
"""

from .exceptions import (
    AttachmentError,
    ConfigurationError,
    DeliveryError,
    InvoiceQueryError,
    OverdueNotifierError,
    RecordNotFoundError,
)
from .models import (
    CustomerGroup,
    CustomerOutcome,
    CustomerRecord,
    DispatchStatus,
    EmployeeRecord,
    FileHandle,
    Invoice,
    InvoiceSummary,
    OutgoingEmail,
    RunResult,
    SenderChoice,
    SkipReason,
)
from .main import run_job

__all__ = [
    "AttachmentError",
    "ConfigurationError",
    "CustomerGroup",
    "CustomerOutcome",
    "CustomerRecord",
    "DeliveryError",
    "DispatchStatus",
    "EmployeeRecord",
    "FileHandle",
    "Invoice",
    "InvoiceQueryError",
    "InvoiceSummary",
    "OutgoingEmail",
    "OverdueNotifierError",
    "RecordNotFoundError",
    "RunResult",
    "SenderChoice",
    "SkipReason",
    "run_job",
]
