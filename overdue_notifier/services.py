"""Capability interfaces for the systems the batch job talks to.

The job never touches the ERP, mail transport or file storage directly.
It depends only on these four protocols, which keeps the batch logic
testable with the in-memory implementations in ``adapters``.

    InvoiceQueryService  -- open invoices due before the current month
    DirectoryService     -- customer and employee lookups
    MessagingService     -- outbound email
    FileService          -- attachment creation
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Protocol

from .models import (
    CustomerRecord,
    EmployeeRecord,
    FileHandle,
    Invoice,
    OutgoingEmail,
)

CSV_MIME_TYPE = "text/csv"


class InvoiceQueryService(Protocol):
    def query_open_overdue_invoices(self, as_of: date) -> Iterable[Invoice]:
        """Return open invoices due strictly before the first day of
        ``as_of``'s month, in the source's natural order."""
        ...


class DirectoryService(Protocol):
    def lookup_customer(self, customer_id: str) -> CustomerRecord:
        """Raises RecordNotFoundError for an unknown id."""
        ...

    def lookup_employee(self, employee_id: str) -> EmployeeRecord:
        """Raises RecordNotFoundError for an unknown id."""
        ...


class MessagingService(Protocol):
    def send_email(self, email: OutgoingEmail) -> None:
        """Send one email.  Raises DeliveryError on failure."""
        ...


class FileService(Protocol):
    def create_file(
        self,
        name: str,
        content: str,
        mime_type: str = CSV_MIME_TYPE,
    ) -> FileHandle:
        """Create a file usable as an attachment.  Raises AttachmentError."""
        ...
