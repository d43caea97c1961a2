"""
Overdue Invoice Notifier -- Service Adapters

Concrete implementations of the capability protocols in ``services``:

    InMemoryInvoiceStore   -- invoice query over loaded rows
    InMemoryDirectory      -- customer / employee lookups over loaded records
    InMemoryFileService    -- attachments kept in memory
    InMemoryMessagingService -- outbox list, nothing leaves the process
    LocalFileService       -- attachments written to the attachment directory
    SmtpMessagingService   -- SMTP / STARTTLS delivery
    EmlMessagingService    -- dry-run delivery: one .eml file per email

The in-memory classes back the XLSX-driven CLI run and double as test fakes.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
import uuid
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate
from pathlib import Path

from .config import SenderConfig, SMTPSettings
from .csv_renderer import safe_filename_part
from .exceptions import AttachmentError, DeliveryError, RecordNotFoundError
from .invoice_query import is_overdue
from .models import (
    CustomerRecord,
    EmployeeRecord,
    FileHandle,
    Invoice,
    OutgoingEmail,
)
from .services import CSV_MIME_TYPE, DirectoryService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# In-memory services
# ---------------------------------------------------------------------------

class InMemoryInvoiceStore:
    """Invoice query over a list of open invoice rows.

    Rows are assumed to be open already (the loader drops closed ones);
    only the due-date cutoff is applied here.
    """

    def __init__(self, invoices: Iterable[Invoice]) -> None:
        self.invoices = list(invoices)

    def query_open_overdue_invoices(self, as_of: date) -> list[Invoice]:
        return [inv for inv in self.invoices if is_overdue(inv.due_date, as_of)]


class InMemoryDirectory:
    """Customer and employee lookups over dicts keyed by id."""

    def __init__(
        self,
        customers: Mapping[str, CustomerRecord] | None = None,
        employees: Mapping[str, EmployeeRecord] | None = None,
    ) -> None:
        self.customers = dict(customers or {})
        self.employees = dict(employees or {})

    def lookup_customer(self, customer_id: str) -> CustomerRecord:
        try:
            return self.customers[str(customer_id)]
        except KeyError:
            raise RecordNotFoundError("customer", str(customer_id)) from None

    def lookup_employee(self, employee_id: str) -> EmployeeRecord:
        try:
            return self.employees[str(employee_id)]
        except KeyError:
            raise RecordNotFoundError("employee", str(employee_id)) from None


class InMemoryFileService:
    """Keeps created files in ``self.files``."""

    def __init__(self) -> None:
        self.files: list[FileHandle] = []

    def create_file(
        self,
        name: str,
        content: str,
        mime_type: str = CSV_MIME_TYPE,
    ) -> FileHandle:
        handle = FileHandle(name=name, mime_type=mime_type, content=content)
        self.files.append(handle)
        return handle


class InMemoryMessagingService:
    """Appends every email to ``self.outbox``."""

    def __init__(self) -> None:
        self.outbox: list[OutgoingEmail] = []

    def send_email(self, email: OutgoingEmail) -> None:
        self.outbox.append(email)


# ---------------------------------------------------------------------------
# Local file storage
# ---------------------------------------------------------------------------

class LocalFileService:
    """Writes attachments into ``output_dir`` and returns handles with paths.

    Existing files are never overwritten.  When ``name`` is taken the file
    is written as ``<stem>_2<suffix>``, ``<stem>_3<suffix>`` and so on, and
    the returned handle carries the name actually used.
    """

    max_attempts = 1000

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def create_file(
        self,
        name: str,
        content: str,
        mime_type: str = CSV_MIME_TYPE,
    ) -> FileHandle:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self._write_new(name, content)
        except OSError as exc:
            raise AttachmentError(
                f"Could not write {self.output_dir / name}: {exc}"
            ) from exc
        logger.debug("Wrote attachment %s (%d bytes)", path, len(content))
        return FileHandle(
            name=path.name, mime_type=mime_type, content=content, path=str(path),
        )

    def _write_new(self, name: str, content: str) -> Path:
        """Create a file that did not exist before and return its path."""
        stem, suffix = Path(name).stem, Path(name).suffix
        for attempt in range(1, self.max_attempts + 1):
            candidate = name if attempt == 1 else f"{stem}_{attempt}{suffix}"
            path = self.output_dir / candidate
            try:
                with open(path, "x", encoding="utf-8", newline="") as fh:
                    fh.write(content)
            except FileExistsError:
                continue
            if attempt > 1:
                logger.info("Attachment %s already exists; wrote %s", name, candidate)
            return path
        raise FileExistsError(f"No free file name for {name} in {self.output_dir}")


# ---------------------------------------------------------------------------
# MIME building
# ---------------------------------------------------------------------------

def resolve_from_address(
    sender_id: str,
    directory: DirectoryService,
    sender_cfg: SenderConfig,
) -> str:
    """Map a sender id to a ``From`` header value.

    The administrator sentinel maps to the configured admin address; any
    other id is looked up as an employee.

    Raises:
        DeliveryError: If the employee cannot be found or has no email.
    """
    if str(sender_id) == sender_cfg.admin_sender_id:
        return formataddr((sender_cfg.admin_name, sender_cfg.admin_email))

    try:
        employee = directory.lookup_employee(sender_id)
    except RecordNotFoundError as exc:
        raise DeliveryError(f"Unknown sender {sender_id}: {exc}") from exc
    if not employee.email:
        raise DeliveryError(f"Sender {sender_id} has no email address")
    return formataddr((employee.name, employee.email))


def build_mime_message(email: OutgoingEmail, from_address: str) -> MIMEMultipart:
    """Build a multipart/mixed message: plain-text body plus attachments."""
    msg = MIMEMultipart("mixed")
    msg["From"] = from_address
    msg["To"] = email.recipient
    msg["Subject"] = email.subject
    msg["Date"] = formatdate(localtime=False)

    msg.attach(MIMEText(email.body, "plain", "utf-8"))

    for handle in email.attachments:
        maintype, _, subtype = handle.mime_type.partition("/")
        if maintype == "text":
            part = MIMEText(handle.content, subtype or "plain", "utf-8")
        else:
            part = MIMEApplication(
                handle.content.encode("utf-8"), _subtype=subtype or "octet-stream",
            )
        part.add_header("Content-Disposition", "attachment", filename=handle.name)
        msg.attach(part)

    return msg


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

class SmtpMessagingService:
    """Delivers emails over SMTP with STARTTLS and login from settings."""

    def __init__(
        self,
        smtp: SMTPSettings,
        directory: DirectoryService,
        sender_cfg: SenderConfig,
    ) -> None:
        self.smtp = smtp
        self.directory = directory
        self.sender_cfg = sender_cfg

    def send_email(self, email: OutgoingEmail) -> None:
        from_address = resolve_from_address(email.sender_id, self.directory, self.sender_cfg)
        msg = build_mime_message(email, from_address)

        try:
            with smtplib.SMTP(self.smtp.host, self.smtp.port) as server:
                if self.smtp.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.smtp.has_credentials:
                    server.login(self.smtp.username, self.smtp.password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as exc:
            raise DeliveryError(
                "SMTP authentication failed. Check SMTP_USERNAME / SMTP_PASSWORD."
            ) from exc
        except smtplib.SMTPRecipientsRefused as exc:
            raise DeliveryError(f"Recipient refused: {email.recipient}") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP send failed: {exc}") from exc

        logger.debug("SMTP delivered %r to %s", email.subject, email.recipient)


class EmlMessagingService:
    """Dry-run transport: writes each email to ``<eml_dir>/<recipient>_<id>.eml``."""

    def __init__(
        self,
        eml_dir: str | Path,
        directory: DirectoryService,
        sender_cfg: SenderConfig,
    ) -> None:
        self.eml_dir = Path(eml_dir)
        self.directory = directory
        self.sender_cfg = sender_cfg
        self.written: list[Path] = []

    def send_email(self, email: OutgoingEmail) -> None:
        from_address = resolve_from_address(email.sender_id, self.directory, self.sender_cfg)
        msg = build_mime_message(email, from_address)

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"{safe_filename_part(email.recipient)}_{stamp}_{uuid.uuid4().hex[:8]}.eml"
        path = self.eml_dir / filename
        try:
            self.eml_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(msg.as_string(), encoding="utf-8")
        except OSError as exc:
            raise DeliveryError(f"Could not write {path}: {exc}") from exc

        self.written.append(path)
        logger.debug("Wrote %s", path)
