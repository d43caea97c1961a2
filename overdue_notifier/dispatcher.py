"""Notification dispatch.

Sends one email per customer group.  Each customer is processed inside its
own error boundary: a lookup, attachment or send failure is logged with
the customer id and recorded as a FAILED outcome, and the batch moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from .config import NotifierConfig, get_config
from .csv_renderer import build_attachment_filename, render_invoice_csv
from .exceptions import AttachmentError
from .models import (
    CustomerGroup,
    CustomerOutcome,
    DispatchStatus,
    OutgoingEmail,
    SkipReason,
)
from .sender_resolver import resolve_customer, resolve_sender
from .services import CSV_MIME_TYPE, DirectoryService, FileService, MessagingService
from .template_engine import TemplateEngine

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Resolves, renders and sends the notification for each customer."""

    def __init__(
        self,
        directory: DirectoryService,
        messaging: MessagingService,
        files: FileService,
        config: NotifierConfig | None = None,
        engine: TemplateEngine | None = None,
    ) -> None:
        self.directory = directory
        self.messaging = messaging
        self.files = files
        self.config = config or get_config()
        self.engine = engine or TemplateEngine(config=self.config)

    def dispatch_all(
        self,
        groups: Iterable[CustomerGroup],
        now: datetime,
    ) -> list[CustomerOutcome]:
        return [self.dispatch(group, now) for group in groups]

    def dispatch(self, group: CustomerGroup, now: datetime) -> CustomerOutcome:
        """Process one customer.  Never raises."""
        try:
            return self._dispatch(group, now)
        except Exception as exc:
            logger.error(
                "Failed to send email to customer ID %s: %s", group.customer_id, exc,
            )
            return CustomerOutcome(
                customer_id=group.customer_id,
                status=DispatchStatus.FAILED,
                customer_name=group.customer_name,
                recipient=group.customer_email,
                invoice_count=len(group.invoices),
                error_message=str(exc),
            )

    def _dispatch(self, group: CustomerGroup, now: datetime) -> CustomerOutcome:
        resolve_customer(self.directory, group)

        if not group.has_email:
            logger.error(
                "Customer %s (ID: %s) has no email. Skipping.",
                group.customer_name, group.customer_id,
            )
            return CustomerOutcome(
                customer_id=group.customer_id,
                status=DispatchStatus.SKIPPED,
                customer_name=group.customer_name,
                invoice_count=len(group.invoices),
                skip_reason=SkipReason.NO_CUSTOMER_EMAIL,
            )

        sender = resolve_sender(
            self.directory, group.sales_rep_id, self.config.sender.admin_sender_id,
        )
        logger.info(
            "Preparing email: customer %s, email %s, sender ID %s",
            group.customer_name, group.customer_email, sender.sender_id,
        )

        attachment_cfg = self.config.attachment
        content = render_invoice_csv(
            group.invoices,
            customer_name=group.customer_name,
            customer_email=group.customer_email,
            include_customer_columns=attachment_cfg.include_customer_columns,
        )
        filename = build_attachment_filename(
            group.customer_name,
            timestamp=now if attachment_cfg.timestamp_suffix else None,
            prefix=attachment_cfg.filename_prefix,
        )
        try:
            attachment = self.files.create_file(filename, content, CSV_MIME_TYPE)
        except AttachmentError:
            raise
        except Exception as exc:
            raise AttachmentError(f"Could not create {filename}: {exc}") from exc

        email = OutgoingEmail(
            sender_id=sender.sender_id,
            recipient=group.customer_email,
            subject=self.engine.subject,
            body=self.engine.render_body(group),
            attachments=[attachment],
        )
        self.messaging.send_email(email)

        logger.info(
            "Email sent to %s with %d overdue invoices",
            group.customer_email, len(group.invoices),
        )
        return CustomerOutcome(
            customer_id=group.customer_id,
            status=DispatchStatus.SENT,
            customer_name=group.customer_name,
            recipient=group.customer_email,
            sender=sender,
            invoice_count=len(group.invoices),
            attachment_name=attachment.name,
        )
