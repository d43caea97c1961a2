"""Tests for overdue_notifier.dispatcher and template_engine.

Covers:
- Email body rendering (greeting, sign-off, placeholder name)
- One email per customer with subject, body, sender and CSV attachment
- Customers without email are skipped with zero sends
- Per-customer failures (lookup, attachment, send) are isolated
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from overdue_notifier.adapters import (
    InMemoryDirectory,
    InMemoryFileService,
    InMemoryMessagingService,
)
from overdue_notifier.config import NotifierConfig
from overdue_notifier.dispatcher import NotificationDispatcher
from overdue_notifier.exceptions import AttachmentError, DeliveryError
from overdue_notifier.models import (
    CustomerGroup,
    CustomerRecord,
    DispatchStatus,
    EmployeeRecord,
    InvoiceSummary,
    SkipReason,
)
from overdue_notifier.template_engine import TemplateEngine

NOW = datetime(2024, 3, 1, 6, 0, 0, tzinfo=timezone.utc)


def _group(customer_id="1", *numbers):
    group = CustomerGroup(customer_id=customer_id)
    for n in numbers or ("INV1",):
        group.add_invoice(InvoiceSummary(n, Decimal("100"), date(2024, 1, 1), 60))
    return group


def _config(**attachment):
    cfg = NotifierConfig()
    cfg.attachment.timestamp_suffix = False
    for key, value in attachment.items():
        setattr(cfg.attachment, key, value)
    return cfg


class _FailingMessaging:
    def __init__(self, fail_for):
        self.fail_for = set(fail_for)
        self.outbox = []

    def send_email(self, email):
        if email.recipient in self.fail_for:
            raise DeliveryError(f"mailbox full for {email.recipient}")
        self.outbox.append(email)


class _FailingFiles:
    def create_file(self, name, content, mime_type="text/csv"):
        raise OSError("disk full")


@pytest.fixture
def directory():
    return InMemoryDirectory(
        customers={
            "1": CustomerRecord("1", company_name="Acme", email="ap@acme.com", sales_rep_id="42"),
            "2": CustomerRecord("2", first_name="Jane", email="jane@x.com"),
            "3": CustomerRecord("3", company_name="No Mail Co"),
        },
        employees={
            "42": EmployeeRecord("42", email="rep@x.com", name="Rep"),
        },
    )


# ============================================================================
# TemplateEngine
# ============================================================================

class TestTemplateEngine:

    def test_greets_customer_by_name(self):
        engine = TemplateEngine(config=NotifierConfig())
        group = _group()
        group.customer_name = "Acme"
        body = engine.render_body(group)
        assert body == "Dear Acme,\n\nPlease find attached your overdue invoices."

    def test_placeholder_when_name_missing(self):
        engine = TemplateEngine(config=NotifierConfig())
        assert engine.render_body(_group()).startswith("Dear Customer,")

    def test_sign_off(self):
        cfg = NotifierConfig()
        cfg.notification.sign_off = "Accounts Receivable"
        group = _group()
        group.customer_name = "Acme"
        body = TemplateEngine(config=cfg).render_body(group)
        assert body.endswith("Accounts Receivable")

    def test_subject_from_config(self):
        assert TemplateEngine(config=NotifierConfig()).subject == "Overdue Invoice Notification"

    def test_custom_template_dir(self, tmp_path):
        (tmp_path / "overdue_notification.txt").write_text(
            "Hi {{ CUSTOMER_NAME }}: {{ INVOICE_COUNT }} invoices, {{ TOTAL_AMOUNT }}",
            encoding="utf-8",
        )
        group = _group("1", "A", "B")
        group.customer_name = "Acme"
        body = TemplateEngine(template_dir=tmp_path, config=NotifierConfig()).render_body(group)
        assert body == "Hi Acme: 2 invoices, 200"


# ============================================================================
# NotificationDispatcher -- happy path
# ============================================================================

class TestDispatch:

    def test_sends_one_email(self, directory):
        messaging, files = InMemoryMessagingService(), InMemoryFileService()
        dispatcher = NotificationDispatcher(directory, messaging, files, config=_config())

        outcome = dispatcher.dispatch(_group("1", "INV1", "INV2"), NOW)

        assert outcome.status is DispatchStatus.SENT
        assert outcome.recipient == "ap@acme.com"
        assert outcome.invoice_count == 2
        assert outcome.sender.sender_id == "42"
        assert outcome.attachment_name == "Overdue_Invoices_Acme.csv"

        assert len(messaging.outbox) == 1
        email = messaging.outbox[0]
        assert email.sender_id == "42"
        assert email.recipient == "ap@acme.com"
        assert email.subject == "Overdue Invoice Notification"
        assert email.body.startswith("Dear Acme,")
        assert len(email.attachments) == 1
        assert email.attachments[0].mime_type == "text/csv"
        assert email.attachments[0].content.splitlines() == [
            "Invoice Number,Amount,Days Overdue",
            "INV1,100,60",
            "INV2,100,60",
        ]

    def test_customer_without_rep_sends_as_admin(self, directory):
        messaging = InMemoryMessagingService()
        dispatcher = NotificationDispatcher(
            directory, messaging, InMemoryFileService(), config=_config(),
        )
        dispatcher.dispatch(_group("2"), NOW)
        assert messaging.outbox[0].sender_id == "-5"

    def test_timestamp_suffix(self, directory):
        files = InMemoryFileService()
        dispatcher = NotificationDispatcher(
            directory, InMemoryMessagingService(), files,
            config=_config(timestamp_suffix=True),
        )
        dispatcher.dispatch(_group("1"), NOW)
        assert files.files[0].name == "Overdue_Invoices_Acme_20240301_060000.csv"

    def test_customer_columns(self, directory):
        files = InMemoryFileService()
        dispatcher = NotificationDispatcher(
            directory, InMemoryMessagingService(), files,
            config=_config(include_customer_columns=True),
        )
        dispatcher.dispatch(_group("1"), NOW)
        assert files.files[0].content.splitlines()[1] == "INV1,100,60,Acme,ap@acme.com"


# ============================================================================
# NotificationDispatcher -- skips and failures
# ============================================================================

class TestDispatchFailures:

    def test_no_email_is_skipped(self, directory, caplog):
        messaging = InMemoryMessagingService()
        dispatcher = NotificationDispatcher(
            directory, messaging, InMemoryFileService(), config=_config(),
        )
        outcome = dispatcher.dispatch(_group("3"), NOW)

        assert outcome.status is DispatchStatus.SKIPPED
        assert outcome.skip_reason is SkipReason.NO_CUSTOMER_EMAIL
        assert messaging.outbox == []
        assert "has no email" in caplog.text

    def test_unknown_customer_fails(self, directory, caplog):
        dispatcher = NotificationDispatcher(
            directory, InMemoryMessagingService(), InMemoryFileService(), config=_config(),
        )
        outcome = dispatcher.dispatch(_group("404"), NOW)
        assert outcome.status is DispatchStatus.FAILED
        assert "404" in outcome.error_message
        assert "customer ID 404" in caplog.text

    def test_attachment_failure_is_wrapped(self, directory):
        messaging = InMemoryMessagingService()
        dispatcher = NotificationDispatcher(
            directory, messaging, _FailingFiles(), config=_config(),
        )
        outcome = dispatcher.dispatch(_group("1"), NOW)
        assert outcome.status is DispatchStatus.FAILED
        assert "disk full" in outcome.error_message
        assert messaging.outbox == []

    def test_attachment_error_passthrough(self, directory):
        class _Files:
            def create_file(self, name, content, mime_type="text/csv"):
                raise AttachmentError("quota exceeded")

        dispatcher = NotificationDispatcher(
            directory, InMemoryMessagingService(), _Files(), config=_config(),
        )
        outcome = dispatcher.dispatch(_group("1"), NOW)
        assert outcome.error_message == "quota exceeded"

    def test_send_failure_does_not_stop_batch(self, directory):
        messaging = _FailingMessaging(fail_for={"ap@acme.com"})
        dispatcher = NotificationDispatcher(
            directory, messaging, InMemoryFileService(), config=_config(),
        )
        outcomes = dispatcher.dispatch_all([_group("1"), _group("404"), _group("2")], NOW)

        assert [o.status for o in outcomes] == [
            DispatchStatus.FAILED,
            DispatchStatus.FAILED,
            DispatchStatus.SENT,
        ]
        assert "mailbox full" in outcomes[0].error_message
        assert [e.recipient for e in messaging.outbox] == ["jane@x.com"]
