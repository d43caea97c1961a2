"""
Overdue Invoice Notifier -- Template Engine

Renders the plain-text email body with Jinja2.  Templates live in
``overdue_notifier/templates/`` unless ``notification.template_dir`` points
somewhere else.

Usage:
    from overdue_notifier.template_engine import TemplateEngine

    engine = TemplateEngine()
    body = engine.render_body(group)
    subject = engine.subject
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from .config import NotifierConfig, get_config
from .models import CustomerGroup


class TemplateEngine:
    """Jinja2-based renderer for the overdue notification email.

    Attributes:
        env: The Jinja2 Environment configured with the template directory.
        template_dir: Path to the templates directory.
    """

    def __init__(
        self,
        template_dir: str | Path | None = None,
        config: NotifierConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        if template_dir is None:
            self.template_dir = self.config.notification.resolved_template_dir
        else:
            self.template_dir = Path(template_dir)

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,  # plain-text body
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    @property
    def subject(self) -> str:
        return self.config.notification.subject

    def render_body(self, group: CustomerGroup) -> str:
        """Render the email body greeting the customer by name.

        Raises:
            TemplateNotFound: If the configured template file is missing.
        """
        notification = self.config.notification
        context = {
            "CUSTOMER_NAME": group.customer_name or notification.default_customer_name,
            "INVOICE_COUNT": len(group.invoices),
            "INVOICE_NUMBERS": group.invoice_numbers,
            "TOTAL_AMOUNT": str(group.total_amount),
            "SIGN_OFF": notification.sign_off,
        }
        template = self.env.get_template(notification.template_file)
        return template.render(**context).rstrip()
