"""Exception hierarchy for the overdue invoice notifier.

Only ``InvoiceQueryError`` is fatal to a run.  Everything else is raised
inside a single customer's processing and is caught at the dispatch
boundary.
"""


class OverdueNotifierError(Exception):
    """Base class for all notifier errors."""


class ConfigurationError(OverdueNotifierError):
    """Invalid or incomplete configuration."""


class InvoiceQueryError(OverdueNotifierError):
    """The invoice query service failed.  Aborts the run."""


class RecordNotFoundError(OverdueNotifierError):
    """A customer or employee record could not be loaded."""

    def __init__(self, record_type: str, record_id: str) -> None:
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} record {record_id!r} not found")


class AttachmentError(OverdueNotifierError):
    """The CSV attachment could not be created."""


class DeliveryError(OverdueNotifierError):
    """The messaging service rejected or failed to send an email."""
