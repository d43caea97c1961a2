"""Overdue invoice query stage.

Wraps the invoice query service with the date arithmetic the rest of the
job relies on.  A failure here is the only fatal error in a run.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from .exceptions import InvoiceQueryError
from .models import Invoice
from .services import InvoiceQueryService

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime.  Naive values are UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def first_day_of_month(day: date) -> date:
    """The cutoff for the overdue filter: due dates must be strictly before this."""
    return day.replace(day=1)


def is_overdue(due_date: date, as_of: date) -> bool:
    """True when ``due_date`` falls before the first day of ``as_of``'s month."""
    return due_date < first_day_of_month(as_of)


def compute_days_overdue(due_date: date, now: datetime) -> int:
    """Whole days elapsed since midnight UTC on ``due_date``, floored.

    >>> compute_days_overdue(date(2024, 1, 1), datetime(2024, 3, 1))
    60
    """
    due_start = datetime.combine(due_date, time.min, tzinfo=timezone.utc)
    return (as_utc(now) - due_start) // _ONE_DAY


def fetch_overdue_invoices(
    service: InvoiceQueryService,
    now: datetime,
) -> list[Invoice]:
    """Run the overdue invoice query as of ``now``.

    Args:
        service: The invoice query capability.
        now: The run's reference instant.

    Returns:
        The matched invoice rows, in query order.

    Raises:
        InvoiceQueryError: If the service fails for any reason.
    """
    as_of = as_utc(now).date()
    logger.debug(
        "Querying open invoices due before %s", first_day_of_month(as_of),
    )
    try:
        return list(service.query_open_overdue_invoices(as_of))
    except Exception as exc:
        logger.error("Invoice query failed: %s", exc)
        raise InvoiceQueryError(f"Invoice query failed: {exc}") from exc
