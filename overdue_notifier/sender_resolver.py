"""Customer and sender resolution.

Looks up the customer record behind a ``CustomerGroup`` and decides who the
email is sent from.

Sender selection:
    1. No sales rep assigned                -> administrator sentinel
    2. Sales rep has an email on file       -> sales rep id
    3. Sales rep has no email, or the
       employee lookup fails                -> administrator sentinel (logged)

Nothing here writes to the directory.  Results depend only on the
directory's answers and the configured sentinel.
"""

from __future__ import annotations

import logging

from .models import CustomerGroup, CustomerRecord, SenderChoice
from .services import DirectoryService

logger = logging.getLogger(__name__)

# Fallback reasons, recorded on SenderChoice for the audit trail.
REASON_NO_SALES_REP = "no sales rep assigned"
REASON_REP_NO_EMAIL = "sales rep has no email"
REASON_REP_LOOKUP_FAILED = "sales rep lookup failed"


def resolve_customer(
    directory: DirectoryService,
    group: CustomerGroup,
) -> CustomerRecord:
    """Load the customer record and copy name, email and rep onto ``group``.

    Lookup errors are not caught here; the dispatcher treats them as a
    failure for this customer only.
    """
    record = directory.lookup_customer(group.customer_id)
    group.customer_name = record.display_name
    group.customer_email = (record.email or "").strip()
    group.sales_rep_id = record.sales_rep_id or None
    return record


def resolve_sender(
    directory: DirectoryService,
    sales_rep_id: str | None,
    admin_sender_id: str,
) -> SenderChoice:
    """Choose the sender for a customer's email.

    Args:
        directory: Used to read the sales rep's employee record.
        sales_rep_id: The customer's assigned rep, if any.
        admin_sender_id: Sentinel used whenever the rep cannot send.

    Returns:
        SenderChoice with ``is_fallback`` set when the sentinel was used.
    """
    if not sales_rep_id:
        return SenderChoice(
            sender_id=admin_sender_id,
            is_fallback=True,
            reason=REASON_NO_SALES_REP,
        )

    try:
        employee = directory.lookup_employee(sales_rep_id)
    except Exception as exc:
        logger.error(
            "Could not load sales rep record for ID %s: %s", sales_rep_id, exc,
        )
        return SenderChoice(
            sender_id=admin_sender_id,
            is_fallback=True,
            reason=REASON_REP_LOOKUP_FAILED,
        )

    if employee.email:
        return SenderChoice(sender_id=str(sales_rep_id))

    logger.warning(
        "Sales rep %s has no email; sending as administrator %s",
        sales_rep_id, admin_sender_id,
    )
    return SenderChoice(
        sender_id=admin_sender_id,
        is_fallback=True,
        reason=REASON_REP_NO_EMAIL,
    )
