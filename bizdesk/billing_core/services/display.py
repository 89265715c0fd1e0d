import datetime
from django.utils import timezone
from ..constants import INVOICE_OVERDUE, INVOICE_PENDING


def as_local_date(value):
    """Normalize a date/datetime to the business calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if timezone.is_aware(value):
            return timezone.localdate(value)
        return value.date()
    return value


def effective_display_status(invoice, today=None) -> str:
    """
    Status label to show for an invoice. OVERDUE is derived from a PENDING
    invoice whose due date is before today; it is never stored.
    """
    if invoice.status != INVOICE_PENDING:
        return invoice.status

    today = as_local_date(today) or timezone.localdate()
    due_date = as_local_date(invoice.due_date)
    if due_date is not None and due_date < today:
        return INVOICE_OVERDUE
    return INVOICE_PENDING


def days_overdue(invoice, today=None) -> int:
    if effective_display_status(invoice, today) != INVOICE_OVERDUE:
        return 0
    today = as_local_date(today) or timezone.localdate()
    return (today - as_local_date(invoice.due_date)).days
