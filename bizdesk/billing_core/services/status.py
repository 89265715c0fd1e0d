import logging
from django.db import transaction
from ..constants import (INVOICE_PAID, INVOICE_PENDING, INVOICE_TRANSITIONS,
                         QUOTE_ACCEPTED, QUOTE_EDITABLE_STATUSES, QUOTE_SENT,
                         QUOTE_TRANSITIONS)
from ..exceptions import StateError
from ..models import Invoice, Quote
from .audit_helper import log_action

logger = logging.getLogger(__name__)


# ----------------------------------------------
# Transition tables (validated server-side, whatever the UI shows)
# ----------------------------------------------
def _check(table, kind, current, new):
    if current not in table:
        raise StateError(f"Unknown {kind} status {current!r}")
    if new not in table[current]:
        # If requested new status isn’t allowed → block it
        allowed = ", ".join(table[current]) or "none"
        raise StateError(
            f"Cannot change {kind} from {current} to {new} "
            f"(allowed: {allowed})"
        )


def check_quote_transition(current, new):
    """DRAFT → SENT → ACCEPTED | REJECTED, nothing else."""
    _check(QUOTE_TRANSITIONS, "quote", current, new)


def check_invoice_transition(current, new):
    """PENDING → PAID | CANCELLED, CANCELLED → PENDING."""
    _check(INVOICE_TRANSITIONS, "invoice", current, new)


# ----------------------------------------------
# Edit / delete guards
# ----------------------------------------------
def can_edit_quote(quote: Quote) -> bool:
    return quote.status in QUOTE_EDITABLE_STATUSES


def can_edit_invoice(invoice: Invoice, caller_is_elevated: bool) -> bool:
    # Elevated callers (owner/admin) may edit in any status
    if caller_is_elevated:
        return True
    return invoice.status == INVOICE_PENDING


def edit_warnings(invoice: Invoice, caller_is_elevated: bool) -> list:
    """Warnings to surface when an allowed edit touches a settled invoice."""
    warnings = []
    if caller_is_elevated and invoice.status == INVOICE_PAID:
        warnings.append(
            f"Invoice {invoice.number} is already paid; changes affect a "
            "settled financial record."
        )
    elif caller_is_elevated and invoice.status != INVOICE_PENDING:
        warnings.append(
            f"Invoice {invoice.number} is {invoice.status.lower()}.")
    return warnings


def can_delete_invoice(invoice: Invoice) -> bool:
    """ Paid invoices and invoices with payments keep their history """
    if invoice.status == INVOICE_PAID:
        return False
    if invoice.pk and invoice.payments.exists():
        return False
    return True


def can_delete_quote(quote: Quote) -> bool:
    """ Invoiced or accepted quotes stay as the record behind the invoice """
    return not quote.has_been_invoiced and quote.status != QUOTE_ACCEPTED


# ----------------------------------------------
# Quote status workflows
# ----------------------------------------------
def transition_quote_status(quote: Quote, new_status, user=None) -> Quote:
    # late import: tasks import models through Celery autodiscovery
    from ..tasks import send_quote_email

    with transaction.atomic():
        # Lock the row to avoid race conditions
        locked = Quote.objects.select_for_update().get(pk=quote.pk)
        previous = locked.status
        locked.transition_to(new_status)

        log_action(
            action="status",
            instance=locked,
            user=user,
            changes={"from": previous, "to": new_status},
        )

        if new_status == QUOTE_SENT:
            # fire-and-forget, only once the status change is committed
            quote_id = locked.pk
            transaction.on_commit(lambda: send_quote_email.delay(quote_id))

    logger.info("Quote %s: %s -> %s", locked.number, previous, new_status)
    return locked


# ----------------------------------------------
# Invoice status workflows
# ----------------------------------------------
def transition_invoice_status(invoice: Invoice, new_status, user=None) -> Invoice:
    """
    PENDING → PAID is the "mark as paid" shortcut: paid_amount becomes the
    total whatever payments were recorded. Payments alone never change the
    status.
    """
    with transaction.atomic():
        locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
        previous = locked.status
        locked.transition_to(new_status)

        log_action(
            action="status",
            instance=locked,
            user=user,
            changes={
                "from": previous,
                "to": new_status,
                "paid_amount": str(locked.paid_amount),
            },
        )

    logger.info("Invoice %s: %s -> %s", locked.number, previous, new_status)
    return locked
