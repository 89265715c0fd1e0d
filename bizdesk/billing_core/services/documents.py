import datetime
import logging
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from ..constants import (INVOICE_PAID, INVOICE_TYPE_CHOICES, QUOTE_ACCEPTED,
                         QUOTE_DRAFT, QUOTE_SENT)
from ..exceptions import BalanceError, LinkError, StateError
from ..models import Client, Invoice, InvoiceLine, Quote, QuoteLine
from .audit_helper import log_action
from .numbering import next_invoice_number, next_quote_number
from .status import (can_delete_invoice, can_delete_quote, can_edit_invoice,
                     can_edit_quote, edit_warnings)
from .totals import clean_line_items, money_display, validate_percent

logger = logging.getLogger(__name__)

INVOICE_TYPES = tuple(code for code, _label in INVOICE_TYPE_CHOICES)


# ----------------------------------------------
# Shared helpers
# ----------------------------------------------
def resolve_client(company, client):
    """Client instance or id → active client of this company.
    Raises Client.DoesNotExist for other tenants' clients."""
    client_id = getattr(client, "pk", client)
    if client_id in (None, ""):
        raise ValidationError("Client is required")
    return Client.objects.active(company).get(pk=client_id)


def _replace_lines(document, line_model, fk_name, items):
    """Swap all lines of a document for the cleaned items."""
    line_model.objects.filter(**{fk_name: document}).delete()
    for item in items:
        line_model.objects.create(
            **{fk_name: document},
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
        )


def _tax_rate_or_default(company, tax_rate):
    if tax_rate is None or tax_rate == "":
        return company.tax_rate
    return validate_percent(tax_rate, "Tax rate")


def _totals_snapshot(document):
    return {
        "subtotal": str(money_display(document.subtotal)),
        "discount": str(money_display(document.discount)),
        "tax": str(money_display(document.tax)),
        "total": str(money_display(document.total)),
    }


def _check_invoice_type(type):
    if type not in INVOICE_TYPES:
        raise ValidationError(
            f"Invoice type must be one of {', '.join(INVOICE_TYPES)}")


# ----------------------------------------------
# Quote workflows
# ----------------------------------------------
def create_quote(company, client, items, discount_percent=0, tax_rate=None,
                 valid_until=None, notes="", date=None, user=None) -> Quote:
    """New DRAFT quote with a system-assigned number."""
    client = resolve_client(company, client)
    # Validate everything before touching the database
    items = clean_line_items(items)
    discount_percent = validate_percent(discount_percent, "Discount")
    tax_rate = _tax_rate_or_default(company, tax_rate)

    with transaction.atomic():
        quote = Quote(
            company=company,
            client=client,
            created_by=user if getattr(user, "is_authenticated", False) else None,
            number=next_quote_number(company),
            date=date or timezone.localdate(),
            valid_until=valid_until,
            status=QUOTE_DRAFT,
            discount_percent=discount_percent,
            tax_rate=tax_rate,
            notes=notes or "",
        )
        # Save parent first to get a PK
        quote.save()
        _replace_lines(quote, QuoteLine, "quote", items)
        quote.recalc_totals()
        quote.save()

        log_action(action="create", instance=quote, user=user,
                   changes=_totals_snapshot(quote))

    logger.info("Created quote %s for %s", quote.number, client)
    return quote


_UNSET = object()


def update_quote(quote: Quote, items=None, discount_percent=None,
                 tax_rate=None, valid_until=_UNSET, notes=None,
                 user=None) -> Quote:
    """Edit a DRAFT/SENT quote; accepted and rejected quotes are frozen."""
    cleaned = clean_line_items(items) if items is not None else None

    with transaction.atomic():
        locked = Quote.objects.select_for_update().get(pk=quote.pk)
        if not can_edit_quote(locked):
            raise StateError(
                f"Quote {locked.number} is {locked.status} and can no longer "
                "be edited; duplicate it into a new draft instead.")

        if discount_percent is not None:
            locked.discount_percent = validate_percent(
                discount_percent, "Discount")
        if tax_rate is not None:
            locked.tax_rate = _tax_rate_or_default(locked.company, tax_rate)
        if valid_until is not _UNSET:
            locked.valid_until = valid_until
        if notes is not None:
            locked.notes = notes
        if cleaned is not None:
            _replace_lines(locked, QuoteLine, "quote", cleaned)

        locked.recalc_totals()
        locked.save()
        log_action(action="update", instance=locked, user=user,
                   changes=_totals_snapshot(locked))
    return locked


def duplicate_quote(quote: Quote, user=None) -> Quote:
    """Copy lines and terms into a fresh DRAFT with a new number."""
    with transaction.atomic():
        copy = Quote(
            company=quote.company,
            client=quote.client,
            created_by=user if getattr(user, "is_authenticated", False) else None,
            number=next_quote_number(quote.company),
            date=timezone.localdate(),
            valid_until=None,  # validity restarts with the new draft
            status=QUOTE_DRAFT,
            discount_percent=quote.discount_percent,
            tax_rate=quote.tax_rate,
            notes=quote.notes,
        )
        copy.save()
        _replace_lines(copy, QuoteLine, "quote", quote.line_data())
        copy.recalc_totals()
        copy.save()

        log_action(action="duplicate", instance=copy, user=user,
                   changes={"source_quote": quote.number})

    logger.info("Duplicated quote %s into %s", quote.number, copy.number)
    return copy


def convert_quote_to_invoice(quote: Quote, due_date=None, type="SERVICE",
                             date=None, user=None) -> Invoice:
    """
    Create the single invoice a quote may have, pre-filled from its lines,
    discount and tax. A SENT quote is accepted in the same transaction.
    """
    _check_invoice_type(type)

    with transaction.atomic():
        # Lock the quote so two conversions can't both pass the link check
        locked = Quote.objects.select_for_update().get(pk=quote.pk)

        if locked.has_been_invoiced:
            raise LinkError(
                f"Quote {locked.number} has already been converted to an "
                "invoice.")
        if locked.status == QUOTE_SENT:
            locked.transition_to(QUOTE_ACCEPTED)
            log_action(action="status", instance=locked, user=user,
                       changes={"from": QUOTE_SENT, "to": QUOTE_ACCEPTED})
        elif locked.status != QUOTE_ACCEPTED:
            raise StateError(
                f"Only sent or accepted quotes can be invoiced "
                f"(quote {locked.number} is {locked.status}).")

        invoice = _create_invoice_record(
            company=locked.company,
            client=locked.client,
            items=locked.line_data(),
            discount_percent=locked.discount_percent,
            tax_rate=locked.tax_rate,
            date=date,
            due_date=due_date,
            type=type,
            notes=locked.notes,
            user=user,
        )

        # set-once link
        locked.invoice = invoice
        locked.invoiced_at = timezone.now()
        locked.save(update_fields=["invoice", "invoiced_at", "updated_at"])

        log_action(action="convert", instance=locked, user=user,
                   changes={"invoice": invoice.number})

    logger.info("Converted quote %s into invoice %s",
                locked.number, invoice.number)
    return invoice


def delete_quote(quote: Quote, user=None):
    """Delete a quote that was never accepted nor invoiced."""
    with transaction.atomic():
        locked = Quote.objects.select_for_update().get(pk=quote.pk)
        if locked.has_been_invoiced:
            raise LinkError(
                f"Quote {locked.number} has an invoice and cannot be "
                "deleted.")
        if not can_delete_quote(locked):
            raise StateError(
                f"Quote {locked.number} is {locked.status} and cannot be "
                "deleted.")
        number = locked.number
        log_action(action="delete", instance=locked, user=user,
                   changes={"number": number})
        # lines go with it (CASCADE)
        locked.delete()

    logger.info("Deleted quote %s", number)


# ----------------------------------------------
# Invoice workflows
# ----------------------------------------------
def _create_invoice_record(*, company, client, items, discount_percent,
                           tax_rate, date, due_date, type, notes, user):
    date = date or timezone.localdate()
    if due_date is None:
        # due date from the company's payment terms
        due_date = date + datetime.timedelta(days=company.payment_terms_days)

    invoice = Invoice(
        company=company,
        client=client,
        created_by=user if getattr(user, "is_authenticated", False) else None,
        number=next_invoice_number(company),
        date=date,
        due_date=due_date,
        type=type,
        discount_percent=discount_percent,
        tax_rate=tax_rate,
        notes=notes or "",
    )
    invoice.save()
    _replace_lines(invoice, InvoiceLine, "invoice", items)
    invoice.recalc_totals()
    invoice.save()

    log_action(action="create", instance=invoice, user=user,
               changes=_totals_snapshot(invoice))
    return invoice


def create_invoice(company, client, items, discount_percent=0, tax_rate=None,
                   date=None, due_date=None, type="SERVICE", notes="",
                   user=None) -> Invoice:
    """New PENDING invoice with a system-assigned number."""
    client = resolve_client(company, client)
    items = clean_line_items(items)
    discount_percent = validate_percent(discount_percent, "Discount")
    tax_rate = _tax_rate_or_default(company, tax_rate)
    _check_invoice_type(type)

    with transaction.atomic():
        invoice = _create_invoice_record(
            company=company,
            client=client,
            items=items,
            discount_percent=discount_percent,
            tax_rate=tax_rate,
            date=date,
            due_date=due_date,
            type=type,
            notes=notes,
            user=user,
        )

    logger.info("Created invoice %s for %s", invoice.number, client)
    return invoice


def update_invoice(invoice: Invoice, caller_is_elevated=False, items=None,
                   discount_percent=None, tax_rate=None, date=None,
                   due_date=_UNSET, type=None, notes=None, user=None):
    """
    Edit an invoice. PENDING invoices are editable by anyone, other
    statuses only by elevated callers, who get warnings back.
    Returns (invoice, warnings).
    """
    cleaned = clean_line_items(items) if items is not None else None
    if type is not None:
        _check_invoice_type(type)

    with transaction.atomic():
        locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if not can_edit_invoice(locked, caller_is_elevated):
            raise StateError(
                f"Invoice {locked.number} is {locked.status}; only "
                "administrators can edit it.")
        warnings = edit_warnings(locked, caller_is_elevated)

        if discount_percent is not None:
            locked.discount_percent = validate_percent(
                discount_percent, "Discount")
        if tax_rate is not None:
            locked.tax_rate = _tax_rate_or_default(locked.company, tax_rate)
        if date is not None:
            locked.date = date
        if due_date is not _UNSET:
            locked.due_date = due_date
        if type is not None:
            locked.type = type
        if notes is not None:
            locked.notes = notes
        if cleaned is not None:
            _replace_lines(locked, InvoiceLine, "invoice", cleaned)

        locked.recalc_totals()
        if locked.status == INVOICE_PAID:
            # a paid invoice stays fully settled at its new total
            locked.paid_amount = locked.total
        else:
            locked.recalc_paid_amount()
            if locked.paid_amount > locked.total:
                raise BalanceError(
                    f"New total {money_display(locked.total)} is below the "
                    f"{money_display(locked.paid_amount)} already paid",
                    balance=locked.balance,
                )
        locked.save()

        changes = _totals_snapshot(locked)
        if warnings:
            changes["warnings"] = warnings
        log_action(action="update", instance=locked, user=user,
                   changes=changes)

    for warning in warnings:
        logger.warning("Invoice %s edited by elevated user: %s",
                       locked.number, warning)
    return locked, warnings


def delete_invoice(invoice: Invoice, user=None):
    """Delete an unpaid invoice that has no recorded payments."""
    with transaction.atomic():
        locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if not can_delete_invoice(locked):
            raise StateError(
                f"Invoice {locked.number} is paid or has recorded payments "
                "and cannot be deleted.")
        number = locked.number
        log_action(action="delete", instance=locked, user=user,
                   changes={"number": number})
        locked.delete()

    logger.info("Deleted invoice %s", number)


def send_invoice(invoice: Invoice, user=None):
    """Queue the invoice e-mail to the client (no status change)."""
    from ..tasks import send_invoice_email  # avoid cyc import

    if not invoice.client.email:
        raise ValidationError(
            f"Client {invoice.client} has no e-mail address.")
    invoice_id = invoice.pk
    transaction.on_commit(lambda: send_invoice_email.delay(invoice_id))
    log_action(action="send", instance=invoice, user=user,
               changes={"to": invoice.client.email})
