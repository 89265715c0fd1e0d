from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from ..constants import (INVOICE_CANCELLED, INVOICE_PAID, INVOICE_PENDING,
                         QUOTE_ACCEPTED, QUOTE_REJECTED, QUOTE_SENT)
from ..services.documents import convert_quote_to_invoice, send_invoice
from ..services.status import transition_invoice_status, transition_quote_status

# ---------- Admin actions ----------


def _run_for_each(modeladmin, request, queryset, label, func):
    """
    Apply `func` to every selected row, one transaction each
    (the services open their own), and report per-row failures
    via admin messages.
    """
    success = 0
    failures = 0
    for obj in queryset:
        try:
            func(obj)
            success += 1
        except ValidationError as exc:
            failures += 1
            modeladmin.message_user(
                request,
                _("%(obj)s: %(err)s") % {"obj": obj, "err": "; ".join(exc.messages)},
                level=messages.ERROR,
            )

    # Final summary message
    modeladmin.message_user(
        request,
        _("%(label)s: %(success)d done, %(failures)d failed.") % {
            "label": label,
            "success": success,
            "failures": failures,
        },
        level=messages.SUCCESS if failures == 0 else messages.WARNING,
    )


""" Invoice buttons: call the same status service the API uses,
    so admins can't bypass the transition table """


@admin.action(description="Mark selected invoices as Paid")
def mark_inv_as_paid(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Mark as paid",
        lambda inv: transition_invoice_status(inv, INVOICE_PAID, user=request.user),
    )


@admin.action(description="Cancel selected invoices")
def mark_inv_as_cancelled(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Cancel",
        lambda inv: transition_invoice_status(
            inv, INVOICE_CANCELLED, user=request.user),
    )


@admin.action(description="Reactivate selected cancelled invoices")
def mark_inv_as_pending(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Reactivate",
        lambda inv: transition_invoice_status(
            inv, INVOICE_PENDING, user=request.user),
    )


@admin.action(description="E-mail selected invoices to their clients")
def email_invoices(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Send",
        lambda inv: send_invoice(inv, user=request.user),
    )


""" Quote buttons """


@admin.action(description="Send selected quotes")
def send_quotes(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Send",
        lambda q: transition_quote_status(q, QUOTE_SENT, user=request.user),
    )


@admin.action(description="Mark selected quotes as Accepted")
def accept_quotes(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Accept",
        lambda q: transition_quote_status(q, QUOTE_ACCEPTED, user=request.user),
    )


@admin.action(description="Mark selected quotes as Rejected")
def reject_quotes(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Reject",
        lambda q: transition_quote_status(q, QUOTE_REJECTED, user=request.user),
    )


@admin.action(description="Convert selected quotes to invoices")
def convert_quotes(modeladmin, request, queryset):
    _run_for_each(
        modeladmin, request, queryset, "Convert",
        lambda q: convert_quote_to_invoice(q, user=request.user),
    )
