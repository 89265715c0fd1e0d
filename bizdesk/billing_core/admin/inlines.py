from django.contrib import admin

from billing_core.models import InvoiceLine, Payment, QuoteLine
from ..services.status import can_edit_invoice, can_edit_quote
from .mixins import is_elevated_request

# ---------- Line / payment inline admin classes ----------


class LineInlineBase(admin.TabularInline):
    extra = 0  # don’t show “empty” rows by default (prevents clutter)
    fields = ("description", "quantity", "unit_price", "total")
    # `total` is computed automatically, so it’s read-only
    readonly_fields = ("total",)
    ordering = ("id",)  # lines appear in creation order
    # a quote or invoice keeps at least one line
    min_num = 1
    validate_min = True

    def _locked(self, request, obj):
        raise NotImplementedError

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and self._locked(request, obj):
            return ("description", "quantity", "unit_price", "total")
        return self.readonly_fields

    # Hide add new line option
    def has_add_permission(self, request, obj=None):
        if obj is not None and self._locked(request, obj):
            return False
        return super().has_add_permission(request, obj)

    # Hide delete options
    def has_delete_permission(self, request, obj=None):
        if obj is not None and self._locked(request, obj):
            return False
        return super().has_delete_permission(request, obj)


class QuoteLineInline(LineInlineBase):
    """Shows quote lines under a Quote page"""

    model = QuoteLine

    def _locked(self, request, obj):
        # ACCEPTED / REJECTED quotes are frozen
        return not can_edit_quote(obj)


class InvoiceLineInline(LineInlineBase):
    """Shows invoice lines under an Invoice page"""

    model = InvoiceLine

    def _locked(self, request, obj):
        # only PENDING invoices, unless the user is an owner/admin
        return not can_edit_invoice(obj, is_elevated_request(request))


class PaymentInline(admin.TabularInline):
    """Payment history on the Invoice page (append-only, read only here)"""

    model = Payment
    extra = 0
    fields = ("paid_at", "amount", "method", "notes", "created_by")
    readonly_fields = fields
    can_delete = False
    ordering = ("paid_at", "id")

    def has_add_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("created_by")
