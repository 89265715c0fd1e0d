import datetime

from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from billing_core.models import Client, Invoice, Payment
from ..services.audit_helper import log_action
from ..services.display import effective_display_status
from ..services.numbering import next_invoice_number
from ..services.status import (can_delete_invoice, can_edit_invoice,
                               edit_warnings)
from ..services.totals import money_display
from .actions import (email_invoices, mark_inv_as_cancelled,
                      mark_inv_as_paid, mark_inv_as_pending)
from .inlines import InvoiceLineInline, PaymentInline
from .mixins import AppendOnlyAdminMixin, TenantAdminMixin

# totals, payments and status only change through services/actions
COMPUTED_FIELDS = (
    "number", "status", "subtotal", "discount", "tax", "total",
    "paid_amount", "created_by", "created_at", "updated_at",
)


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "number",
        "company",
        "client",
        "date",
        "due_date",
        "display_status",
        "total_display",
        "balance_display",
    )
    list_filter = ("company", "status", "type", "date")
    actions = [mark_inv_as_paid, mark_inv_as_cancelled, mark_inv_as_pending,
               email_invoices]
    search_fields = ("number", "client__name", "client__company_name")
    inlines = [InvoiceLineInline, PaymentInline]
    date_hierarchy = "date"

    @admin.display(description="Status")
    def display_status(self, obj):
        # PENDING past its due date shows as OVERDUE
        return effective_display_status(obj)

    @admin.display(description="Total")
    def total_display(self, obj):
        return money_display(obj.total)

    @admin.display(description="Balance")
    def balance_display(self, obj):
        return money_display(obj.balance)

    # Use a SQL join so it fetches company & client
    # in the same query as Invoice
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "client")

    """ Enforce immutability at admin level """

    def _locked(self, request, obj):
        # only PENDING invoices, unless the user is an owner/admin
        return obj is not None and not can_edit_invoice(
            obj, self._is_elevated(request))

    def get_readonly_fields(self, request, obj=None):
        if self._locked(request, obj):
            # Returning every field name makes every field read-only
            return [f.name for f in self.model._meta.fields]
        return COMPUTED_FIELDS

    def has_change_permission(self, request, obj=None):
        # locked invoices open view-only, a POST is refused
        if self._locked(request, obj):
            return False
        return super().has_change_permission(request, obj)

    def change_view(self, request, object_id, form_url="", extra_context=None):
        obj = self.get_object(request, object_id)
        if obj is not None and request.method == "GET":
            for warning in edit_warnings(obj, self._is_elevated(request)):
                self.message_user(request, warning, level=messages.WARNING)
        return super().change_view(request, object_id, form_url, extra_context)

    def has_delete_permission(self, request, obj=None):
        # removes “Delete” option from admin for paid invoices
        # and invoices with payments
        if obj and not can_delete_invoice(obj):
            return False
        return super().has_delete_permission(request, obj)

    def save_model(self, request, obj, form, change):
        if not change:
            company = self._get_request_company(request)
            if not request.user.is_superuser and company is not None:
                obj.company = company
            obj.number = next_invoice_number(obj.company)
            obj.created_by = request.user
            if obj.due_date is None:
                obj.due_date = obj.date + datetime.timedelta(
                    days=obj.company.payment_terms_days)
        super().save_model(request, obj, form, change)

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        # lines were saved by the inline; bring stored totals in sync
        inv = form.instance
        try:
            inv.recalc_totals()
        except ValidationError as e:
            self._abort_save(request, "; ".join(e.messages))
            return
        if inv.status == "PAID":
            inv.paid_amount = inv.total
        else:
            inv.recalc_paid_amount()
            if inv.paid_amount > inv.total:
                self._abort_save(
                    request,
                    f"new total {money_display(inv.total)} is below the "
                    f"{money_display(inv.paid_amount)} already paid.")
                return
        inv.save()
        log_action(action="update" if change else "create", instance=inv,
                   user=request.user,
                   changes={"total": str(money_display(inv.total)),
                            "source": "admin"})


# Register `Payment` model (ledger is append-only)
@admin.register(Payment)
class PaymentAdmin(TenantAdminMixin, AppendOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "company", "invoice", "paid_at", "amount", "method")
    list_filter = ("company", "method", "paid_at")
    search_fields = ("invoice__number", "notes")

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "invoice")


# Register `Client` model
@admin.register(Client)
class ClientAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "company",
        "name",
        "company_name",
        "email",
        "phone",
        "active",
    )
    search_fields = ("name", "company_name", "email")
    list_filter = ("company", "active")

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company")
