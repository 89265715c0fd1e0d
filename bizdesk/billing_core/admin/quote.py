from django.contrib import admin
from django.core.exceptions import ValidationError

from billing_core.models import Quote
from ..services.audit_helper import log_action
from ..services.numbering import next_quote_number
from ..services.status import can_delete_quote, can_edit_quote
from ..services.totals import money_display
from .actions import accept_quotes, convert_quotes, reject_quotes, send_quotes
from .inlines import QuoteLineInline
from .mixins import TenantAdminMixin

COMPUTED_FIELDS = (
    "number", "status", "subtotal", "discount", "tax", "total",
    "invoice", "invoiced_at", "created_by", "created_at", "updated_at",
)


# Register `Quote` model
@admin.register(Quote)
class QuoteAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "number", "company", "client", "date", "valid_until", "status",
        "total_display", "invoice",
    )
    list_filter = ("company", "status", "date")
    search_fields = ("number", "client__name", "client__company_name")
    actions = [send_quotes, accept_quotes, reject_quotes, convert_quotes]
    inlines = [QuoteLineInline]

    @admin.display(description="Total")
    def total_display(self, obj):
        return money_display(obj.total)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "client", "invoice")

    def get_readonly_fields(self, request, obj=None):
        # Accepted / rejected quotes are frozen
        if obj and not can_edit_quote(obj):
            return [f.name for f in self.model._meta.fields]
        return COMPUTED_FIELDS

    def has_change_permission(self, request, obj=None):
        if obj and not can_edit_quote(obj):
            return False
        return super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        # accepted or invoiced quotes stay behind their invoice
        if obj and not can_delete_quote(obj):
            return False
        return super().has_delete_permission(request, obj)

    def save_model(self, request, obj, form, change):
        if not change:
            company = self._get_request_company(request)
            if not request.user.is_superuser and company is not None:
                obj.company = company
            obj.number = next_quote_number(obj.company)
            obj.created_by = request.user
        super().save_model(request, obj, form, change)

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        quote = form.instance
        try:
            quote.recalc_totals()
        except ValidationError as e:
            self._abort_save(request, "; ".join(e.messages))
            return
        quote.save()
        log_action(action="update" if change else "create", instance=quote,
                   user=request.user,
                   changes={"total": str(money_display(quote.total)),
                            "source": "admin"})
