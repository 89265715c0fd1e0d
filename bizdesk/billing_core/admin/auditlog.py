from django.contrib import admin

from billing_core.models import AuditLog

from .mixins import AppendOnlyAdminMixin, TenantAdminMixin


@admin.register(AuditLog)
class AuditLogAdmin(TenantAdminMixin, AppendOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("created_at", "company", "user", "action", "target",
                    "summary")
    list_filter = ("company", "action", "object_type")
    search_fields = ("object_id", "user__username")
    date_hierarchy = "created_at"

    @admin.display(description="Document", ordering="object_type")
    def target(self, obj):
        return f"{obj.object_type} #{obj.object_id}"

    @admin.display(description="Changes")
    def summary(self, obj):
        # e.g. "source=admin, total=116.00"
        if not obj.changes:
            return "-"
        if not isinstance(obj.changes, dict):
            return str(obj.changes)
        return ", ".join(f"{key}={value}"
                         for key, value in sorted(obj.changes.items()))

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("company", "user")
