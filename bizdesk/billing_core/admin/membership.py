from django.contrib import admin
from billing_core.constants import ELEVATED_ROLES
from billing_core.models import Company, EntityMembership
from .mixins import TenantAdminMixin


# Register `Company` model in admin with this custom config
@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    """a clean admin table for browsing companies"""

    # columns shown in company list view
    list_display = ("id", "name", "slug", "tax_rate", "payment_terms_days",
                    "currency_code", "created_at")
    search_fields = ("name", "slug")  # enable search by name and slug
    ordering = ("name",)  # sort companies alphabetically by default

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if not request.user.is_superuser:
            # only companies the user belongs to
            qs = qs.filter(memberships__user=request.user).distinct()
        # Fetch all memberships and their users in bulk
        return qs.prefetch_related("memberships__user")


# Register EntityMembership model
@admin.register(EntityMembership)
class EntityMembershipAdmin(TenantAdminMixin, admin.ModelAdmin):
    # Show memberships
    list_display = ("user", "company", "role", "is_active", "is_default",
                    "created_at")
    list_filter = ("role", "is_active", "company")
    search_fields = ("user__username", "user__email", "company__name")
    readonly_fields = ("created_at",)  # prevent tampering with creation date
    ordering = ("company__name", "user__username")

    # Scope querysets by company
    # prevents someone from snooping into memberships of other companies
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "user")

    def _admin_company_ids(self, request):
        # Companies where current user is an owner/admin
        return set(
            request.user.memberships.filter(
                role__in=ELEVATED_ROLES, is_active=True
            ).values_list("company_id", flat=True)
        )

    # Permission checks
    # To modify memberships
    def has_change_permission(self, request, obj=None):
        # Skip superusers
        if request.user.is_superuser:
            return True
        company_ids = self._admin_company_ids(request)
        if obj is None:
            # obj is None → decides if user can see change list view
            return bool(company_ids)
        # You can only edit memberships of companies you administer
        return obj.company_id in company_ids

    # To delete memberships
    def has_delete_permission(self, request, obj=None):
        # needs permission to modify memberships
        return self.has_change_permission(request, obj)

    # To add memberships
    def has_add_permission(self, request):
        if request.user.is_superuser:  # Superusers bypass check
            return True
        return bool(self._admin_company_ids(request))
