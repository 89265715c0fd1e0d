from django.contrib import messages
from django.db import transaction


def is_elevated_request(request):
    """Owner/admin of the active company, or superuser."""
    return request.user.is_superuser or getattr(
        request, "is_elevated", False)


class TenantAdminMixin:
    """
    Enforce tenant isolation in Django admin.
    Uses request.company (set by CurrentCompanyMiddleware);
    superusers see every company.
    """

    def _get_request_company(self, request):
        return getattr(request, "company", None)

    def _is_elevated(self, request):
        return is_elevated_request(request)

    def _abort_save(self, request, message):
        # changeform_view is atomic: undo the whole edit
        transaction.set_rollback(True)
        self.message_user(request, f"Not saved: {message}",
                          level=messages.ERROR)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        company = self._get_request_company(request)

        # If superuser, show everything;
        # otherwise restrict to company if available
        if request.user.is_superuser:
            return qs
        if company is None:
            # If no company available in request, return none
            return qs.none()
        return qs.filter(company=company)

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        """
        Restrict foreignkey dropdowns to the current company.
        Example: company field, client field.
        """
        company = self._get_request_company(request)

        # If FK is to Company and user is not superuser,
        # restrict to user's company
        if db_field.name == "company" and not request.user.is_superuser:
            if company is not None:
                kwargs["queryset"] = db_field.related_model.objects.filter(
                    pk=company.pk
                )
            else:
                kwargs["queryset"] = db_field.related_model.objects.none()
            return super().formfield_for_foreignkey(
                db_field, request, **kwargs)

        # if related model has a `company` field,
        # restrict it to request's company
        rel_model = getattr(db_field, "related_model", None)
        if (
            rel_model is not None
            and hasattr(rel_model, "company")
            and not request.user.is_superuser
        ):
            if company is not None:
                qs = rel_model.objects.filter(company=company)
                # new documents only for active clients
                if db_field.name == "client":
                    qs = qs.filter(active=True)
                kwargs["queryset"] = qs
            else:
                kwargs["queryset"] = rel_model.objects.none()

        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        # Ensure object is always owned by company on save (unless superuser)
        if not request.user.is_superuser:
            company = self._get_request_company(request)
            if company is not None:
                obj.company = company
        super().save_model(request, obj, form, change)


class AppendOnlyAdminMixin:
    """
    For rows only services write (payments, audit entries). Staff with the
    view permission can list and open them; add, change and delete are off,
    which also removes the bulk delete action.
    """

    list_per_page = 50

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
