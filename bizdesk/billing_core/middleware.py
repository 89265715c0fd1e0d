from django.utils.deprecation import MiddlewareMixin
from .models import EntityMembership


class CurrentCompanyMiddleware(MiddlewareMixin):
    # Run on every request and attach .company / .is_elevated,
    # so views pass the tenant and role to services explicitly
    def process_request(self, request):
        request.company = None
        request.is_elevated = False

        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:  # Unauthenticated users
            return

        memberships = EntityMembership.objects.filter(
            user=user, is_active=True).select_related("company")

        # If user switched companies,
        # choice is stored in the session as "active_company_id"
        company_id = request.session.get("active_company_id")
        membership = None
        if company_id:
            # ensure security: user must be a member of that company
            # (prevent someone from tampering with their session and
            #  “jumping” into another company)
            membership = memberships.filter(company_id=company_id).first()
        if membership is None:
            # Default company fallback
            membership = (
                memberships.filter(is_default=True).first()
                or memberships.order_by("created_at").first()
            )

        if membership is not None:
            request.company = membership.company
            request.is_elevated = membership.is_elevated or user.is_superuser
