import datetime

from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce
from decimal import Decimal


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
# Define subclass of Django’s QuerySet
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):         # Add queryset helper
        return self.filter(company=company) # Apply filter

    def active(self, company):
        return self.filter(
                            company=company, # enforce tenant scoping
                            active=True      # only fetch active records
                        )
    # Enables query:
    # Client.objects.active(request.company)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    """ every model using TenantManager can call:
        Invoice.objects.for_company(request.company) """
    pass


# ---------- Invoice queries ----------
class InvoiceQuerySet(TenantQuerySet):

    def pending(self):
        return self.filter(status="PENDING")

    def overdue(self, today: datetime.date):
        # Same predicate as effective_display_status(), expressed in SQL
        # (due_date IS NULL never matches `lt`)
        return self.pending().filter(due_date__lt=today)

    def total_invoiced(self):
        return self.aggregate(
            total=Coalesce(Sum("total"), Decimal("0"))
        )["total"]

    def total_balance(self):
        """Sum of total - paid_amount over the queryset"""
        agg = self.aggregate(
            total=Coalesce(Sum("total"), Decimal("0")),
            paid=Coalesce(Sum("paid_amount"), Decimal("0")),
        )
        return agg["total"] - agg["paid"]


class InvoiceManager(models.Manager.from_queryset(InvoiceQuerySet)):
    pass


# ---------- Payment ledger queries ----------
class PaymentQuerySet(TenantQuerySet):

    def total_amount(self):
        # If nothing was recorded, Sum returns None → fallback to 0
        return self.aggregate(
            total=Coalesce(Sum("amount"), Decimal("0"))
        )["total"]

    def by_method(self):
        """{method: {"count": n, "total": Decimal}} for the queryset"""
        rows = (
            self.values("method")
            .order_by("method")
            .annotate(count=models.Count("id"), total=Sum("amount"))
        )
        return {
            row["method"]: {"count": row["count"], "total": row["total"]}
            for row in rows
        }


class PaymentManager(models.Manager.from_queryset(PaymentQuerySet)):
    pass
