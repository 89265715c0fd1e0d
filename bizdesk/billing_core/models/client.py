from django.db import \
    models  # ORM base classes to define database tables as Python classes

from ..managers import TenantManager
from .entitymembership import Company


# ---------- Client ----------
# Represents the person or business who receives quotes and invoices
class Client(models.Model):
    # Multi-tenant: every client belongs to a single company.
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    """ Example:
        Company A can have its own clients separate from Company B.
    """

    # Contact person (or the trade name for business clients)
    name = models.CharField(max_length=200)
    # Legal business name, shown on documents when present
    company_name = models.CharField(max_length=200, blank=True, default="")

    # Optional contact for billing/communication
    email = models.EmailField(null=True, blank=True)
    phone = models.CharField(max_length=32, blank=True, default="")

    # Soft-delete switch, inactive clients can't get new documents
    active = models.BooleanField(default=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:

        indexes = [
            models.Index(fields=["company", "name"]),
        ]

        # Enforce uniqueness per tenant
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_client_name"
            ),
        ]

    # Display client name in admin/UI
    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        return self.company_name or self.name

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
