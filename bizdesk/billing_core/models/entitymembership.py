from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.text import slugify
from ..constants import ELEVATED_ROLES, ROLE_CHOICES
from ..managers import TenantManager


def default_tax_rate():
    return settings.BILLING_DEFAULT_TAX_RATE


def default_payment_terms():
    return settings.BILLING_DEFAULT_PAYMENT_TERMS_DAYS


# ---------- Tenant / Company ----------
class Company(models.Model):

    """Tenant / Organization"""
    # Store company’s full display name
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Link to a user account (creator or admin of company)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,  # use user model project is configured with
        null=True,
        blank=True,  # optional field
        on_delete=models.SET_NULL,
        # if user is deleted, company record stays,
        # but owner is set to NULL.
        related_name="owned_companies",
    )

    # Percent applied after discount when a document doesn't give its own
    tax_rate = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        default=default_tax_rate,
        validators=[MinValueValidator(Decimal("0")),
                    MaxValueValidator(Decimal("100"))],
    )

    # Standard credit terms
    payment_terms_days = models.PositiveIntegerField(
        default=default_payment_terms)
    """ Example: If terms = 30 → invoice due 30 days after issue. """

    currency_code = models.CharField(max_length=10, default="USD")

    # Store timestamp when the record is first created
    created_at = models.DateTimeField(auto_now_add=True)

    # Meta options
    class Meta:
        verbose_name_plural = "companies"

    # String Representation
    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # Fill slug from name (e.g., "Test Ltd" → "test-ltd")
        if not self.slug:
            self.slug = slugify(self.name) or "company"
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


# ---------- EntityMembership ----------
class EntityMembership(
    models.Model
):  # Bridge table (or a "join model") between User and Company

    # Link to the user
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        # If user is deleted, their memberships go too
        on_delete=models.CASCADE,
        related_name="memberships",  # See all companies users belong to
    )

    # Links to a Company record
    company = models.ForeignKey(
        "Company", on_delete=models.CASCADE, related_name="memberships"
    )

    # Store user’s role in the company
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default="viewer",  # Defaults to "viewer" (safe, read-only)
    )

    # Suspend someone’s access without deleting the record
    is_active = models.BooleanField(default=True)

    # Make this the company picked when the user has no session choice
    is_default = models.BooleanField(default=False)

    # Automatically record when membership was created
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # one user can only have one membership per company
        # (prevents duplicates)
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"], name="uq_user_company_membership"
            ),
        ]

        # make lookups fast
        # (important since almost every query will filter by company)
        indexes = [
            models.Index(fields=["company", "user"]),
        ]

    def __str__(self):
        # Make debugging/admin easier
        return f"{self.user} @ {self.company} ({self.role})"

    @property
    def is_elevated(self):
        """Owners and admins may edit paid invoices."""
        return self.is_active and self.role in ELEVATED_ROLES

    def clean(self):
        # Only one default company per user
        if self.is_default and self.user_id:
            others = EntityMembership.objects.filter(
                user_id=self.user_id, is_default=True
            ).exclude(pk=self.pk)
            if others.exists():
                raise ValidationError(
                    "User already has a default company membership.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
