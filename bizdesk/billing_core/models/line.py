from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from ..services.totals import LineItemData, compute_totals, to_storage
from .client import Client
from .entitymembership import Company

# Money columns keep full computed precision (rounding happens on display)
MONEY = dict(max_digits=24, decimal_places=8)

PERCENT_VALIDATORS = [
    MinValueValidator(Decimal("0")),
    MaxValueValidator(Decimal("100")),
]


class BillingDocument(models.Model):
    """
    Fields and totals logic shared by quotes and invoices.
    Concrete subclasses define `status`, `lines` (related_name) and
    their own number prefix.
    """

    # Document belongs to one company (multi-tenant)
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # prevent deleting a client who has documents
    client = models.ForeignKey(Client, on_delete=models.PROTECT)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )

    # human-readable (e.g. "FAC-2025-00001"), assigned by services.numbering
    number = models.CharField(max_length=64)
    date = models.DateField()

    # Percentages as entered; amounts below are derived from them
    discount_percent = models.DecimalField(
        max_digits=7, decimal_places=4, default=Decimal("0"),
        validators=PERCENT_VALIDATORS,
    )
    tax_rate = models.DecimalField(
        max_digits=7, decimal_places=4, default=Decimal("0"),
        validators=PERCENT_VALIDATORS,
    )

    subtotal = models.DecimalField(**MONEY, default=Decimal("0"))
    # absolute amount = subtotal × discount_percent / 100
    discount = models.DecimalField(**MONEY, default=Decimal("0"))
    tax = models.DecimalField(**MONEY, default=Decimal("0"))
    total = models.DecimalField(**MONEY, default=Decimal("0"))

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def __str__(self):
        return self.number or f"#{self.pk}"

    def line_data(self):
        """Current lines as calculator input"""
        return [
            LineItemData(line.description, line.quantity, line.unit_price)
            for line in self.lines.all()
        ]

    def recalc_totals(self):
        """ Ensure stored totals are always in sync with the lines """
        # guard if no pk: there are no lines yet
        items = self.line_data() if self.pk else []
        totals = compute_totals(items, self.discount_percent, self.tax_rate)
        self.subtotal = to_storage(totals.subtotal)
        self.discount = to_storage(totals.discount_amount)
        self.tax = to_storage(totals.tax_amount)
        self.total = to_storage(totals.total)
        return totals

    def clean(self):
        # Prevent cross-company contamination
        if self.client_id and self.company_id:
            if self.client.company_id != self.company_id:
                raise ValidationError(
                    "Client must belong to the same company.")
        if self.discount > self.subtotal:
            raise ValidationError("Discount cannot exceed the subtotal.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class LineItem(models.Model):
    """ quantity × unit_price = total """

    description = models.CharField(max_length=500)
    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("1")
    )
    unit_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0")
    )
    total = models.DecimalField(**MONEY, default=Decimal("0"))

    class Meta:
        abstract = True
        ordering = ("id",)  # lines appear in creation order

    def __str__(self):
        return f"{self.description} x{self.quantity}"

    def clean(self):
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        if self.unit_price is not None and self.unit_price <= 0:
            raise ValidationError("Unit price must be greater than 0")
        if self.quantity and self.unit_price:
            # the line total must fit its money column
            to_storage(self.quantity * self.unit_price)

    """ Ensure no inconsistent line can ever be persisted """

    def save(self, *args, **kwargs):
        # compute total always
        self.total = to_storage(
            (self.quantity or Decimal("0")) * (self.unit_price or Decimal("0"))
        )
        # Run validation, this will call clean()
        self.full_clean()
        return super().save(*args, **kwargs)
