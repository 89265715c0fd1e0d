from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..constants import (INVOICE_PAID, INVOICE_PENDING,
                         INVOICE_STATUS_CHOICES, INVOICE_TYPE_CHOICES,
                         PAYMENT_METHOD_CHOICES)
from ..managers import InvoiceManager, PaymentManager
from ..services.totals import to_storage
from .entitymembership import Company
from .line import MONEY, BillingDocument, LineItem


class Invoice(BillingDocument):  # Represents a client invoice

    # payment deadline (defaults to date + company payment terms)
    due_date = models.DateField(null=True, blank=True)

    type = models.CharField(
        max_length=10, choices=INVOICE_TYPE_CHOICES, default="SERVICE"
    )

    status = models.CharField(
        max_length=10, choices=INVOICE_STATUS_CHOICES, default=INVOICE_PENDING
    )
    """ Workflow:
        PENDING = issued, awaiting payment (shown as OVERDUE past due_date).
        PAID = fully settled.
        CANCELLED = voided, can be reactivated back to PENDING. """

    # Sum of recorded payments (or total, after "mark as paid")
    paid_amount = models.DecimalField(**MONEY, default=Decimal("0"))

    # Enforce tenant scoping
    objects = InvoiceManager()

    class Meta:
        ordering = ("-date", "-id")
        # Optimize for fast lookups by invoice number or client
        indexes = [
            models.Index(fields=["company", "status", "due_date"]),
            models.Index(fields=["company", "client"]),
        ]

        constraints = [
            # Within one company, each invoice number must be unique
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "number"],
                name="uq_invoice_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0),
                name="inv_paid_amount_non_negative",
            ),
        ]

    @property
    def balance(self):
        """Amount still owed, always derived"""
        return self.total - self.paid_amount

    def recalc_paid_amount(self):
        """ Rebuild paid_amount from the ledger, never increment it """
        paid = self.payments.total_amount() if self.pk else Decimal("0")
        self.paid_amount = to_storage(paid)
        return self.paid_amount

    def clean(self):
        super().clean()
        if self.paid_amount < 0:
            raise ValidationError("Paid amount cannot be negative")
        # important, otherwise payments could overpay an invoice
        # and mess up reporting
        if self.paid_amount > self.total:
            raise ValidationError("Paid amount cannot exceed the total")
        if self.status == INVOICE_PAID and self.paid_amount != self.total:
            raise ValidationError(
                "A paid invoice must have paid amount equal to its total")

    def transition_to(self, new_status):
        """Validate against the invoice transition table and persist."""
        from ..services.status import check_invoice_transition  # avoid cyc import

        check_invoice_transition(self.status, new_status)
        if new_status == INVOICE_PAID:
            # "mark as paid" settles in full regardless of recorded payments
            self.paid_amount = self.total
        self.status = new_status
        self.save(update_fields=["status", "paid_amount", "updated_at"])


class InvoiceLine(LineItem):
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines")

    class Meta(LineItem.Meta):
        indexes = [models.Index(fields=["invoice"])]


class Payment(models.Model):  # Append-only ledger entry against an invoice

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # Prevent losing an invoice that has monetary history
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="payments")

    amount = models.DecimalField(**MONEY)
    method = models.CharField(
        max_length=10, choices=PAYMENT_METHOD_CHOICES, default="CASH")
    paid_at = models.DateField()
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = PaymentManager()

    class Meta:
        ordering = ("-paid_at", "-id")
        indexes = [
            models.Index(fields=["company", "paid_at"]),
            models.Index(fields=["invoice"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.invoice} {self.method} {self.amount}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        # Prevent cross-company contamination
        if self.invoice_id and self.invoice.company_id != self.company_id:
            raise ValidationError("Invoice must belong to the same company.")

    def save(self, *args, **kwargs):
        # Payments are immutable once recorded
        if self.pk:
            raise ValidationError("Recorded payments cannot be modified.")
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Recorded payments cannot be deleted.")
