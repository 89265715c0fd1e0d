from django.db import models
from ..constants import QUOTE_DRAFT, QUOTE_STATUS_CHOICES
from ..managers import TenantManager
from .line import BillingDocument, LineItem


class Quote(BillingDocument):  # Non-binding proposal sent to a client

    valid_until = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=10, choices=QUOTE_STATUS_CHOICES, default=QUOTE_DRAFT
    )
    """ Workflow:
        DRAFT = being prepared.
        SENT = e-mailed to the client, still editable.
        ACCEPTED = client agreed, may be converted to one invoice.
        REJECTED = closed. """

    # Invoice created from this quote (cleared if that invoice is deleted)
    invoice = models.OneToOneField(
        "Invoice",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="source_quote",
    )
    # Set once on conversion, never cleared
    invoiced_at = models.DateTimeField(null=True, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ("-date", "-id")
        indexes = [
            models.Index(fields=["company", "status"]),
            models.Index(fields=["company", "client"]),
        ]
        constraints = [
            # Within one company, each quote number must be unique
            models.UniqueConstraint(
                fields=["company", "number"], name="uq_quote_company_number"
            ),
        ]

    @property
    def has_been_invoiced(self):
        return self.invoiced_at is not None

    def transition_to(self, new_status):
        """Validate against the quote transition table and persist."""
        from ..services.status import check_quote_transition  # avoid cyc import

        check_quote_transition(self.status, new_status)
        self.status = new_status
        self.save(update_fields=["status", "updated_at"])


class QuoteLine(LineItem):
    quote = models.ForeignKey(
        Quote, on_delete=models.CASCADE, related_name="lines")

    class Meta(LineItem.Meta):
        indexes = [models.Index(fields=["quote"])]
