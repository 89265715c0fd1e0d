from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import Invoice, Payment, Quote
from .services.status import can_delete_invoice, can_delete_quote

""" Block invoice deletion if it is paid or any payments are recorded."""


# pre_delete signal auto-fires just before Django deletes a model instance
# it’s connected to the Invoice model, so admin bulk deletes, querysets
# and services all go through the same guard
@receiver(pre_delete, sender=Invoice)
def prevent_delete_settled_invoice(sender, instance, **kwargs):
    if not can_delete_invoice(instance):
        raise ValidationError(
            "Cannot delete a paid invoice or one with recorded payments.")


@receiver(pre_delete, sender=Quote)
def prevent_delete_invoiced_quote(sender, instance, **kwargs):
    if not can_delete_quote(instance):
        raise ValidationError(
            "Cannot delete an accepted quote or one that has an invoice.")


""" Payments are append-only (queryset deletes skip Payment.delete()). """


@receiver(pre_delete, sender=Payment)
def prevent_delete_payment(sender, instance, **kwargs):
    raise ValidationError("Recorded payments cannot be deleted.")
