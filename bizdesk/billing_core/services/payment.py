import datetime
import logging
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from ..constants import INVOICE_PENDING, PAYMENT_METHODS
from ..exceptions import BalanceError, StateError
from ..models import Invoice, Payment
from .audit_helper import log_action
from .totals import ZERO, money_display, to_decimal, to_storage

logger = logging.getLogger(__name__)


# ----------------------------
# Amount checks
# ----------------------------
def payment_tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "BILLING_PAYMENT_TOLERANCE", "0.01")))


def check_payment_amount(amount: Decimal, balance: Decimal) -> Decimal:
    """
    Validate a payment against the remaining balance.
    Returns the amount to record: anything inside the tolerance band above
    the balance is recorded as the exact balance.
    """
    if amount <= ZERO:
        raise BalanceError("Amount must be greater than 0", balance=balance)
    if amount > balance + payment_tolerance():
        raise BalanceError(
            f"Payment exceeds pending balance of {money_display(balance)}",
            balance=balance,
        )
    return min(amount, balance)


# ----------------------------
# Payment-related workflows
# ----------------------------
def apply_payment(invoice: Invoice, amount, method="CASH", paid_at=None,
                  notes=None, user=None):
    """
    Record a payment (partial or full) against an invoice.
    Locks the invoice row so payments on the same invoice are serialized;
    the balance check, the Payment row and paid_amount are written as one
    unit or not at all.

    Returns (invoice, payment). The invoice status is left untouched,
    marking it PAID is a separate explicit transition.
    """
    amount = to_decimal(amount, "Amount")
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Unknown payment method {method!r}; "
            f"expected one of {', '.join(PAYMENT_METHODS)}")
    if paid_at is None:
        paid_at = timezone.localdate()
    elif isinstance(paid_at, datetime.datetime):
        paid_at = timezone.localdate(paid_at) if timezone.is_aware(paid_at) \
            else paid_at.date()

    # Everything inside either succeeds
    # as one unit or rolls back if something fails
    with transaction.atomic():
        # Lock the invoice row until the transaction finishes
        inv = Invoice.objects.select_for_update().get(pk=invoice.pk)

        if inv.status != INVOICE_PENDING:
            raise StateError(
                f"Payments can only be recorded on pending invoices "
                f"(invoice {inv.number} is {inv.status})")

        # balance from the ledger, not from a cached column
        inv.recalc_paid_amount()
        balance = inv.balance
        recorded = to_storage(check_payment_amount(amount, balance))

        payment = Payment.objects.create(
            company=inv.company,  # enforce tenancy
            invoice=inv,
            amount=recorded,
            method=method,
            paid_at=paid_at,
            notes=notes or "",
            created_by=user if getattr(user, "is_authenticated", False) else None,
        )

        # Recompute, don't increment
        inv.recalc_paid_amount()
        inv.save(update_fields=["paid_amount", "updated_at"])

        # AUDIT LOGS
        log_action(
            action="apply_payment",
            instance=payment,
            user=user,
            changes={
                "invoice_id": inv.pk,
                "amount": str(recorded),
                "method": method,
            },
        )
        log_action(
            action="update",
            instance=inv,
            user=user,
            changes={
                "paid_amount": str(inv.paid_amount),
                "balance": str(inv.balance),
            },
        )

    logger.info(
        "Payment %s of %s on invoice %s, balance now %s",
        payment.pk, recorded, inv.number, inv.balance,
    )
    return inv, payment


def apply_payments(invoice: Invoice, payments):
    """Apply several payments to one invoice; all or nothing."""
    with transaction.atomic():
        results = []
        for p in payments:
            inv, payment = apply_payment(
                invoice,
                p["amount"],
                method=p.get("method", "CASH"),
                paid_at=p.get("paid_at"),
                notes=p.get("notes"),
                user=p.get("user"),
            )
            results.append(payment)
        return inv, results
