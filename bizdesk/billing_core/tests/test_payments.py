import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase, TransactionTestCase

from billing_core.exceptions import BalanceError, StateError
from billing_core.models import AuditLog, Invoice, Payment
from billing_core.services.payment import apply_payment, apply_payments
from billing_core.services.status import transition_invoice_status

from .helpers import (make_client, make_company, make_invoice,
                      run_concurrently)


class PaymentLedgerTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.client_obj = make_client(self.company)
        self.invoice = make_invoice(self.company, self.client_obj, "100.00")

    def test_partial_payments_accumulate_without_flipping_status(self):
        inv, _ = apply_payment(self.invoice, "40.00")
        self.assertEqual(inv.paid_amount, Decimal("40"))
        self.assertEqual(inv.balance, Decimal("60"))

        inv, _ = apply_payment(self.invoice, "60.00", method="CARD")
        inv.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("100"))
        self.assertEqual(inv.balance, Decimal("0"))
        # settling the balance does not mark the invoice as paid
        self.assertEqual(inv.status, "PENDING")
        self.assertEqual(Payment.objects.filter(invoice=inv).count(), 2)

    def test_overpayment_within_tolerance_records_exact_balance(self):
        apply_payment(self.invoice, "95.00")
        inv, payment = apply_payment(self.invoice, "5.005")
        self.assertEqual(payment.amount, Decimal("5.00"))
        self.assertEqual(inv.paid_amount, inv.total)
        self.assertEqual(inv.balance, Decimal("0"))

    def test_overpayment_beyond_tolerance_is_rejected(self):
        apply_payment(self.invoice, "95.00")
        with self.assertRaises(BalanceError) as ctx:
            apply_payment(self.invoice, "5.02")
        self.assertEqual(ctx.exception.balance, Decimal("5.00"))
        self.assertIn("5.00", ctx.exception.messages[0])

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_amount, Decimal("95"))
        self.assertEqual(Payment.objects.filter(invoice=self.invoice).count(), 1)

    def test_amount_must_be_positive(self):
        for bad in ("0", "-10"):
            with self.assertRaises(BalanceError):
                apply_payment(self.invoice, bad)
        with self.assertRaises(ValidationError):
            apply_payment(self.invoice, "ten")

    def test_unknown_method_rejected(self):
        with self.assertRaises(ValidationError):
            apply_payment(self.invoice, "10", method="BITCOIN")

    def test_only_pending_invoices_take_payments(self):
        transition_invoice_status(self.invoice, "CANCELLED")
        with self.assertRaises(StateError):
            apply_payment(self.invoice, "10")

        transition_invoice_status(self.invoice, "PENDING")
        transition_invoice_status(self.invoice, "PAID")
        with self.assertRaises(StateError):
            apply_payment(self.invoice, "10")

    def test_payment_date_defaults_to_today_and_accepts_date(self):
        _, payment = apply_payment(self.invoice, "10")
        self.assertIsNotNone(payment.paid_at)
        _, payment = apply_payment(
            self.invoice, "10", paid_at=datetime.date(2025, 1, 15))
        self.assertEqual(payment.paid_at, datetime.date(2025, 1, 15))

    def test_batch_is_all_or_nothing(self):
        with self.assertRaises(BalanceError):
            apply_payments(self.invoice, [
                {"amount": "60.00"},
                {"amount": "60.00"},  # exceeds the remaining 40
            ])
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_amount, Decimal("0"))
        self.assertFalse(Payment.objects.filter(invoice=self.invoice).exists())

    def test_batch_applies_every_payment(self):
        inv, payments = apply_payments(self.invoice, [
            {"amount": "30.00", "method": "CASH"},
            {"amount": "20.00", "method": "TRANSFER"},
        ])
        self.assertEqual(len(payments), 2)
        self.assertEqual(inv.paid_amount, Decimal("50"))

    def test_payments_are_append_only(self):
        _, payment = apply_payment(self.invoice, "10")
        payment.amount = Decimal("20")
        with self.assertRaises(ValidationError):
            payment.save()
        with self.assertRaises(ValidationError):
            payment.delete()
        with self.assertRaises(ValidationError):
            Payment.objects.filter(pk=payment.pk).delete()

    def test_mark_paid_after_partial_payment_settles_in_full(self):
        apply_payment(self.invoice, "40.00")
        inv = transition_invoice_status(self.invoice, "PAID")
        self.assertEqual(inv.paid_amount, inv.total)
        self.assertEqual(inv.balance, Decimal("0"))

    def test_payment_is_audited(self):
        _, payment = apply_payment(self.invoice, "10")
        self.assertTrue(
            AuditLog.objects.filter(
                action="apply_payment", object_type="Payment",
                object_id=str(payment.pk),
            ).exists()
        )


class ConcurrentPaymentTests(TransactionTestCase):
    """Payments racing on one invoice must not settle it twice."""

    def setUp(self):
        company = make_company()
        self.invoice = make_invoice(company, make_client(company), "100.00")

    def test_two_full_payments_only_one_succeeds(self):
        results = run_concurrently(
            lambda: apply_payment(self.invoice, "100.00"),
            lambda: apply_payment(self.invoice, "100.00", method="CARD"),
        )

        succeeded = [r for r in results if isinstance(r, tuple)]
        rejected = [r for r in results if isinstance(r, BalanceError)]
        self.assertEqual(len(succeeded), 1, results)
        self.assertEqual(len(rejected), 1, results)
        self.assertEqual(rejected[0].balance, Decimal("0"))

        invoice = Invoice.objects.get(pk=self.invoice.pk)
        self.assertEqual(Payment.objects.filter(invoice=invoice).count(), 1)
        self.assertEqual(invoice.paid_amount, Decimal("100"))
        self.assertLessEqual(invoice.paid_amount, invoice.total)

    def test_partial_payments_both_land(self):
        run_concurrently(
            lambda: apply_payment(self.invoice, "30.00"),
            lambda: apply_payment(self.invoice, "45.00"),
        )
        invoice = Invoice.objects.get(pk=self.invoice.pk)
        self.assertEqual(invoice.paid_amount, Decimal("75"))
        self.assertEqual(invoice.balance, Decimal("25"))
