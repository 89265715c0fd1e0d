from decimal import Decimal

from django.contrib import admin
from django.contrib.auth.models import Permission
from django.test import RequestFactory, TestCase
from django.urls import reverse

from billing_core.admin.auditlog import AuditLogAdmin
from billing_core.admin.inlines import InvoiceLineInline, QuoteLineInline
from billing_core.admin.invoice import InvoiceAdmin, PaymentAdmin
from billing_core.admin.quote import QuoteAdmin
from billing_core.models import (AuditLog, Invoice, InvoiceLine, Payment,
                                 Quote, QuoteLine)
from billing_core.services.payment import apply_payment
from billing_core.services.status import (transition_invoice_status,
                                          transition_quote_status)

from .helpers import (make_client, make_company, make_invoice, make_quote,
                      make_user)

DOCUMENT_MODELS = ("invoice", "invoiceline", "quote", "quoteline", "client")


def make_staff(username, company, role="staff"):
    """Admin-site user with every permission on documents and lines."""
    user = make_user(username, company, role=role)
    user.is_staff = True
    user.save()
    user.user_permissions.set(Permission.objects.filter(
        content_type__app_label="billing_core",
        content_type__model__in=DOCUMENT_MODELS,
    ))
    return user


def lines_form(lines=(), existing=()):
    """Management + row data for the `lines` inline."""
    rows = list(existing) + list(lines)
    data = {
        "lines-TOTAL_FORMS": str(len(rows)),
        "lines-INITIAL_FORMS": str(len(existing)),
        "lines-MIN_NUM_FORMS": "1",
        "lines-MAX_NUM_FORMS": "1000",
    }
    for i, row in enumerate(rows):
        for key, value in row.items():
            data[f"lines-{i}-{key}"] = value
    return data


class AdminTestCase(TestCase):
    def setUp(self):
        self.company = make_company()
        self.client_obj = make_client(self.company)
        self.staff = make_staff("staff", self.company)
        self.owner = make_staff("owner", self.company, role="owner")

    def admin_request(self, user, elevated=False):
        request = RequestFactory().get("/admin/")
        request.user = user
        request.company = self.company
        request.is_elevated = elevated
        return request

    def document_form(self, **extra):
        data = {
            "company": self.company.pk,
            "client": self.client_obj.pk,
            "date": "2025-03-01",
            "discount_percent": "0",
            "tax_rate": "0",
            "notes": "",
        }
        data.update(extra)
        return data


class InvoiceAdminLockTests(AdminTestCase):
    def setUp(self):
        super().setUp()
        self.model_admin = InvoiceAdmin(Invoice, admin.site)
        self.inline = InvoiceLineInline(Invoice, admin.site)

    def test_only_pending_invoices_are_editable_by_staff(self):
        request = self.admin_request(self.staff)
        pending = make_invoice(self.company, self.client_obj)
        cancelled = transition_invoice_status(
            make_invoice(self.company, self.client_obj), "CANCELLED")
        paid = transition_invoice_status(
            make_invoice(self.company, self.client_obj), "PAID")

        self.assertTrue(self.model_admin.has_change_permission(request, pending))
        self.assertTrue(self.inline.has_add_permission(request, pending))
        for invoice in (cancelled, paid):
            self.assertFalse(
                self.model_admin.has_change_permission(request, invoice))
            self.assertIn("client", self.model_admin.get_readonly_fields(
                request, invoice))
            self.assertFalse(self.inline.has_add_permission(request, invoice))
            self.assertFalse(
                self.inline.has_delete_permission(request, invoice))

    def test_owner_can_edit_any_status(self):
        request = self.admin_request(self.owner, elevated=True)
        cancelled = transition_invoice_status(
            make_invoice(self.company, self.client_obj), "CANCELLED")
        self.assertTrue(
            self.model_admin.has_change_permission(request, cancelled))
        self.assertNotIn("client", self.model_admin.get_readonly_fields(
            request, cancelled))
        self.assertTrue(self.inline.has_add_permission(request, cancelled))

    def _change_cancelled_invoice(self, user):
        invoice = transition_invoice_status(
            make_invoice(self.company, self.client_obj), "CANCELLED")
        line = invoice.lines.get()
        self.client.force_login(user)
        data = self.document_form(type="SERVICE", due_date="2025-03-31")
        data.update(lines_form(existing=[{
            "id": line.pk, "invoice": invoice.pk, "description": "Service",
            "quantity": "5", "unit_price": "100",
        }]))
        response = self.client.post(
            reverse("admin:billing_core_invoice_change", args=[invoice.pk]),
            data)
        invoice.refresh_from_db()
        return response, invoice

    def test_staff_post_to_cancelled_invoice_is_refused(self):
        response, invoice = self._change_cancelled_invoice(self.staff)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(invoice.total, Decimal("100"))
        self.assertEqual(invoice.lines.get().quantity, Decimal("1"))

    def test_owner_post_to_cancelled_invoice_is_saved(self):
        response, invoice = self._change_cancelled_invoice(self.owner)
        self.assertEqual(response.status_code, 302)
        self.assertEqual(invoice.status, "CANCELLED")
        self.assertEqual(invoice.total, Decimal("500"))


class QuoteAdminLockTests(AdminTestCase):
    def test_accepted_quote_is_frozen(self):
        request = self.admin_request(self.owner, elevated=True)
        quote = make_quote(self.company, self.client_obj)
        transition_quote_status(quote, "SENT")
        quote = transition_quote_status(quote, "ACCEPTED")

        self.assertFalse(QuoteAdmin(Quote, admin.site).has_change_permission(
            request, quote))
        self.assertFalse(QuoteLineInline(Quote, admin.site).has_add_permission(
            request, quote))


class AdminRequiresLinesTests(AdminTestCase):
    def setUp(self):
        super().setUp()
        self.client.force_login(self.staff)

    def add_invoice(self, lines):
        data = self.document_form(type="SERVICE", due_date="")
        data.update(lines_form(lines))
        return self.client.post(reverse("admin:billing_core_invoice_add"), data)

    def test_invoice_without_lines_is_not_saved(self):
        response = self.add_invoice([])
        # form re-rendered with the inline error
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Invoice.objects.exists())

    def test_invoice_with_a_line_is_saved_with_totals(self):
        response = self.add_invoice([{"description": "Visit",
                                      "quantity": "2", "unit_price": "40"}])
        self.assertEqual(response.status_code, 302)
        invoice = Invoice.objects.get()
        self.assertEqual(invoice.company, self.company)
        self.assertEqual(invoice.total, Decimal("80"))
        self.assertEqual(InvoiceLine.objects.filter(invoice=invoice).count(), 1)

    def test_line_total_too_large_is_a_form_error(self):
        response = self.add_invoice([{"description": "Bulk",
                                      "quantity": "9999999999",
                                      "unit_price": "99999999999999"}])
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Invoice.objects.exists())

    def test_deleting_every_line_is_refused(self):
        invoice = make_invoice(self.company, self.client_obj)
        line = invoice.lines.get()
        data = self.document_form(type="SERVICE", due_date="2025-03-31")
        data.update(lines_form(existing=[{
            "id": line.pk, "invoice": invoice.pk, "description": "Service",
            "quantity": "1", "unit_price": "100", "DELETE": "on",
        }]))
        response = self.client.post(
            reverse("admin:billing_core_invoice_change", args=[invoice.pk]),
            data)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(InvoiceLine.objects.filter(pk=line.pk).exists())

    def test_quote_without_lines_is_not_saved(self):
        data = self.document_form(valid_until="")
        data.update(lines_form([]))
        response = self.client.post(reverse("admin:billing_core_quote_add"),
                                    data)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Quote.objects.exists())
        self.assertFalse(QuoteLine.objects.exists())


class AppendOnlyAdminTests(AdminTestCase):
    def test_payments_and_audit_entries_cannot_be_changed(self):
        request = self.admin_request(self.owner, elevated=True)
        invoice = make_invoice(self.company, self.client_obj)
        _, payment = apply_payment(invoice, "40.00")
        entry = AuditLog.objects.filter(object_type="Invoice").first()

        for model_admin, obj in (
            (PaymentAdmin(Payment, admin.site), payment),
            (AuditLogAdmin(AuditLog, admin.site), entry),
        ):
            self.assertFalse(model_admin.has_add_permission(request))
            self.assertFalse(model_admin.has_change_permission(request, obj))
            self.assertFalse(model_admin.has_delete_permission(request, obj))
            self.assertIn("company",
                          model_admin.get_readonly_fields(request, obj))

    def test_audit_summary_lists_changes(self):
        model_admin = AuditLogAdmin(AuditLog, admin.site)
        entry = AuditLog(object_type="Invoice", object_id="7", action="update",
                         changes={"total": "116.00", "source": "admin"})
        self.assertEqual(model_admin.target(entry), "Invoice #7")
        self.assertEqual(model_admin.summary(entry),
                         "source=admin, total=116.00")
        self.assertEqual(model_admin.summary(AuditLog(changes=None)), "-")
