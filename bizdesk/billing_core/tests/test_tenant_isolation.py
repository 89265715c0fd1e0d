import json

import pytest
from django.core.exceptions import ValidationError
from django.test import RequestFactory, TestCase

from billing_core.middleware import CurrentCompanyMiddleware
from billing_core.models import Company, EntityMembership, Invoice
from billing_core.views import invoice_list

from .helpers import make_client, make_company, make_invoice


class TenantIsolationManagerTests(TestCase):
    def setUp(self):
        self.company_a = make_company("Company A")
        self.company_b = make_company("Company B")

        # create one invoice per company
        self.inv_a = make_invoice(self.company_a, make_client(self.company_a))
        self.inv_b = make_invoice(self.company_b, make_client(self.company_b))

    def test_for_company_returns_only_that_company_objects(self):
        """Compare invoice primary keys"""
        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_a)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_a.pk],  # expected result
        )

        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_b)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_b.pk],
        )

    def test_get_other_company_object_raises_does_not_exist(self):
        # `for_company` shouldn't return the other company's record
        with self.assertRaises(Invoice.DoesNotExist):
            Invoice.objects.for_company(self.company_a).get(pk=self.inv_b.pk)

    def test_client_of_other_company_is_rejected_on_save(self):
        self.inv_a.client = self.inv_b.client
        with self.assertRaises(ValidationError):
            self.inv_a.save()


@pytest.mark.django_db
def test_invoice_list_returns_only_tenant_data(django_user_model):
    c1 = Company.objects.create(name="Company A", slug="com_a")
    c2 = Company.objects.create(name="Company B", slug="com_b")
    u1 = django_user_model.objects.create_user(username="alice", password="pw")

    make_invoice(c1, make_client(c1, name="C1 client"))
    make_invoice(c2, make_client(c2, name="C2 client"))

    # Bypass client & call view with a RequestFactory
    request = RequestFactory().get("/api/invoices/")
    request.user = u1
    # attach company to request before hitting view
    request.company = c1  # manually simulate middleware

    # call the view directly
    response = invoice_list(request)
    data = json.loads(response.content)

    clients = [d["client"]["name"] for d in data]
    assert "C1 client" in clients  # available in c1 request
    assert "C2 client" not in clients  # not available in c2 request


@pytest.mark.django_db
def test_middleware_picks_session_company_only_for_members(django_user_model):
    c1 = Company.objects.create(name="Company A")
    c2 = Company.objects.create(name="Company B")
    c3 = Company.objects.create(name="Company C")
    user = django_user_model.objects.create_user(username="bob", password="pw")
    EntityMembership.objects.create(user=user, company=c1, role="staff",
                                    is_default=True)
    EntityMembership.objects.create(user=user, company=c2, role="admin")

    def run(session):
        request = RequestFactory().get("/")
        request.user = user
        request.session = session
        CurrentCompanyMiddleware(lambda r: None).process_request(request)
        return request

    request = run({})
    assert request.company == c1
    assert request.is_elevated is False

    request = run({"active_company_id": c2.pk})
    assert request.company == c2
    assert request.is_elevated is True

    # not a member of c3: falls back to the default company
    request = run({"active_company_id": c3.pk})
    assert request.company == c1
