import threading
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import connection

from billing_core.models import Client, Company, EntityMembership
from billing_core.services.documents import create_invoice, create_quote


def make_company(name="Test Co", **kwargs):
    kwargs.setdefault("tax_rate", Decimal("0"))
    return Company.objects.create(name=name, **kwargs)


def make_client(company, name="Acme", email="billing@acme.test", **kwargs):
    return Client.objects.create(company=company, name=name, email=email,
                                 **kwargs)


def make_user(username, company=None, role="staff", is_default=True):
    user = get_user_model().objects.create_user(
        username=username, password="pw")
    if company is not None:
        EntityMembership.objects.create(
            user=user, company=company, role=role, is_default=is_default)
    return user


def one_line(amount="100.00", description="Service"):
    return [{"description": description, "quantity": "1",
             "unit_price": amount}]


def make_invoice(company, client, amount="100.00", **kwargs):
    kwargs.setdefault("tax_rate", 0)
    return create_invoice(company, client, one_line(amount), **kwargs)


def make_quote(company, client, items=None, **kwargs):
    kwargs.setdefault("tax_rate", 0)
    return create_quote(company, client, items or one_line(), **kwargs)


def run_concurrently(*funcs):
    """
    Start every callable in its own thread at the same moment and wait for
    all of them. Returns each call's result, or the exception it raised.
    """
    barrier = threading.Barrier(len(funcs))
    results = [None] * len(funcs)

    def worker(index, func):
        try:
            barrier.wait()
            results[index] = func()
        except Exception as exc:  # handed back to the test
            results[index] = exc
        finally:
            # each thread has its own connection
            connection.close()

    threads = [threading.Thread(target=worker, args=(i, func))
               for i, func in enumerate(funcs)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results
