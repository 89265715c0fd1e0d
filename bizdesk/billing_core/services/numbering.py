import re
from django.conf import settings
from django.utils import timezone

TRAILING_DIGITS = re.compile(r"(\d+)$")


def next_number(model, company, prefix, year=None):
    """
    Next document number for a company, e.g. "FAC-2025-00007".
    Continues from the highest trailing sequence used this year.

    The company row is locked until the surrounding transaction commits, so
    two documents created at once for the same company can't read the same
    highest number. Call inside the transaction that creates the document.
    """
    from ..models import Company  # avoid cyc import

    Company.objects.select_for_update().only("pk").get(pk=company.pk)

    year = year or timezone.localdate().year
    stem = f"{prefix}-{year}-"
    numbers = (
        model.objects.for_company(company)
        .filter(number__startswith=stem)
        .values_list("number", flat=True)
    )
    highest = 0
    for number in numbers:
        match = TRAILING_DIGITS.search(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{stem}{highest + 1:05d}"


def next_quote_number(company, year=None):
    from ..models import Quote  # avoid cyc import
    return next_number(Quote, company, settings.BILLING_QUOTE_PREFIX, year)


def next_invoice_number(company, year=None):
    from ..models import Invoice  # avoid cyc import
    return next_number(Invoice, company, settings.BILLING_INVOICE_PREFIX, year)
