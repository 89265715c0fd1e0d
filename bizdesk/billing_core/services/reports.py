from django.utils import timezone
from ..models import Invoice, Payment
from .display import days_overdue
from .totals import money_display


def receivables_summary(company, start=None, end=None, today=None):
    """
    Receivables snapshot for one company:
      - invoiced / collected over [start, end] (dates, inclusive)
      - pending balance over all PENDING invoices (any date)
      - overdue PENDING invoices, most overdue first
      - collected amounts by payment method
    """
    today = today or timezone.localdate()
    end = end or today
    start = start or end.replace(month=1, day=1)

    invoices = Invoice.objects.for_company(company)
    in_period = invoices.filter(date__gte=start, date__lte=end)
    payments = Payment.objects.for_company(company).filter(
        paid_at__gte=start, paid_at__lte=end)

    invoiced = in_period.exclude(status="CANCELLED").total_invoiced()
    collected = payments.total_amount()

    overdue = []
    for inv in invoices.overdue(today).select_related("client"):
        overdue.append({
            "id": inv.pk,
            "number": inv.number,
            "client": inv.client.display_name,
            "total": money_display(inv.total),
            "paid": money_display(inv.paid_amount),
            "pending": money_display(inv.balance),
            "due_date": inv.due_date,
            "days_overdue": days_overdue(inv, today),
        })
    overdue.sort(key=lambda row: row["days_overdue"], reverse=True)

    by_method = {
        method: {"count": row["count"], "total": money_display(row["total"])}
        for method, row in payments.by_method().items()
    }

    return {
        "period": {"start": start, "end": end},
        "invoiced": money_display(invoiced),
        "collected": money_display(collected),
        "pending": money_display(invoices.pending().total_balance()),
        "overdue_total": money_display(
            sum((row["pending"] for row in overdue), money_display(0))),
        "overdue": overdue,
        "payments_by_method": by_method,
    }
