import logging
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _document_body(kind, document):
    # import lazily to avoid circular imports at module import time
    from .services.totals import money_display

    lines = [
        f"{document.company.name}",
        f"{kind} {document.number} - {document.date:%Y-%m-%d}",
        "",
    ]
    for line in document.lines.all():
        lines.append(
            f"  {line.description}: {line.quantity} x "
            f"{money_display(line.unit_price)} = {money_display(line.total)}"
        )
    lines += [
        "",
        f"Subtotal: {money_display(document.subtotal)}",
        f"Discount: {money_display(document.discount)}",
        f"Tax: {money_display(document.tax)}",
        f"Total: {money_display(document.total)}",
    ]
    return "\n".join(lines)


def _send_document(kind, document):
    recipient = document.client.email
    if not recipient:
        logger.warning("%s %s not e-mailed: client %s has no e-mail",
                       kind, document.number, document.client)
        return 0
    sent = send_mail(
        subject=f"{kind} {document.number} from {document.company.name}",
        message=_document_body(kind, document),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
    )
    logger.info("%s %s e-mailed to %s", kind, document.number, recipient)
    return sent


@shared_task  # register this function as a Celery task
def send_quote_email(quote_id):
    from .models import Quote

    try:
        quote = Quote.objects.select_related("client", "company").get(pk=quote_id)
    except Quote.DoesNotExist:
        logger.warning("Quote %s vanished before it could be e-mailed", quote_id)
        return 0
    return _send_document("Quote", quote)


@shared_task
def send_invoice_email(invoice_id):
    from .models import Invoice

    try:
        invoice = Invoice.objects.select_related(
            "client", "company").get(pk=invoice_id)
    except Invoice.DoesNotExist:
        logger.warning("Invoice %s vanished before it could be e-mailed",
                       invoice_id)
        return 0
    return _send_document("Invoice", invoice)
