import json
import logging
from functools import wraps
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db.models import Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_http_methods, require_POST
from .exceptions import BalanceError
from .models import Invoice, Quote
from .services import documents, payment, reports, status
from .services.display import effective_display_status
from .services.totals import money_display

logger = logging.getLogger(__name__)


# ----------------------------
# Request / response helpers
# ----------------------------
def company_required(view):
    """Reject requests without a tenant (set by CurrentCompanyMiddleware)."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if getattr(request, "company", None) is None:
            logger.warning("No active company for %s on %s",
                           request.user, request.path)
            return JsonResponse(
                {"ok": False, "error": "No active company"}, status=403)
        return view(request, *args, **kwargs)
    return wrapper


def _payload(request):
    """JSON body, or form data for plain POSTs"""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("Malformed JSON body")
        if not isinstance(data, dict):
            raise ValidationError("JSON body must be an object")
        return data
    return request.POST.dict()


def _date(value, label):
    if value in (None, ""):
        return None
    try:
        parsed = parse_date(str(value)[:10])
    except ValueError:  # well formed but impossible, e.g. 2025-02-30
        parsed = None
    if parsed is None:
        raise ValidationError(f"{label} must be a date (YYYY-MM-DD)")
    return parsed


def _error(exc, status_code=400):
    body = {"ok": False, "error": "; ".join(exc.messages)}
    if isinstance(exc, BalanceError) and exc.balance is not None:
        # lets the client offer "pay full balance"
        body["balance"] = str(money_display(exc.balance))
        body["balance_exact"] = str(exc.balance)
    return JsonResponse(body, status=status_code)


def _not_found(what):
    return JsonResponse({"ok": False, "error": f"{what} not found"}, status=404)


def _money(value):
    return str(money_display(value))


def line_to_dict(line):
    return {
        "description": line.description,
        "quantity": str(line.quantity),
        "unit_price": _money(line.unit_price),
        "total": _money(line.total),
    }


def invoice_to_dict(invoice, today=None, detail=False):
    data = {
        "id": invoice.pk,
        "number": invoice.number,
        "client": {"id": invoice.client_id, "name": invoice.client.display_name},
        "date": invoice.date.isoformat(),
        "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
        "type": invoice.type,
        "status": invoice.status,
        "display_status": effective_display_status(invoice, today),
        "subtotal": _money(invoice.subtotal),
        "discount": _money(invoice.discount),
        "tax": _money(invoice.tax),
        "total": _money(invoice.total),
        "paid_amount": _money(invoice.paid_amount),
        "balance": _money(invoice.balance),
    }
    if detail:
        data["discount_percent"] = str(invoice.discount_percent)
        data["tax_rate"] = str(invoice.tax_rate)
        data["notes"] = invoice.notes
        data["lines"] = [line_to_dict(line) for line in invoice.lines.all()]
        data["payments"] = [
            {
                "id": p.pk,
                "amount": _money(p.amount),
                "method": p.method,
                "paid_at": p.paid_at.isoformat(),
                "notes": p.notes,
            }
            for p in invoice.payments.all()
        ]
        source = getattr(invoice, "source_quote", None) if invoice.pk else None
        data["quote"] = (
            {"id": source.pk, "number": source.number} if source else None)
        data["can_delete"] = status.can_delete_invoice(invoice)
    return data


def quote_to_dict(quote, detail=False):
    data = {
        "id": quote.pk,
        "number": quote.number,
        "client": {"id": quote.client_id, "name": quote.client.display_name},
        "date": quote.date.isoformat(),
        "valid_until": quote.valid_until.isoformat() if quote.valid_until else None,
        "status": quote.status,
        "subtotal": _money(quote.subtotal),
        "discount": _money(quote.discount),
        "tax": _money(quote.tax),
        "total": _money(quote.total),
        "invoice": (
            {"id": quote.invoice.pk, "number": quote.invoice.number}
            if quote.invoice_id else None
        ),
        "editable": status.can_edit_quote(quote),
    }
    if detail:
        data["discount_percent"] = str(quote.discount_percent)
        data["tax_rate"] = str(quote.tax_rate)
        data["notes"] = quote.notes
        data["lines"] = [line_to_dict(line) for line in quote.lines.all()]
        data["can_delete"] = status.can_delete_quote(quote)
    return data


def _search(qs, request):
    term = request.GET.get("search", "").strip()
    if term:
        qs = qs.filter(
            Q(number__icontains=term)
            | Q(client__name__icontains=term)
            | Q(client__company_name__icontains=term)
        )
    if request.GET.get("status"):
        qs = qs.filter(status=request.GET["status"])
    if request.GET.get("client"):
        qs = qs.filter(client_id=request.GET["client"])
    return qs


# ----------------------------
# Invoices
# ----------------------------
@require_http_methods(["GET", "POST"])
@company_required
def invoice_list(request):
    if request.method == "POST":
        return invoice_create(request)

    # Only this tenant's invoices
    qs = Invoice.objects.for_company(request.company).select_related("client")
    today = timezone.localdate()
    return JsonResponse(
        [invoice_to_dict(inv, today) for inv in _search(qs, request)],
        safe=False,
    )


def invoice_create(request):
    try:
        data = _payload(request)
        invoice = documents.create_invoice(
            request.company,
            data.get("client"),
            data.get("items"),
            discount_percent=data.get("discount_percent", 0),
            tax_rate=data.get("tax_rate"),
            date=_date(data.get("date"), "Date"),
            due_date=_date(data.get("due_date"), "Due date"),
            type=data.get("type") or "SERVICE",
            notes=data.get("notes", ""),
            user=request.user,
        )
    except ObjectDoesNotExist:
        return _not_found("Client")
    except ValidationError as e:
        return _error(e)
    return JsonResponse(invoice_to_dict(invoice, detail=True), status=201)


@require_GET
@company_required
def invoice_detail(request, invoice_id):
    # If no invoice found for this company, 404 (instead of crashing)
    invoice = get_object_or_404(
        Invoice.objects.for_company(request.company), pk=invoice_id)
    return JsonResponse(invoice_to_dict(invoice, detail=True))


@require_POST
@company_required
def invoice_update(request, invoice_id):
    invoice = get_object_or_404(
        Invoice.objects.for_company(request.company), pk=invoice_id)
    try:
        data = _payload(request)
        kwargs = {}
        if "due_date" in data:
            kwargs["due_date"] = _date(data["due_date"], "Due date")
        invoice, warnings = documents.update_invoice(
            invoice,
            caller_is_elevated=request.is_elevated,
            items=data.get("items"),
            discount_percent=data.get("discount_percent"),
            tax_rate=data.get("tax_rate"),
            date=_date(data.get("date"), "Date"),
            type=data.get("type"),
            notes=data.get("notes"),
            user=request.user,
            **kwargs,
        )
    except ValidationError as e:
        return _error(e)
    body = invoice_to_dict(invoice, detail=True)
    body["warnings"] = warnings
    return JsonResponse(body)


@require_POST
@company_required
def invoice_delete(request, invoice_id):
    invoice = get_object_or_404(
        Invoice.objects.for_company(request.company), pk=invoice_id)
    try:
        documents.delete_invoice(invoice, user=request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse({"ok": True})


@require_POST
@company_required
def invoice_status(request, invoice_id):
    invoice = get_object_or_404(
        Invoice.objects.for_company(request.company), pk=invoice_id)
    try:
        data = _payload(request)
        invoice = status.transition_invoice_status(
            invoice, data.get("status"), user=request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse({"ok": True, "invoice": invoice_to_dict(invoice)})


@require_POST
@company_required
def invoice_payments(request, invoice_id):
    invoice = get_object_or_404(
        Invoice.objects.for_company(request.company), pk=invoice_id)
    # call the service and handle response or errors
    try:
        data = _payload(request)
        invoice, pay = payment.apply_payment(
            invoice,
            data.get("amount"),
            method=data.get("method") or "CASH",
            paid_at=_date(data.get("paid_at"), "Payment date"),
            notes=data.get("notes"),
            user=request.user,
        )
    except ValidationError as e:
        return _error(e)
    return JsonResponse(
        {
            "ok": True,
            "payment": {"id": pay.pk, "amount": _money(pay.amount),
                        "method": pay.method},
            "invoice": invoice_to_dict(invoice),
        },
        status=201,
    )


@require_POST
@company_required
def invoice_send(request, invoice_id):
    invoice = get_object_or_404(
        Invoice.objects.for_company(request.company), pk=invoice_id)
    try:
        documents.send_invoice(invoice, user=request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse({"ok": True})


# ----------------------------
# Quotes
# ----------------------------
@require_http_methods(["GET", "POST"])
@company_required
def quote_list(request):
    if request.method == "POST":
        return quote_create(request)
    qs = Quote.objects.for_company(request.company).select_related(
        "client", "invoice")
    return JsonResponse([quote_to_dict(q) for q in _search(qs, request)],
                        safe=False)


def quote_create(request):
    try:
        data = _payload(request)
        quote = documents.create_quote(
            request.company,
            data.get("client"),
            data.get("items"),
            discount_percent=data.get("discount_percent", 0),
            tax_rate=data.get("tax_rate"),
            valid_until=_date(data.get("valid_until"), "Valid until"),
            notes=data.get("notes", ""),
            user=request.user,
        )
    except ObjectDoesNotExist:
        return _not_found("Client")
    except ValidationError as e:
        return _error(e)
    return JsonResponse(quote_to_dict(quote, detail=True), status=201)


@require_GET
@company_required
def quote_detail(request, quote_id):
    quote = get_object_or_404(
        Quote.objects.for_company(request.company), pk=quote_id)
    return JsonResponse(quote_to_dict(quote, detail=True))


@require_POST
@company_required
def quote_update(request, quote_id):
    quote = get_object_or_404(
        Quote.objects.for_company(request.company), pk=quote_id)
    try:
        data = _payload(request)
        kwargs = {}
        if "valid_until" in data:
            kwargs["valid_until"] = _date(data["valid_until"], "Valid until")
        quote = documents.update_quote(
            quote,
            items=data.get("items"),
            discount_percent=data.get("discount_percent"),
            tax_rate=data.get("tax_rate"),
            notes=data.get("notes"),
            user=request.user,
            **kwargs,
        )
    except ValidationError as e:
        return _error(e)
    return JsonResponse(quote_to_dict(quote, detail=True))


@require_POST
@company_required
def quote_status(request, quote_id):
    quote = get_object_or_404(
        Quote.objects.for_company(request.company), pk=quote_id)
    try:
        data = _payload(request)
        quote = status.transition_quote_status(
            quote, data.get("status"), user=request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse({"ok": True, "quote": quote_to_dict(quote)})


@require_POST
@company_required
def quote_duplicate(request, quote_id):
    quote = get_object_or_404(
        Quote.objects.for_company(request.company), pk=quote_id)
    try:
        copy = documents.duplicate_quote(quote, user=request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse(quote_to_dict(copy, detail=True), status=201)


@require_POST
@company_required
def quote_delete(request, quote_id):
    quote = get_object_or_404(
        Quote.objects.for_company(request.company), pk=quote_id)
    try:
        documents.delete_quote(quote, user=request.user)
    except ValidationError as e:
        return _error(e)
    return JsonResponse({"ok": True})


@require_POST
@company_required
def quote_convert(request, quote_id):
    quote = get_object_or_404(
        Quote.objects.for_company(request.company), pk=quote_id)
    try:
        data = _payload(request)
        invoice = documents.convert_quote_to_invoice(
            quote,
            due_date=_date(data.get("due_date"), "Due date"),
            type=data.get("type") or "SERVICE",
            user=request.user,
        )
    except ValidationError as e:
        return _error(e)
    return JsonResponse(invoice_to_dict(invoice, detail=True), status=201)


# ----------------------------
# Reports
# ----------------------------
@require_GET
@company_required
def receivables_report(request):
    try:
        start = _date(request.GET.get("start"), "Start date")
        end = _date(request.GET.get("end"), "End date")
    except ValidationError as e:
        return _error(e)
    summary = reports.receivables_summary(request.company, start=start, end=end)
    return JsonResponse(summary)
