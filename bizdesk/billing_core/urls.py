from django.urls import path
from . import views

app_name = "billing_core"

urlpatterns = [
    # Invoices
    path("invoices/", views.invoice_list, name="invoice-list"),
    path("invoices/<int:invoice_id>/", views.invoice_detail, name="invoice-detail"),
    path("invoices/<int:invoice_id>/update/", views.invoice_update, name="invoice-update"),
    path("invoices/<int:invoice_id>/delete/", views.invoice_delete, name="invoice-delete"),
    path("invoices/<int:invoice_id>/status/", views.invoice_status, name="invoice-status"),
    path("invoices/<int:invoice_id>/payments/", views.invoice_payments, name="invoice-payments"),
    path("invoices/<int:invoice_id>/send/", views.invoice_send, name="invoice-send"),
    # Quotes
    path("quotes/", views.quote_list, name="quote-list"),
    path("quotes/<int:quote_id>/", views.quote_detail, name="quote-detail"),
    path("quotes/<int:quote_id>/update/", views.quote_update, name="quote-update"),
    path("quotes/<int:quote_id>/delete/", views.quote_delete, name="quote-delete"),
    path("quotes/<int:quote_id>/status/", views.quote_status, name="quote-status"),
    path("quotes/<int:quote_id>/duplicate/", views.quote_duplicate, name="quote-duplicate"),
    path("quotes/<int:quote_id>/convert/", views.quote_convert, name="quote-convert"),
    # Reports
    path("reports/receivables/", views.receivables_report, name="receivables-report"),
]
