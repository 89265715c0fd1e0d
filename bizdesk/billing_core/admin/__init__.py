from .actions import (accept_quotes, convert_quotes, email_invoices,
                      mark_inv_as_cancelled, mark_inv_as_paid,
                      mark_inv_as_pending, reject_quotes, send_quotes)
from .auditlog import AuditLogAdmin
from .inlines import InvoiceLineInline, PaymentInline, QuoteLineInline
from .invoice import ClientAdmin, InvoiceAdmin, PaymentAdmin
from .membership import CompanyAdmin, EntityMembershipAdmin
from .mixins import AppendOnlyAdminMixin, TenantAdminMixin
from .quote import QuoteAdmin
