from .auditlog import AuditLog
from .client import Client
from .entitymembership import Company, EntityMembership
from .invoice import Invoice, InvoiceLine, Payment
from .quote import Quote, QuoteLine
