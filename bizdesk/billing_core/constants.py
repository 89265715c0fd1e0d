"""
Billing constants: document statuses, allowed transitions, payment methods
and membership roles. Kept free of model imports so models and services can
both depend on it.
"""

# ---------- Quote ----------
QUOTE_DRAFT = "DRAFT"
QUOTE_SENT = "SENT"
QUOTE_ACCEPTED = "ACCEPTED"
QUOTE_REJECTED = "REJECTED"

QUOTE_STATUS_CHOICES = [
    (QUOTE_DRAFT, "Draft"),
    (QUOTE_SENT, "Sent"),
    (QUOTE_ACCEPTED, "Accepted"),
    (QUOTE_REJECTED, "Rejected"),
]

# Forward only, no skipping; accepted/rejected are terminal
QUOTE_TRANSITIONS = {
    QUOTE_DRAFT: (QUOTE_SENT,),
    QUOTE_SENT: (QUOTE_ACCEPTED, QUOTE_REJECTED),
    QUOTE_ACCEPTED: (),
    QUOTE_REJECTED: (),
}

# Statuses in which items / discount / tax may still change
QUOTE_EDITABLE_STATUSES = (QUOTE_DRAFT, QUOTE_SENT)

# ---------- Invoice ----------
INVOICE_PENDING = "PENDING"
INVOICE_PAID = "PAID"
INVOICE_CANCELLED = "CANCELLED"
# Display-only, never stored
INVOICE_OVERDUE = "OVERDUE"

INVOICE_STATUS_CHOICES = [
    (INVOICE_PENDING, "Pending"),
    (INVOICE_PAID, "Paid"),
    (INVOICE_CANCELLED, "Cancelled"),
]

# cancelled → pending is the reactivation path
INVOICE_TRANSITIONS = {
    INVOICE_PENDING: (INVOICE_PAID, INVOICE_CANCELLED),
    INVOICE_CANCELLED: (INVOICE_PENDING,),
    INVOICE_PAID: (),
}

INVOICE_TYPE_CHOICES = [
    ("SERVICE", "Service"),
    ("EQUIPMENT", "Equipment"),
]

# ---------- Payments ----------
PAYMENT_METHOD_CHOICES = [
    ("CASH", "Cash"),
    ("CARD", "Card"),
    ("TRANSFER", "Bank transfer"),
    ("STRIPE", "Stripe"),
]
PAYMENT_METHODS = tuple(code for code, _label in PAYMENT_METHOD_CHOICES)

# ---------- Membership roles ----------
ROLE_CHOICES = [
    ("owner", "Owner"),            # full control, created the company
    ("admin", "Admin"),            # manages settings, users, paid documents
    ("staff", "Staff"),            # day to day quoting and invoicing
    ("technician", "Technician"),  # field work, own documents
    ("viewer", "Viewer"),          # read-only access
]
# Roles allowed to edit paid invoices
ELEVATED_ROLES = ("owner", "admin")
