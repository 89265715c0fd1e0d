from django.core.exceptions import ValidationError

# -------------------------------------------------------------
# Typed rejections raised by billing rules.
# All of them are ValidationErrors so views and admin actions
# that already handle ValidationError report them to the user.
# -------------------------------------------------------------


class StateError(ValidationError):
    """Raised when a status transition or edit is not allowed
    from the document's current status."""
    pass


class BalanceError(ValidationError):
    """Raised when a payment amount is not positive or exceeds
    the invoice balance (plus tolerance)."""

    def __init__(self, message, balance=None, **kwargs):
        super().__init__(message, **kwargs)
        # exact outstanding balance, so the caller can self-correct
        self.balance = balance


class LinkError(ValidationError):
    """Raised when a quote that already produced an invoice
    is converted again."""
    pass
