# Business workflows for quotes, invoices and payments.
# Import the submodules directly (e.g. `from billing_core.services.payment
# import apply_payment`); models import services.totals, so this package
# must not import models at load time.
