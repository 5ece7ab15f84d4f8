# billing/exceptions.py
from django.core.exceptions import ValidationError


class BillingError(ValidationError):
    """
    Base for document lifecycle errors.

    ``payload`` is merged into the JSON error body, e.g. {"invoice_id": 12}.
    """

    def __init__(self, message, *, payload=None, code=None):
        super().__init__(message, code=code)
        self.payload = dict(payload or {})


class DocumentConflict(BillingError):
    """The deal already has an invoice / the invoice already has a receipt."""


class DocumentLocked(BillingError):
    """Edit attempted on a confirmed document without a status change."""


class PreconditionFailed(BillingError):
    """The document is not in a state that allows the operation."""
