# feerecon/core/errors.py

"""
Errors raised by the reconciliation service.

Routers translate these into HTTP status codes; persistence errors are not
wrapped and propagate unchanged.
"""


class ReconciliationError(Exception):
    """Base class for reconciliation errors."""


class NotFoundError(ReconciliationError):
    """A referenced transaction, fee, warning, IBAN or child does not exist."""


class InvalidInputError(ReconciliationError):
    """The request is malformed or not applicable to the referenced entity."""


class ConflictError(ReconciliationError):
    """The entity is already in the requested terminal state."""
