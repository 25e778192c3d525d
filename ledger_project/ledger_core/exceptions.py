from django.core.exceptions import ObjectDoesNotExist, ValidationError

# Re-exported so callers can catch every ledger error from one module
__all__ = [
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "PersistenceError",
    "UnbalancedJournalError",
]


class NotFoundError(ObjectDoesNotExist):
    """Raised when a row is absent or belongs to another organization.

    Both cases produce the same error so callers cannot probe for
    other tenants' records.
    """
    pass


class ConflictError(Exception):
    """Raised when a status transition's precondition does not hold."""
    pass


class PersistenceError(Exception):
    """Raised when the database fails during a multi-step write.

    The surrounding transaction has already been rolled back.
    """
    pass


class UnbalancedJournalError(Exception):
    """Raised when a JournalEntry fails double-entry balance check."""
    pass
