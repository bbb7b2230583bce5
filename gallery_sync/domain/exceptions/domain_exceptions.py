"""Domain-specific exceptions.

Upload and persist failures abort the mutation task that raised them; the
queue compensates and moves on. Drain hook failures are logged at the drain
boundary and never reach the UI.
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UploadFailure(DomainException):
    """Raised when an asset could not be transferred to storage."""


class PersistFailure(DomainException):
    """Raised when the store rejects a create, update or delete."""


class DrainHookFailure(DomainException):
    """Raised when a reindex or count reconciliation is rejected."""


class ResourceNotFoundError(DomainException):
    """Raised when a local operation names an item that is not in the view."""
