"""Error taxonomy shared by the store, the services and the HTTP layer.

Each error carries the HTTP status it maps to, so the app-level handler in
``lekha/__init__.py`` can render every failure with the same envelope.
"""

from fastapi import status


class LedgerError(Exception):
    """Base class for every error raised by the ledger."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LedgerError, ValueError):
    """Malformed input. Also a ``ValueError`` so pydantic validators can raise it."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_message = "Validation error"


class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Customer not found"


class UnauthorizedError(NotFoundError):
    """The caller does not own the resource.

    Rendered exactly like ``NotFoundError`` so the existence of another
    owner's customer is never revealed.
    """


class UnauthenticatedError(LedgerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication credentials not provided"


class TransientStoreError(LedgerError):
    """The store failed in a way that is safe to retry as a whole."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The ledger is temporarily unavailable, please try again"


class WriteConflictError(TransientStoreError):
    """A concurrent append won the compare-and-swap on the customer balance."""

    default_message = "The customer was updated concurrently, please try again"


class ExternalServiceError(LedgerError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Could not generate the payment reminder. Please try again."
