"""
Error taxonomy shared by the ride state machine and the wallet engine.

Every failure surfaces as one of these typed errors; the API layer maps
each class to exactly one HTTP status code.
"""


class DomainError(Exception):
    """Base class for all expected business / infrastructure failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed or missing input. The caller must correct it."""


class AuthError(DomainError):
    """Bad, expired or revoked credential. The client must re-authenticate."""


class ForbiddenError(DomainError):
    """Authenticated but not entitled to the resource."""


class NotFoundError(DomainError):
    """The referenced resource does not exist."""


class ConflictError(DomainError):
    """A state precondition was violated (double accept, double cancel, ...)."""


class InsufficientFundsError(DomainError):
    """The operation would leave a wallet with a negative balance."""


class StoreUnavailableError(DomainError):
    """Transient store failure. Safe to retry with backoff."""
