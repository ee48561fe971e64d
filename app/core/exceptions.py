"""
Domain errors raised by the booking core.

The HTTP layer maps each kind onto a status code; nothing in the core
knows about transport.
"""


class DomainError(Exception):
    """Base class for every error the booking core raises on purpose."""

    kind = "Error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.kind

    def __str__(self):
        return self.message


class NotFoundError(DomainError):
    kind = "Not Found"


class ForbiddenError(DomainError):
    kind = "Forbidden"


class ValidationError(DomainError):
    kind = "Validation Error"


class ConflictError(DomainError):
    kind = "Conflict"


class InvalidTransitionError(DomainError):
    kind = "Invalid Transition"


class InternalError(DomainError):
    """Storage or infrastructure failure; retrying is the caller's call."""

    kind = "Internal Error"
