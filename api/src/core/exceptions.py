"""Domain error kinds shared by the grading and progress core.

Every business failure is one of four kinds. Services raise subclasses
carrying a machine-readable ``code``; routers translate them with
``handle_domain_error``.
"""

from fastapi import HTTPException, status


class DomainError(Exception):
    """Base error for business rule violations."""

    default_message = "Operation failed"
    default_code = "domain_error"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)


class NotFoundError(DomainError):
    """A referenced entity does not exist (or does not belong together)."""

    default_message = "Resource not found"
    default_code = "not_found"


class InvalidStateError(DomainError):
    """Operation not allowed in the entity's current state."""

    default_message = "Operation not allowed in current state"
    default_code = "invalid_state"


class ConflictError(DomainError):
    """Operation conflicts with an existing record."""

    default_message = "Conflicting record exists"
    default_code = "conflict"


class ExpiredError(DomainError):
    """A time-bounded operation was attempted too late."""

    default_message = "Time limit exceeded"
    default_code = "expired"


_STATUS_BY_KIND: list[tuple[type[DomainError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExpiredError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def status_for(error: DomainError) -> int:
    """HTTP status code for a domain error kind."""
    for kind, status_code in _STATUS_BY_KIND:
        if isinstance(error, kind):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def handle_domain_error(error: DomainError) -> HTTPException:
    """Convert a domain error to an HTTPException.

    The detail carries both the message and the code so clients can
    branch on the code without parsing text.
    """
    return HTTPException(
        status_code=status_for(error),
        detail={"message": error.message, "code": error.code},
    )
