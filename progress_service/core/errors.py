"""Domain error taxonomy shared by every service in the engine.

Services raise these; the HTTP layer maps each class to one status code
(see progress_service.api.errors).  Anything else escaping a service is a
bug or an infrastructure failure and surfaces as a 500.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class.  ``code`` is a stable machine-readable identifier."""

    code = "domain_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    code = "not_found"


class ConflictError(DomainError):
    """Duplicate record or an illegal state transition."""

    code = "conflict"


class AuthorizationError(DomainError):
    """The acting user lacks the role the operation requires."""

    code = "forbidden"


class ValidationError(DomainError):
    """Malformed grade, status or identifier."""

    code = "invalid"


class DuplicateKeyError(ValueError):
    """Store-level uniqueness violation raised by repositories.

    Services translate it into ConflictError where the duplicate matters
    to the caller.
    """
