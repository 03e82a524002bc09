from __future__ import annotations

from typing import Any, Optional

from .enums import ErrorCode


class DomainError(Exception):
    """Base exception for business rule violations.

    Carries a machine-readable code and structured details so callers can
    render their own message.
    """

    default_code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str = "", *, code: Optional[ErrorCode] = None, **details: Any):
        self.code = code or self.default_code
        self.details = details
        super().__init__(message or self.code.value)

    def to_dict(self) -> dict:
        return {"error": self.code.value, "message": str(self), **self.details}


class ValidationError(DomainError):
    """Raised when input data is malformed."""


class NotFoundError(DomainError):
    """Raised when a referenced student, center, user or record does not exist."""


class AdmissionRejected(DomainError):
    """Raised when a check-in, check-out or scan is not admissible."""


class EditRejected(DomainError):
    """Raised when an admin edit would violate a record invariant."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""

    default_code = ErrorCode.INVALID_CREDENTIALS


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    default_code = ErrorCode.FORBIDDEN
