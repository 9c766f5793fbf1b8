"""
Shared exceptions for service layer operations.

Every error the domain raises deliberately is an AppError carrying its HTTP
status; the API layer's exception handlers are the only place these are
translated into responses.
"""
from typing import Any


class AppError(Exception):
    """Base class for expected application errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    """
    Raised when input fails structural validation.

    ``details`` is a list of ``{"field": ..., "message": ...}`` violations.
    """

    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class UnauthorizedError(AppError):
    """Raised on credential or token failure. The cause is never exposed to the client."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    """Raised when access is denied, e.g. a rate limit block."""

    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundError(AppError):
    """Raised when a resource does not exist."""

    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class InternalError(AppError):
    """Wraps an unexpected failure so callers only ever see AppError subclasses."""
