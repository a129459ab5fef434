"""
Error taxonomy shared by the services and the HTTP layer.

Each error carries the HTTP status it maps to, so the exception handlers in
main.py only have to read it back.
"""

from typing import List, Optional


class ServiceError(Exception):
    """Base exception for all order backend errors."""

    status_code = 500
    code = "INTERNAL"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInput(ServiceError):
    """Raised when a request fails validation. Carries every violation found."""

    status_code = 400
    code = "INVALID_INPUT"

    def __init__(self, message: str = "Validation failed", violations: Optional[List[str]] = None):
        self.violations = violations or []
        if self.violations:
            message = ", ".join(self.violations)
        super().__init__(message)


class Conflict(ServiceError):
    """Raised when a unique field already holds the submitted value."""

    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class Internal(ServiceError):
    """Unexpected failure in a collaborator (database, object storage)."""

    def __init__(self, message: str = "Internal Server Error", original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


class RateLimited(ServiceError):
    status_code = 429
    code = "RATE_LIMITED"
