"""
Application error taxonomy.

Every failure that reaches a client carries a stable ``kind``, an HTTP status
and a human-readable message. Validation failures additionally carry an
ordered list of field-level messages. The exception handlers registered in
``main.py`` turn these into JSON responses.
"""

from typing import List, Optional


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    kind = "error"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class Unauthenticated(AppError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Not authenticated"


class InvalidToken(Unauthenticated):
    kind = "invalid_token"
    default_message = "Invalid token"


class ExpiredToken(Unauthenticated):
    kind = "expired_token"
    default_message = "Token has expired"


class Forbidden(AppError):
    kind = "forbidden"
    status_code = 403
    default_message = "Access denied"


class NotFound(AppError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    kind = "conflict"
    status_code = 409
    default_message = "Conflict"


class InvalidTransition(AppError):
    kind = "invalid_transition"
    status_code = 400
    default_message = "Invalid status transition"


class ParentNotFound(AppError):
    kind = "parent_not_found"
    status_code = 400
    default_message = "Parent comment not found"


class ValidationFailed(AppError):
    kind = "validation_failed"
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors: Optional[List[str]] = None, message: Optional[str] = None):
        super().__init__(message)
        self.errors = list(errors or [])

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload
