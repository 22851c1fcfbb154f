"""
Baby Diary Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every failure the API reports.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) map them to
       HTTP status codes and the uniform JSON envelope.
Who:   Raised by services and the permission dependencies; caught by handlers.

Exception Hierarchy:
    DiaryError (base)
    ├── ValidationError     → 400 Bad Request   (+ errors list)
    ├── UnauthorizedError   → 401 Unauthorized
    ├── ForbiddenError      → 403 Forbidden
    ├── NotFoundError       → 404 Not Found
    ├── ConflictError       → 409 Conflict
    ├── FileStorageError    → 500 Internal Server Error
    └── DatabaseError       → 500 Internal Server Error

    `context` is logged server-side and never returned to the client.
"""

from typing import Any, Dict, List, Optional


class DiaryError(Exception):
    """
    Base exception for all Baby Diary application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(DiaryError):
    """
    Raised when client input fails a business rule.

    Schema-level problems (missing fields, wrong types) are reported by
    FastAPI's RequestValidationError and mapped to the same 400 envelope.

    Example response:
        {
            "success": false,
            "error": "validation_error",
            "message": "Invalid input data",
            "errors": ["content: must not be blank"]
        }
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Invalid input data",
        field: Optional[str] = None,
        errors: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        self.errors = errors or []


class UnauthorizedError(DiaryError):
    """
    Missing, malformed or expired credential, or bad login credentials.

    Login uses one message for "unknown email" and "wrong password".
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(DiaryError):
    """Authenticated, but lacking family membership or ownership."""

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(DiaryError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that None into
    this exception so the handler can answer 404.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(DiaryError):
    """Raised when a unique resource already exists (duplicate email)."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(DiaryError):
    """
    Raised when writing to or deleting from upload storage fails.

    Covers both the local disk backend and the object-storage backend.
    The client only ever sees `message`; paths and SDK errors go in `context`.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(DiaryError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the original
    error type is kept in `context` for the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
