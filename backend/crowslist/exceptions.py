"""
Crowslist Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure a request can end in.
Why:   Services raise domain errors; global handlers (registered in main.py)
       turn them into JSON responses with the right HTTP status. Services
       never build HTTP responses themselves.
How:   Each exception class carries a user-facing message and an optional
       context dict. Context is logged, never returned for 5xx errors.

Exception Hierarchy:
    CrowslistError (base)
    ├── ValidationError          → 400 (bad input shape, domain, enum)
    ├── AuthError                → 400 (bad credentials, unverified email)
    ├── ConflictError            → 400 (email already registered)
    ├── AuthRequiredError        → 401 (no session, or session expired)
    ├── NotFoundError            → 404 (missing OR not owned, deliberately the same)
    ├── RateLimitExceededError   → 429
    └── InternalError            → 500
        ├── DatabaseError
        └── FileStorageError

Authentication messages are generic on purpose: "Invalid email or password"
is raised whether the email is unknown or the password is wrong.
"""

from typing import Any, Dict, Optional


class CrowslistError(Exception):
    """
    Base exception for all Crowslist application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; only echoed for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(CrowslistError):
    """
    Raised when client input fails a business rule.

    When:    Non-institutional email, unknown category or status, negative price,
             too many images, unknown verification code.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthError(CrowslistError):
    """
    Raised when a login attempt is refused.

    HTTP:    400 Bad Request (the client can retry with different input)
    """

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message=message)


class ConflictError(CrowslistError):
    """Raised when registering an email that already has an account. HTTP 400."""

    def __init__(
        self,
        message: str = "User already exists with this email",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthRequiredError(CrowslistError):
    """
    Raised when an endpoint needs a session and the request has none.

    When:    Missing cookie, unknown token, or an expired session.
    HTTP:    401 Unauthorized
    """

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message)


class NotFoundError(CrowslistError):
    """
    Raised when a requested resource does not exist or is not the caller's.

    Ownership-scoped lookups filter on (id, owner) together, so "no such
    listing" and "someone else's listing" are indistinguishable here and in
    the 404 the client receives.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class RateLimitExceededError(CrowslistError):
    """Raised when a client exceeds the per-IP limit on credential endpoints. HTTP 429."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many attempts. Please wait {retry_after} seconds before trying again."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class InternalError(CrowslistError):
    """
    Raised when the server, not the client, is at fault.

    HTTP:    500 Internal Server Error
    The response body is always generic; `context` is logged server-side only.
    """

    def __init__(
        self,
        message: str = "An internal error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(InternalError):
    """
    Raised when a database operation fails unexpectedly.

    When:    Connection lost mid-query, deadlock, unexpected constraint failure.
    Detailed error info (SQL, constraint names) goes to the log only; it could
    reveal schema details to an attacker.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(InternalError):
    """Raised when an uploaded image cannot be written to the storage volume."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
