"""
Vistagram Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for each error scenario.
Why:   Services raise domain errors; global handlers (registered in main.py)
       turn them into consistent JSON bodies with the right status code.
How:   Each exception carries a user-safe message and an optional context
       dict that is logged but never returned to the client.

Exception Hierarchy:
    VistagramError (base)
    ├── ValidationError          → 400 Bad Request (names the offending field)
    ├── AuthenticationError      → 401 Unauthorized (generic message)
    │   └── InvalidTokenError    → 401 (bad signature, malformed, expired)
    ├── NotFoundError            → 404 Not Found
    ├── FileStorageError         → 500 Internal Server Error
    ├── LLMServiceError          → 503 Service Unavailable
    ├── CircuitBreakerOpenError  → 503 Service Unavailable
    ├── DatabaseError            → 500 Internal Server Error
    └── RateLimitExceededError   → 429 Too Many Requests

Authentication errors are deliberately uniform: "unknown email" and "wrong
password" produce the same message, and every token failure produces the
same message, so responses cannot be used as an enumeration oracle.
"""

from typing import Any, Dict, Optional


class VistagramError(Exception):
    """
    Base exception for all Vistagram application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(VistagramError):
    """
    Raised when client input fails validation or collides with a unique field.

    HTTP:    400 Bad Request
    Example: {"error": "email already exists", "details": {"field": "email"}}
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


class AuthenticationError(VistagramError):
    """
    Raised for bad credentials and missing/invalid/expired tokens.

    HTTP:    401 Unauthorized
    The `reason` is a machine-readable tag kept for logging only; the client
    sees `message`, which callers keep generic.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        reason: str = "unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reason"] = reason
        super().__init__(message=message, context=ctx)
        self.reason = reason


class InvalidTokenError(AuthenticationError):
    """
    Raised by the token verifier for ANY failure: bad signature, malformed
    payload, wrong token type, or past expiry. One message for all of them.
    """

    def __init__(
        self,
        message: str = "Invalid or expired token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, reason="invalid_or_expired", context=context)


class NotFoundError(VistagramError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found
    Message follows the "<Resource> not found" wording used by every route,
    e.g. "Post not found".
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(VistagramError):
    """
    Raised when reading or writing media on the storage volume fails.

    HTTP:    500 Internal Server Error (file system paths stay in the logs)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(VistagramError):
    """
    Raised when the text-generation service fails after all retries.

    HTTP:    503 Service Unavailable
    The seeding job catches this at every call site and substitutes a
    fallback value; it only reaches HTTP clients through the health check.
    """

    def __init__(
        self,
        message: str = "Text generation service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(VistagramError):
    """
    Raised when the Gemini circuit breaker is OPEN.

    HTTP:    503 Service Unavailable

    CLOSED → (threshold failures) → OPEN → (recovery timeout) → HALF_OPEN
    → success → CLOSED, failure → OPEN.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Text generation service is temporarily unavailable due to repeated failures. "
            f"Retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(VistagramError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error
    The client message is always generic; constraint names and SQL stay in
    the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(VistagramError):
    """
    Raised when a client exceeds the login/register rate limit.

    HTTP:    429 Too Many Requests, with a Retry-After header
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many authentication attempts. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
