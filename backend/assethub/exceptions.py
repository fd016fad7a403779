"""
AssetHub Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for every failure a business
       operation can report.
Why:   Callers (HTTP handlers, tests) need to tell "retry with different
       input" apart from "you will never be allowed to do this" and from
       "a backing service is down".
How:   Each exception carries a message and optional context dict.
       Global exception handlers (registered in main.py) map them to
       structured JSON error responses.

Exception Hierarchy:
    AssetHubError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── NotFoundError            → 404 Not Found
    ├── AccessDeniedError        → 403 Forbidden (404 when unrelated)
    ├── ConflictError            → 409 Conflict
    ├── EventDecodeError         → consumer side only, never reaches HTTP
    └── DependencyError          → 503 Service Unavailable (transient)
        ├── DatabaseError        → 500 Internal Server Error
        ├── CacheError           → never surfaced by business operations
        │   └── CircuitBreakerOpenError
        └── EventBusError        → never surfaced by business operations
"""

from typing import Any, Dict, Optional


class AssetHubError(Exception):
    """
    Base exception for all AssetHub application errors.

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


class ValidationError(AssetHubError):
    """
    Raised when client input fails a business rule.

    When:    Bad access level, empty required field, self-share, assigning a
             team manager without the global manager role.
    HTTP:    400 Bad Request

    Always raised before any Store write is attempted.
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


class NotFoundError(AssetHubError):
    """
    Raised when a referenced entity does not exist.

    HTTP:    404 Not Found

    Never used for "exists but you may not see it"; see AccessDeniedError.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class AccessDeniedError(AssetHubError):
    """
    Raised when an entity exists but the requestor lacks the relationship
    (ownership, grant, team role) the operation needs.

    HTTP:    403 Forbidden, or 404 when `unrelated` is set

    `unrelated` marks a requestor with no relationship to the entity at all.
    The transport answers those with a plain not-found so that probing IDs
    reveals nothing about other users' data.
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        unrelated: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.unrelated = unrelated


class ConflictError(AssetHubError):
    """
    Raised when the requested state already exists.

    When:    Adding a member who is already a member or manager, promoting
             someone who already manages the team.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The resource is in a conflicting state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EventDecodeError(AssetHubError):
    """Raised when a consumed change-event payload cannot be parsed."""

    def __init__(
        self,
        message: str = "Could not decode change event",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DependencyError(AssetHubError):
    """
    A backing service call failed unexpectedly.

    HTTP:    503 Service Unavailable

    Transient by nature, so a client may retry. Only the Store variant ever
    reaches a caller: cache and event-bus failures are downgraded to warnings
    inside the service layer.
    """

    def __init__(
        self,
        message: str = "A backing service is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(DependencyError):
    """
    Raised when a Store query or commit fails.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. SQL, constraint
        names and driver errors are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CacheError(DependencyError):
    """Raised by cache mutations (incremental updates, invalidation) on transport failure."""

    def __init__(
        self,
        message: str = "Cache operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(CacheError):
    """
    Raised when the cache circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (skip the cache for M seconds)
        → After M seconds → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again

    While open, reads miss instantly instead of waiting for a socket timeout,
    so a dead cache costs requests nothing beyond the Store round trip.
    """

    def __init__(
        self,
        recovery_time: int = 30,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(
            message=f"Cache is bypassed for approximately {recovery_time} more seconds",
            context=ctx,
        )
        self.recovery_time = recovery_time


class EventBusError(DependencyError):
    """Raised when publishing to or subscribing on the event bus fails."""

    def __init__(
        self,
        message: str = "Event bus operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
