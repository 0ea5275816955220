"""Domain exceptions for the application.

Presentation layer maps them to HTTP responses in exception handlers
(app.core.exception_handlers) using error_code.
"""

from typing import Any


class OrgSuiteException(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the exception handler."""
        body: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationException(OrgSuiteException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(OrgSuiteException):
    """Raised when no authenticated user is available for a protected route."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthorizationException(OrgSuiteException):
    """Raised when the user lacks required permissions for the operation."""

    def __init__(
        self,
        resource: str | None = None,
        action: str | None = None,
        message: str = "Permission denied",
    ) -> None:
        """Initialize with optional resource, action, and message.

        Args:
            resource: Optional resource type (e.g. 'audit_log').
            action: Optional action that was attempted (e.g. 'read').
            message: Human-readable message; default used when resource/action omitted.
        """
        if resource and action:
            message = f"Permission denied: {action} on {resource}"
        details: dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, "PERMISSION_DENIED", details)


class TooManyFailedAttemptsException(OrgSuiteException):
    """Raised while a client IP is locked out after repeated failed logins."""

    def __init__(self, message: str, retry_after_seconds: int | None = None) -> None:
        details = (
            {"retry_after_seconds": retry_after_seconds}
            if retry_after_seconds is not None
            else {}
        )
        super().__init__(message, "TOO_MANY_FAILED_ATTEMPTS", details)


class SuspiciousRequestException(OrgSuiteException):
    """Raised when the block policy is active and a request matches an attack heuristic."""

    def __init__(self, threat_types: list[str]) -> None:
        super().__init__(
            "Request rejected",
            "SUSPICIOUS_REQUEST",
            {"threat_types": threat_types},
        )
