"""Domain layer: exceptions raised by audit and security operations.

No dependencies on infrastructure or presentation.
"""

from app.domain.exceptions import (
    AuthenticationException,
    AuthorizationException,
    OrgSuiteException,
    SuspiciousRequestException,
    TooManyFailedAttemptsException,
    ValidationException,
)

__all__ = [
    "AuthenticationException",
    "AuthorizationException",
    "OrgSuiteException",
    "SuspiciousRequestException",
    "TooManyFailedAttemptsException",
    "ValidationException",
]
