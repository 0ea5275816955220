"""Shared enumerations for the audit and security pipeline.

Values are stored verbatim in sys_audit_logs, so they are part of the
log record format read by downstream consumers and dashboards.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class AuditStatus(_ValuesMixin, str, Enum):
    """Outcome of an audited action."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    ERROR = "ERROR"
    WARNING = "WARNING"
    PARTIAL = "PARTIAL"


class AuditSeverity(_ValuesMixin, str, Enum):
    """Urgency of an audit log entry."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AuditCategory(_ValuesMixin, str, Enum):
    """Domain classification of an audit log entry."""

    SECURITY = "SECURITY"
    BUSINESS = "BUSINESS"
    SYSTEM = "SYSTEM"
    PERFORMANCE = "PERFORMANCE"
    COMPLIANCE = "COMPLIANCE"
    OTHER = "OTHER"


class TargetType(_ValuesMixin, str, Enum):
    """Kind of resource an audited action touched."""

    USER = "USER"
    ORGANIZATION = "ORGANIZATION"
    MEMBER = "MEMBER"
    INVITATION = "INVITATION"
    TOKEN = "TOKEN"
    SYSTEM = "SYSTEM"
    OTHER = "OTHER"


class ThreatType(_ValuesMixin, str, Enum):
    """Classification of a suspicious request."""

    SQL_INJECTION = "SQL_INJECTION"
    XSS = "XSS"
    SUSPICIOUS_USER_AGENT = "SUSPICIOUS_USER_AGENT"
    BRUTE_FORCE = "BRUTE_FORCE"
