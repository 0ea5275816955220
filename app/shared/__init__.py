"""Shared utilities: request context, enums, and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from app.shared.context import (
    AuthenticatedUser,
    ClientInfo,
    get_client_info,
    get_correlation_id,
    get_request_user,
    get_session_id,
)
from app.shared.enums import (
    AuditCategory,
    AuditSeverity,
    AuditStatus,
    TargetType,
    ThreatType,
)
from app.shared.utils import (
    compute_changes,
    ensure_utc,
    generate_correlation_id,
    generate_cuid,
    redact,
    utc_now,
)

__all__ = [
    "AuthenticatedUser",
    "ClientInfo",
    "get_client_info",
    "get_correlation_id",
    "get_request_user",
    "get_session_id",
    "AuditCategory",
    "AuditSeverity",
    "AuditStatus",
    "TargetType",
    "ThreatType",
    "compute_changes",
    "ensure_utc",
    "generate_correlation_id",
    "generate_cuid",
    "redact",
    "utc_now",
]
