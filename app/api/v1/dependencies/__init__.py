"""Presentation-layer dependency injection (composition root).

Routes depend on these, not on infrastructure directly. Services are built
once in the lifespan and read from app.state.
"""

from app.api.v1.dependencies.audit import (
    audit_change,
    audit_log,
    ensure_correlation_id,
    get_audit_service,
    require_audit_service,
)
from app.api.v1.dependencies.auth import get_current_user, require_audit_admin
from app.api.v1.dependencies.security import (
    check_brute_force,
    detect_suspicious_patterns,
    get_security_monitor,
)
from app.middleware.audit_log import AuditOptions

__all__ = [
    "AuditOptions",
    "audit_change",
    "audit_log",
    "check_brute_force",
    "detect_suspicious_patterns",
    "ensure_correlation_id",
    "get_audit_service",
    "get_current_user",
    "get_security_monitor",
    "require_audit_admin",
    "require_audit_service",
]
