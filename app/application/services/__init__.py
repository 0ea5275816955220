"""Application services: audit logging and audit classification rules."""

from app.application.services.audit_classification import (
    category_of,
    severity_of,
    table_for,
)
from app.application.services.audit_log_service import AuditLogService

__all__ = [
    "AuditLogService",
    "category_of",
    "severity_of",
    "table_for",
]
