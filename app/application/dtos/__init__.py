"""Application DTOs (no ORM dependency)."""

from app.application.dtos.audit_log import (
    AuditLogEntryCreate,
    AuditLogFilters,
    AuditLogPage,
    AuditLogResult,
    AuditStats,
    CountByValue,
    QueryOptions,
)

__all__ = [
    "AuditLogEntryCreate",
    "AuditLogFilters",
    "AuditLogPage",
    "AuditLogResult",
    "AuditStats",
    "CountByValue",
    "QueryOptions",
]
