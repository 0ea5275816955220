"""Pydantic request/response schemas for the API."""

from app.schemas.audit_log import (
    AuditLogEntryResponse,
    AuditLogListResponse,
    AuditLogPageResponse,
    AuditStatsResponse,
    CleanupRequest,
    CleanupResponse,
    ExportResponse,
)
from app.schemas.health import HealthResponse, ReadinessResponse

__all__ = [
    "AuditLogEntryResponse",
    "AuditLogListResponse",
    "AuditLogPageResponse",
    "AuditStatsResponse",
    "CleanupRequest",
    "CleanupResponse",
    "ExportResponse",
    "HealthResponse",
    "ReadinessResponse",
]
