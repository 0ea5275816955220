"""Request/response schemas for audit log API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditLogEntryResponse(BaseModel):
    """Single audit log entry (read). Field names are the stored record format."""

    model_config = ConfigDict(from_attributes=True)

    log_id: str
    user_id: str | None = None
    user_email: str | None = None
    user_name: str | None = None
    action: str
    action_description: str | None = None
    target_type: str | None = None
    target_id: str | None = None
    target_table: str | None = None
    before_data: Any = None
    after_data: Any = None
    changes: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_url: str | None = None
    request_method: str | None = None
    request_body: Any = None
    response_status: int | None = None
    status: str
    error_message: str | None = None
    duration_ms: int | None = None
    organization_id: str | None = None
    session_id: str | None = None
    correlation_id: str | None = None
    severity: str
    category: str | None = None
    metadata: dict[str, Any] | None = None
    tags: list[str] | None = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    """Unpaged list of audit log entries."""

    data: list[AuditLogEntryResponse]
    total: int


class AuditLogPageResponse(BaseModel):
    """One page of audit log entries."""

    logs: list[AuditLogEntryResponse]
    total: int
    page: int
    total_pages: int


class CountByValueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: str | None
    count: int


class AuditStatsResponse(BaseModel):
    """Aggregate audit statistics for a time range."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    by_action: list[CountByValueResponse]
    by_status: list[CountByValueResponse]
    by_severity: list[CountByValueResponse]
    by_category: list[CountByValueResponse]
    start_date: datetime | None = None
    end_date: datetime | None = None


class ExportResponse(BaseModel):
    """Downloadable export of audit log entries."""

    exported_at: datetime
    total: int
    data: list[AuditLogEntryResponse]


class CleanupRequest(BaseModel):
    """Body for POST /audit-logs/cleanup."""

    retention_days: int = Field(default=90, ge=1, description="Keep entries newer than this")


class CleanupResponse(BaseModel):
    """Result of a retention sweep."""

    deleted: int
    retention_days: int
