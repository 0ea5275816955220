"""DTOs for the audit log (structured, append-only action log)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class AuditLogEntryCreate:
    """Input for appending one audit log record.

    Only action is required. status/severity/created_at are filled in by
    AuditLogService.log when left as None; explicit values are kept.
    """

    action: str
    action_description: str | None = None

    # Actor snapshot (not a join: kept even if the user record changes later)
    user_id: str | None = None
    user_email: str | None = None
    user_name: str | None = None

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

    status: str | None = None
    error_message: str | None = None
    duration_ms: int | None = None

    organization_id: str | None = None
    session_id: str | None = None
    correlation_id: str | None = None

    severity: str | None = None
    category: str | None = None
    metadata: dict[str, Any] | None = None
    tags: list[str] | None = None

    created_at: datetime | None = None

    # Not persisted: ask log() to mint a correlation_id when none is set.
    generate_correlation_id: bool = False


@dataclass(frozen=True)
class AuditLogResult:
    """Single persisted audit log entry (read-model)."""

    log_id: str
    action: str
    created_at: datetime
    status: str
    severity: str
    action_description: str | None = None
    user_id: str | None = None
    user_email: str | None = None
    user_name: str | None = None
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
    error_message: str | None = None
    duration_ms: int | None = None
    organization_id: str | None = None
    session_id: str | None = None
    correlation_id: str | None = None
    category: str | None = None
    metadata: dict[str, Any] | None = None
    tags: list[str] | None = None


@dataclass(frozen=True)
class AuditLogFilters:
    """Filters for AuditLogRepository.query. None means "no filter"."""

    user_id: str | None = None
    user_email: str | None = None  # case-insensitive substring
    action: str | None = None
    actions: tuple[str, ...] | None = None
    target_type: str | None = None
    target_id: str | None = None
    target_table: str | None = None
    status: str | None = None
    severity: str | None = None
    category: str | None = None
    organization_id: str | None = None
    ip_address: str | None = None
    session_id: str | None = None
    correlation_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


SORTABLE_FIELDS: frozenset[str] = frozenset(
    {"created_at", "action", "status", "severity", "category", "duration_ms", "user_email"}
)


@dataclass(frozen=True)
class QueryOptions:
    """Paging and ordering for AuditLogRepository.query."""

    page: int = 1
    limit: int = 50
    sort_by: str = "created_at"
    sort_order: str = "DESC"

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"Unsupported sort_by: {self.sort_by!r}")
        if self.sort_order.upper() not in ("ASC", "DESC"):
            raise ValueError("sort_order must be ASC or DESC")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class AuditLogPage:
    """One page of query results."""

    logs: list[AuditLogResult]
    total: int
    page: int
    total_pages: int


@dataclass(frozen=True)
class CountByValue:
    """Count of entries sharing one value of a grouped column."""

    value: str | None
    count: int


@dataclass(frozen=True)
class AuditStats:
    """Aggregate statistics over a time range."""

    total: int
    by_action: list[CountByValue] = field(default_factory=list)
    by_status: list[CountByValue] = field(default_factory=list)
    by_severity: list[CountByValue] = field(default_factory=list)
    by_category: list[CountByValue] = field(default_factory=list)
