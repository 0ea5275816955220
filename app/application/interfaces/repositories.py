"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs only; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from app.application.dtos.audit_log import (
        AuditLogEntryCreate,
        AuditLogFilters,
        AuditLogPage,
        AuditLogResult,
        AuditStats,
        QueryOptions,
    )


class IAuditLogRepository(Protocol):
    """Protocol for the append-only audit log store (DIP)."""

    async def create(self, entry: AuditLogEntryCreate) -> AuditLogResult:
        """Append one entry; return the persisted record."""

    async def bulk_create(self, entries: list[AuditLogEntryCreate]) -> list[AuditLogResult]:
        """Append many entries in one transaction."""

    async def find_by_id(self, log_id: str) -> AuditLogResult | None:
        """Return entry by log_id."""

    async def query(self, filters: AuditLogFilters, options: QueryOptions) -> AuditLogPage:
        """Return one page of entries matching filters."""

    async def count(self, filters: AuditLogFilters) -> int:
        """Return number of entries matching filters."""

    async def find_by_user(self, user_id: str, limit: int = 50) -> list[AuditLogResult]:
        """Return a user's entries, newest first."""

    async def find_recent(self, limit: int = 100) -> list[AuditLogResult]:
        """Return the newest entries."""

    async def find_security_events(
        self, start: datetime, end: datetime, limit: int = 100
    ) -> list[AuditLogResult]:
        """Return SECURITY-category entries in [start, end], newest first."""

    async def find_failed_actions(self, limit: int = 100) -> list[AuditLogResult]:
        """Return FAILED/ERROR entries, newest first."""

    async def delete_old_logs(self, retention_days: int) -> int:
        """Delete entries older than now - retention_days. Return count deleted."""

    async def get_stats(self, start: datetime, end: datetime) -> AuditStats:
        """Return aggregate counts for entries in [start, end]."""
