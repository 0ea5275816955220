"""Audit log service: redaction, diffing and classification in front of the store.

log() is best-effort. A failed write is reported once on the operational
logger and swallowed, so an audit outage never breaks the request that
triggered it. cleanup() is the one operation whose failures propagate.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from app.application.dtos.audit_log import (
    AuditLogEntryCreate,
    AuditLogFilters,
    AuditLogPage,
    AuditLogResult,
    AuditStats,
    QueryOptions,
)
from app.application.interfaces.repositories import IAuditLogRepository
from app.core.constants import SECURITY_EVENT_TAGS
from app.shared.enums import (
    AuditCategory,
    AuditSeverity,
    AuditStatus,
    TargetType,
)
from app.shared.utils.datetime import utc_now
from app.shared.utils.diff import compute_changes
from app.shared.utils.generators import generate_correlation_id
from app.shared.utils.redaction import redact

logger = logging.getLogger(__name__)

_ENTRY_FIELDS = frozenset(f.name for f in dataclasses.fields(AuditLogEntryCreate))

SUSPICIOUS_ACTIONS: tuple[str, ...] = ("FAILED_LOGIN", "SUSPICIOUS_ACTIVITY")


def _value(v: Any) -> Any:
    """Unwrap str Enums so the store only sees plain strings."""
    return getattr(v, "value", v)


def _with_extra(entry: AuditLogEntryCreate, extra: dict[str, Any] | None) -> AuditLogEntryCreate:
    """Apply caller overrides; keys that are not entry fields go to metadata."""
    if not extra:
        return entry
    known = {k: v for k, v in extra.items() if k in _ENTRY_FIELDS}
    unknown = {k: v for k, v in extra.items() if k not in _ENTRY_FIELDS}
    if unknown:
        merged = dict(entry.metadata or {})
        merged.update(known.pop("metadata", None) or {})
        merged.update(unknown)
        known["metadata"] = merged
    return dataclasses.replace(entry, **known)


class AuditLogService:
    """Writes and reads audit log entries through an IAuditLogRepository."""

    def __init__(
        self,
        repository: IAuditLogRepository,
        *,
        export_limit: int = 10000,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._export_limit = export_limit
        self._clock = clock

    def prepare(self, entry: AuditLogEntryCreate) -> AuditLogEntryCreate:
        """Return the entry as it will be stored: redacted, diffed, defaulted."""
        before = redact(entry.before_data)
        after = redact(entry.after_data)
        changes = entry.changes
        if changes is None and before is not None and after is not None:
            changes = compute_changes(before, after)
        correlation_id = entry.correlation_id
        if not correlation_id and entry.generate_correlation_id:
            correlation_id = generate_correlation_id()
        return dataclasses.replace(
            entry,
            action=_value(entry.action),
            target_type=_value(entry.target_type),
            before_data=before,
            after_data=after,
            request_body=redact(entry.request_body),
            changes=changes,
            status=_value(entry.status) or AuditStatus.SUCCESS.value,
            severity=_value(entry.severity) or AuditSeverity.INFO.value,
            category=_value(entry.category),
            created_at=entry.created_at or self._clock(),
            correlation_id=correlation_id,
            generate_correlation_id=False,
        )

    async def log(self, entry: AuditLogEntryCreate) -> AuditLogResult | None:
        """Persist one entry. Never raises; returns None when the write fails."""
        try:
            return await self._repo.create(self.prepare(entry))
        except Exception:
            logger.exception("Failed to create audit log entry (action=%s)", entry.action)
            return None

    async def log_auth(
        self,
        action: str,
        user_id: str | None,
        email: str | None,
        name: str | None,
        ip_address: str | None,
        user_agent: str | None,
        extra: dict[str, Any] | None = None,
    ) -> AuditLogResult | None:
        """Log an authentication event (login, logout, password change...)."""
        entry = AuditLogEntryCreate(
            action=action,
            user_id=user_id,
            user_email=email,
            user_name=name,
            target_type=TargetType.USER.value,
            target_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            category=AuditCategory.SECURITY.value,
            severity=(
                AuditSeverity.WARNING.value if "FAILED" in action else AuditSeverity.INFO.value
            ),
        )
        return await self.log(_with_extra(entry, extra))

    async def log_data_change(
        self,
        action: str,
        target_type: str | None,
        target_id: str | None,
        target_table: str | None,
        before: Any,
        after: Any,
        user_id: str | None,
        extra: dict[str, Any] | None = None,
    ) -> AuditLogResult | None:
        """Log a create/update/delete with before and after snapshots."""
        entry = AuditLogEntryCreate(
            action=action,
            user_id=user_id,
            target_type=_value(target_type),
            target_id=target_id,
            target_table=target_table,
            before_data=before,
            after_data=after,
            category=AuditCategory.BUSINESS.value,
            severity=AuditSeverity.INFO.value,
        )
        return await self.log(_with_extra(entry, extra))

    async def log_security(
        self,
        action: str,
        description: str | None,
        user_id: str | None,
        ip_address: str | None,
        severity: str = AuditSeverity.WARNING.value,
        extra: dict[str, Any] | None = None,
    ) -> AuditLogResult | None:
        """Log a security event, tagged for the monitoring dashboards."""
        entry = AuditLogEntryCreate(
            action=action,
            action_description=description,
            user_id=user_id,
            ip_address=ip_address,
            category=AuditCategory.SECURITY.value,
            severity=_value(severity),
            tags=list(SECURITY_EVENT_TAGS),
        )
        return await self.log(_with_extra(entry, extra))

    async def log_system(
        self,
        action: str,
        description: str | None,
        severity: str = AuditSeverity.INFO.value,
        extra: dict[str, Any] | None = None,
    ) -> AuditLogResult | None:
        """Log an event raised by the system itself (no acting user)."""
        entry = AuditLogEntryCreate(
            action=action,
            action_description=description,
            target_type=TargetType.SYSTEM.value,
            category=AuditCategory.SYSTEM.value,
            severity=_value(severity),
        )
        return await self.log(_with_extra(entry, extra))

    async def cleanup(self, retention_days: int = 90) -> dict[str, int]:
        """Delete entries older than retention_days and record the sweep.

        Raises whatever the store raises; a broken retention sweep must be visible.
        """
        try:
            deleted = await self._repo.delete_old_logs(retention_days)
        except Exception:
            logger.exception("Audit log cleanup failed (retention_days=%d)", retention_days)
            raise
        await self.log_system(
            "DATABASE_CLEANUP",
            f"Cleaned up {deleted} audit logs older than {retention_days} days",
            AuditSeverity.INFO.value,
            {"metadata": {"deleted_count": deleted, "retention_days": retention_days}},
        )
        logger.info("Audit log cleanup removed %d entries", deleted)
        return {"deleted": deleted}

    # Read side: pass-through to the store

    async def query(
        self, filters: AuditLogFilters | None = None, options: QueryOptions | None = None
    ) -> AuditLogPage:
        return await self._repo.query(filters or AuditLogFilters(), options or QueryOptions())

    async def get_by_id(self, log_id: str) -> AuditLogResult | None:
        return await self._repo.find_by_id(log_id)

    async def get_user_activity(self, user_id: str, limit: int = 50) -> list[AuditLogResult]:
        return await self._repo.find_by_user(user_id, limit)

    async def get_recent_activity(self, limit: int = 100) -> list[AuditLogResult]:
        return await self._repo.find_recent(limit)

    async def get_security_events(
        self, start: datetime, end: datetime, limit: int = 100
    ) -> list[AuditLogResult]:
        return await self._repo.find_security_events(start, end, limit)

    async def get_failed_actions(self, limit: int = 100) -> list[AuditLogResult]:
        return await self._repo.find_failed_actions(limit)

    async def get_statistics(self, start: datetime, end: datetime) -> AuditStats:
        return await self._repo.get_stats(start, end)

    async def get_correlated_actions(self, correlation_id: str) -> AuditLogPage:
        """Entries sharing one correlation id, oldest first."""
        return await self._repo.query(
            AuditLogFilters(correlation_id=correlation_id),
            QueryOptions(sort_by="created_at", sort_order="ASC"),
        )

    async def track_session(self, session_id: str, user_id: str | None = None) -> AuditLogPage:
        """Entries of one session (optionally one user), oldest first."""
        return await self._repo.query(
            AuditLogFilters(session_id=session_id, user_id=user_id),
            QueryOptions(sort_by="created_at", sort_order="ASC"),
        )

    async def get_suspicious_activity(self, hours: int = 24) -> AuditLogPage:
        """Failed logins and flagged requests of the last `hours` hours."""
        since = self._clock() - timedelta(hours=hours)
        return await self._repo.query(
            AuditLogFilters(
                actions=SUSPICIOUS_ACTIONS,
                start_date=since,
                severity=AuditSeverity.WARNING.value,
            ),
            QueryOptions(limit=100, sort_by="created_at", sort_order="DESC"),
        )

    async def export_logs(
        self, filters: AuditLogFilters | None = None, options: QueryOptions | None = None
    ) -> list[AuditLogResult]:
        """Return matching entries, capped at the export limit."""
        base = options or QueryOptions()
        page = await self._repo.query(
            filters or AuditLogFilters(),
            dataclasses.replace(base, limit=self._export_limit),
        )
        return page.logs
