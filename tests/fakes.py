"""In-memory stand-ins used by the test-suite: clock, audit repository, authentication."""

from __future__ import annotations

import dataclasses
import math
from datetime import datetime, timedelta
from typing import Any, Callable

from app.application.dtos.audit_log import (
    AuditLogEntryCreate,
    AuditLogFilters,
    AuditLogPage,
    AuditLogResult,
    AuditStats,
    CountByValue,
    QueryOptions,
)
from app.shared.context import AuthenticatedUser
from app.shared.enums import AuditCategory, AuditStatus
from app.shared.utils.datetime import utc_now

# Headers understood by FakeAuthMiddleware.
TEST_USER_HEADER = "X-Test-User"
TEST_ROLE_HEADER = "X-Test-Role"
ADMIN_HEADERS = {TEST_USER_HEADER: "admin-1", TEST_ROLE_HEADER: "1"}
USER_HEADERS = {TEST_USER_HEADER: "user-1", TEST_ROLE_HEADER: "3"}


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


_EQUALITY_FILTERS = (
    "user_id",
    "action",
    "target_type",
    "target_id",
    "target_table",
    "status",
    "severity",
    "category",
    "organization_id",
    "ip_address",
    "session_id",
    "correlation_id",
)


def _matches(log: AuditLogResult, filters: AuditLogFilters) -> bool:
    for name in _EQUALITY_FILTERS:
        wanted = getattr(filters, name)
        if wanted is not None and getattr(log, name) != wanted:
            return False
    if filters.user_email and filters.user_email.lower() not in (log.user_email or "").lower():
        return False
    if filters.actions and log.action not in filters.actions:
        return False
    if filters.start_date is not None and log.created_at < filters.start_date:
        return False
    if filters.end_date is not None and log.created_at > filters.end_date:
        return False
    return True


def _counts(logs: list[AuditLogResult], field: str, limit: int | None = None) -> list[CountByValue]:
    counts: dict[Any, int] = {}
    for log in logs:
        value = getattr(log, field)
        counts[value] = counts.get(value, 0) + 1
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
    return [CountByValue(value=v, count=n) for v, n in ordered[:limit]]


class FakeAuditLogRepository:
    """In-memory IAuditLogRepository. Set fail_writes to simulate an outage."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self.logs: list[AuditLogResult] = []
        self.fail_writes = False
        self.fail_deletes = False
        self._clock = clock
        self._seq = 0

    def _to_result(self, entry: AuditLogEntryCreate) -> AuditLogResult:
        self._seq += 1
        data = {
            f.name: getattr(entry, f.name)
            for f in dataclasses.fields(AuditLogResult)
            if hasattr(entry, f.name)
        }
        data["log_id"] = f"log{self._seq:04d}"
        data["created_at"] = entry.created_at or self._clock()
        data["status"] = entry.status or AuditStatus.SUCCESS.value
        data["severity"] = entry.severity or "INFO"
        return AuditLogResult(**data)

    async def create(self, entry: AuditLogEntryCreate) -> AuditLogResult:
        if self.fail_writes:
            raise ConnectionError("audit store unavailable")
        result = self._to_result(entry)
        self.logs.append(result)
        return result

    async def bulk_create(self, entries: list[AuditLogEntryCreate]) -> list[AuditLogResult]:
        return [await self.create(e) for e in entries]

    async def find_by_id(self, log_id: str) -> AuditLogResult | None:
        return next((log for log in self.logs if log.log_id == log_id), None)

    async def query(self, filters: AuditLogFilters, options: QueryOptions) -> AuditLogPage:
        matched = [log for log in self.logs if _matches(log, filters)]
        matched.sort(
            key=lambda log: getattr(log, options.sort_by) or "",
            reverse=options.sort_order.upper() == "DESC",
        )
        page = matched[options.offset : options.offset + options.limit]
        total = len(matched)
        return AuditLogPage(
            logs=page,
            total=total,
            page=options.page,
            total_pages=math.ceil(total / options.limit) if total else 0,
        )

    async def count(self, filters: AuditLogFilters) -> int:
        return sum(1 for log in self.logs if _matches(log, filters))

    def _newest(self, logs: list[AuditLogResult], limit: int) -> list[AuditLogResult]:
        return sorted(logs, key=lambda log: log.created_at, reverse=True)[:limit]

    async def find_by_user(self, user_id: str, limit: int = 50) -> list[AuditLogResult]:
        return self._newest([log for log in self.logs if log.user_id == user_id], limit)

    async def find_recent(self, limit: int = 100) -> list[AuditLogResult]:
        return self._newest(self.logs, limit)

    async def find_security_events(
        self, start: datetime, end: datetime, limit: int = 100
    ) -> list[AuditLogResult]:
        return self._newest(
            [
                log
                for log in self.logs
                if log.category == AuditCategory.SECURITY.value and start <= log.created_at <= end
            ],
            limit,
        )

    async def find_failed_actions(self, limit: int = 100) -> list[AuditLogResult]:
        failed = (AuditStatus.FAILED.value, AuditStatus.ERROR.value)
        return self._newest([log for log in self.logs if log.status in failed], limit)

    async def delete_old_logs(self, retention_days: int) -> int:
        if self.fail_deletes:
            raise ConnectionError("audit store unavailable")
        cutoff = self._clock() - timedelta(days=retention_days)
        kept = [log for log in self.logs if log.created_at >= cutoff]
        deleted = len(self.logs) - len(kept)
        self.logs = kept
        return deleted

    async def get_stats(self, start: datetime, end: datetime) -> AuditStats:
        window = [log for log in self.logs if start <= log.created_at <= end]
        return AuditStats(
            total=len(window),
            by_action=_counts(window, "action", 10),
            by_status=_counts(window, "status"),
            by_severity=_counts(window, "severity"),
            by_category=_counts(window, "category"),
        )

    def by_action(self, action: str) -> list[AuditLogResult]:
        return [log for log in self.logs if log.action == action]


def FakeAuthMiddleware(app: Callable) -> Callable:
    """Stand-in for upstream authentication: user id and role from test headers. Raw ASGI."""
    user_key = TEST_USER_HEADER.lower().encode()
    role_key = TEST_ROLE_HEADER.lower().encode()

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] == "http":
            headers = dict(scope.get("headers", []))
            user_id = headers.get(user_key)
            if user_id:
                role = headers.get(role_key)
                scope.setdefault("state", {})["user"] = AuthenticatedUser(
                    user_id=user_id.decode(),
                    email=f"{user_id.decode()}@example.com",
                    full_name="Test User",
                    role_id=int(role) if role else None,
                    current_org_id="org-1",
                )
        await app(scope, receive, send)

    return asgi_app

