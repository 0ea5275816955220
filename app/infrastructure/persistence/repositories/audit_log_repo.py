"""Audit log repository. Append-only; implements IAuditLogRepository.

Each call opens and commits its own session from the factory, because audit
writes run after the response is sent, outside any request-scoped session.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import ColumnElement, and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.audit_log import (
    AuditLogEntryCreate,
    AuditLogFilters,
    AuditLogPage,
    AuditLogResult,
    AuditStats,
    CountByValue,
    QueryOptions,
)
from app.infrastructure.persistence.models.audit_log import AuditLog
from app.shared.enums import AuditCategory, AuditStatus
from app.shared.utils.datetime import ensure_utc, utc_now
from app.shared.utils.generators import generate_cuid

_TOP_ACTIONS_LIMIT = 10


def _orm_to_result(row: AuditLog) -> AuditLogResult:
    """Map ORM to application DTO."""
    return AuditLogResult(
        log_id=row.log_id,
        action=row.action,
        created_at=ensure_utc(row.created_at),
        status=row.status,
        severity=row.severity,
        action_description=row.action_description,
        user_id=row.user_id,
        user_email=row.user_email,
        user_name=row.user_name,
        target_type=row.target_type,
        target_id=row.target_id,
        target_table=row.target_table,
        before_data=row.before_data,
        after_data=row.after_data,
        changes=row.changes,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        request_url=row.request_url,
        request_method=row.request_method,
        request_body=row.request_body,
        response_status=row.response_status,
        error_message=row.error_message,
        duration_ms=row.duration_ms,
        organization_id=row.organization_id,
        session_id=row.session_id,
        correlation_id=row.correlation_id,
        category=row.category,
        metadata=row.metadata_,
        tags=row.tags,
    )


def _entry_to_orm(entry: AuditLogEntryCreate) -> AuditLog:
    """Map a prepared entry to a new ORM row."""
    return AuditLog(
        log_id=generate_cuid(),
        user_id=entry.user_id,
        user_email=entry.user_email,
        user_name=entry.user_name,
        action=entry.action,
        action_description=entry.action_description,
        target_type=entry.target_type,
        target_id=None if entry.target_id is None else str(entry.target_id),
        target_table=entry.target_table,
        before_data=entry.before_data,
        after_data=entry.after_data,
        changes=entry.changes,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        request_url=entry.request_url,
        request_method=entry.request_method,
        request_body=entry.request_body,
        response_status=entry.response_status,
        status=entry.status or AuditStatus.SUCCESS.value,
        error_message=entry.error_message,
        duration_ms=entry.duration_ms,
        organization_id=entry.organization_id,
        session_id=entry.session_id,
        correlation_id=entry.correlation_id,
        severity=entry.severity or "INFO",
        category=entry.category,
        metadata_=entry.metadata,
        tags=entry.tags,
        created_at=entry.created_at or utc_now(),
    )


def _conditions(filters: AuditLogFilters) -> list[ColumnElement[bool]]:
    """Build WHERE conditions; None filters are skipped."""
    conditions: list[ColumnElement[bool]] = []
    equals: dict[str, Any] = {
        "user_id": filters.user_id,
        "action": filters.action,
        "target_type": filters.target_type,
        "target_id": filters.target_id,
        "target_table": filters.target_table,
        "status": filters.status,
        "severity": filters.severity,
        "category": filters.category,
        "organization_id": filters.organization_id,
        "ip_address": filters.ip_address,
        "session_id": filters.session_id,
        "correlation_id": filters.correlation_id,
    }
    for column, value in equals.items():
        if value is not None:
            conditions.append(getattr(AuditLog, column) == value)
    if filters.user_email:
        conditions.append(AuditLog.user_email.ilike(f"%{filters.user_email}%"))
    if filters.actions:
        conditions.append(AuditLog.action.in_(list(filters.actions)))
    if filters.start_date is not None:
        conditions.append(AuditLog.created_at >= filters.start_date)
    if filters.end_date is not None:
        conditions.append(AuditLog.created_at <= filters.end_date)
    return conditions


class AuditLogRepository:
    """Append-only audit log repository. No update; delete only by retention."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def create(self, entry: AuditLogEntryCreate) -> AuditLogResult:
        """Append one audit log entry; return created record."""
        row = _entry_to_orm(entry)
        async with self._session_factory() as session:
            async with session.begin():
                session.add(row)
            return _orm_to_result(row)

    async def bulk_create(self, entries: list[AuditLogEntryCreate]) -> list[AuditLogResult]:
        """Append many entries in one transaction."""
        rows = [_entry_to_orm(e) for e in entries]
        if not rows:
            return []
        async with self._session_factory() as session:
            async with session.begin():
                session.add_all(rows)
            return [_orm_to_result(r) for r in rows]

    async def find_by_id(self, log_id: str) -> AuditLogResult | None:
        """Return entry by log_id."""
        async with self._session_factory() as session:
            row = await session.get(AuditLog, log_id)
            return _orm_to_result(row) if row else None

    async def count(self, filters: AuditLogFilters) -> int:
        """Return number of entries matching filters."""
        stmt = select(func.count()).select_from(AuditLog).where(and_(*_conditions(filters)))
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def query(self, filters: AuditLogFilters, options: QueryOptions) -> AuditLogPage:
        """Return one page of matching entries plus the total match count."""
        conditions = _conditions(filters)
        sort_column = getattr(AuditLog, options.sort_by)
        order = sort_column.asc() if options.sort_order.upper() == "ASC" else sort_column.desc()
        stmt = (
            select(AuditLog)
            .where(and_(*conditions))
            .order_by(order, AuditLog.log_id)
            .offset(options.offset)
            .limit(options.limit)
        )
        count_stmt = select(func.count()).select_from(AuditLog).where(and_(*conditions))
        async with self._session_factory() as session:
            total = int((await session.execute(count_stmt)).scalar_one())
            rows = (await session.execute(stmt)).scalars().all()
        return AuditLogPage(
            logs=[_orm_to_result(r) for r in rows],
            total=total,
            page=options.page,
            total_pages=math.ceil(total / options.limit) if total else 0,
        )

    async def _list(self, *conditions: ColumnElement[bool], limit: int) -> list[AuditLogResult]:
        stmt = (
            select(AuditLog)
            .where(and_(*conditions))
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_orm_to_result(r) for r in rows]

    async def find_by_user(self, user_id: str, limit: int = 50) -> list[AuditLogResult]:
        """Return a user's entries, newest first."""
        return await self._list(AuditLog.user_id == user_id, limit=limit)

    async def find_recent(self, limit: int = 100) -> list[AuditLogResult]:
        """Return the newest entries."""
        return await self._list(limit=limit)

    async def find_security_events(
        self, start: datetime, end: datetime, limit: int = 100
    ) -> list[AuditLogResult]:
        """Return SECURITY-category entries in [start, end], newest first."""
        return await self._list(
            AuditLog.category == AuditCategory.SECURITY.value,
            AuditLog.created_at >= start,
            AuditLog.created_at <= end,
            limit=limit,
        )

    async def find_failed_actions(self, limit: int = 100) -> list[AuditLogResult]:
        """Return FAILED/ERROR entries, newest first."""
        return await self._list(
            AuditLog.status.in_([AuditStatus.FAILED.value, AuditStatus.ERROR.value]),
            limit=limit,
        )

    async def delete_old_logs(self, retention_days: int) -> int:
        """Delete entries older than now - retention_days. Return count deleted."""
        cutoff = self._clock() - timedelta(days=retention_days)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(AuditLog).where(AuditLog.created_at < cutoff)
                )
        return int(result.rowcount or 0)

    async def _grouped(
        self, session: AsyncSession, column: Any, window: list[ColumnElement[bool]], limit: int | None = None
    ) -> list[CountByValue]:
        count_col = func.count().label("count")
        stmt = (
            select(column, count_col)
            .where(and_(*window))
            .group_by(column)
            .order_by(count_col.desc(), column)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = (await session.execute(stmt)).all()
        return [CountByValue(value=value, count=int(n)) for value, n in rows]

    async def get_stats(self, start: datetime, end: datetime) -> AuditStats:
        """Return total, top actions, and counts by status/severity/category."""
        window = [AuditLog.created_at >= start, AuditLog.created_at <= end]
        async with self._session_factory() as session:
            total = int(
                (
                    await session.execute(
                        select(func.count()).select_from(AuditLog).where(and_(*window))
                    )
                ).scalar_one()
            )
            by_action = await self._grouped(
                session, AuditLog.action, window, limit=_TOP_ACTIONS_LIMIT
            )
            by_status = await self._grouped(session, AuditLog.status, window)
            by_severity = await self._grouped(session, AuditLog.severity, window)
            by_category = await self._grouped(session, AuditLog.category, window)
        return AuditStats(
            total=total,
            by_action=by_action,
            by_status=by_status,
            by_severity=by_severity,
            by_category=by_category,
        )
