"""AuditLogRepository against SQLite in memory (aiosqlite)."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.audit_log import AuditLogEntryCreate, AuditLogFilters, QueryOptions
from app.application.services.audit_log_service import AuditLogService
from app.infrastructure.persistence.models.audit_log import AuditLog
from app.infrastructure.persistence.repositories.audit_log_repo import AuditLogRepository

NOW = datetime(2025, 3, 1, 9, 0, 0, tzinfo=UTC)


@pytest.fixture
def repo(session_factory: async_sessionmaker[AsyncSession]) -> AuditLogRepository:
    return AuditLogRepository(session_factory, clock=lambda: NOW)


def _entry(action: str, minutes_ago: int = 0, **kwargs) -> AuditLogEntryCreate:
    return AuditLogEntryCreate(
        action=action,
        status=kwargs.pop("status", "SUCCESS"),
        severity=kwargs.pop("severity", "INFO"),
        created_at=NOW - timedelta(minutes=minutes_ago),
        **kwargs,
    )


async def test_create_and_find_by_id(repo: AuditLogRepository) -> None:
    created = await repo.create(
        _entry(
            "USER_UPDATE",
            user_id="u1",
            target_id=42,
            changes={"name": {"old": "a", "new": "b"}},
            metadata={"endpoint": "/api/v1/users/{id}"},
            tags=["security"],
        )
    )
    assert created.log_id
    assert created.target_id == "42"

    found = await repo.find_by_id(created.log_id)
    assert found is not None
    assert found.action == "USER_UPDATE"
    assert found.changes == {"name": {"old": "a", "new": "b"}}
    assert found.metadata == {"endpoint": "/api/v1/users/{id}"}
    assert found.tags == ["security"]
    assert found.created_at == NOW
    assert found.created_at.tzinfo is not None
    assert await repo.find_by_id("missing") is None


async def test_query_filters_paging_and_sort(repo: AuditLogRepository) -> None:
    await repo.bulk_create(
        [
            _entry("LOGIN", 30, user_email="Alice@Example.com", category="SECURITY"),
            _entry("USER_UPDATE", 20, user_email="alice@example.com"),
            _entry("USER_UPDATE", 10, user_email="bob@example.com"),
            _entry("FAILED_LOGIN", 5, status="FAILED", severity="WARNING", category="SECURITY"),
        ]
    )

    page = await repo.query(
        AuditLogFilters(user_email="ALICE"), QueryOptions(limit=1, sort_order="ASC")
    )
    assert page.total == 2
    assert page.total_pages == 2
    assert [log.action for log in page.logs] == ["LOGIN"]

    page = await repo.query(
        AuditLogFilters(actions=("LOGIN", "FAILED_LOGIN")), QueryOptions()
    )
    assert [log.action for log in page.logs] == ["FAILED_LOGIN", "LOGIN"]

    page = await repo.query(
        AuditLogFilters(start_date=NOW - timedelta(minutes=15), end_date=NOW), QueryOptions()
    )
    assert page.total == 2

    assert await repo.count(AuditLogFilters(action="USER_UPDATE")) == 2
    assert await repo.count(AuditLogFilters()) == 4


async def test_list_reads(repo: AuditLogRepository) -> None:
    await repo.bulk_create(
        [
            _entry("LOGIN", 60 * 24 * 10, user_id="u1", category="SECURITY"),
            _entry("LOGIN", 30, user_id="u1", category="SECURITY"),
            _entry("USER_UPDATE", 20, user_id="u2", status="ERROR", severity="ERROR"),
        ]
    )
    assert [log.action for log in await repo.find_by_user("u1")] == ["LOGIN", "LOGIN"]
    assert [log.action for log in await repo.find_recent(1)] == ["USER_UPDATE"]
    security = await repo.find_security_events(NOW - timedelta(days=7), NOW)
    assert len(security) == 1
    assert [log.status for log in await repo.find_failed_actions()] == ["ERROR"]


async def test_delete_old_logs_uses_retention_cutoff(repo: AuditLogRepository) -> None:
    await repo.bulk_create(
        [
            _entry("OLD", 60 * 24 * 100),
            _entry("RECENT", 60 * 24 * 10),
        ]
    )
    assert await repo.delete_old_logs(90) == 1
    assert [log.action for log in await repo.find_recent()] == ["RECENT"]


async def test_get_stats(repo: AuditLogRepository) -> None:
    await repo.bulk_create(
        [
            _entry("USER_UPDATE", 10),
            _entry("USER_UPDATE", 9),
            _entry("LOGIN", 8, category="SECURITY"),
            _entry("FAILED_LOGIN", 7, status="FAILED", severity="WARNING", category="SECURITY"),
            _entry("USER_UPDATE", 60 * 24 * 60),
        ]
    )
    stats = await repo.get_stats(NOW - timedelta(days=30), NOW)
    assert stats.total == 4
    assert (stats.by_action[0].value, stats.by_action[0].count) == ("USER_UPDATE", 2)
    assert {(c.value, c.count) for c in stats.by_status} == {("SUCCESS", 3), ("FAILED", 1)}
    assert {(c.value, c.count) for c in stats.by_category} == {(None, 2), ("SECURITY", 2)}


async def test_entries_are_append_only(
    repo: AuditLogRepository, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    created = await repo.create(_entry("USER_UPDATE"))
    async with session_factory() as session:
        row = await session.get(AuditLog, created.log_id)
        row.action = "TAMPERED"
        with pytest.raises(ValueError, match="immutable"):
            await session.commit()
        await session.rollback()
        row = await session.get(AuditLog, created.log_id)
        await session.delete(row)
        with pytest.raises(ValueError, match="individually"):
            await session.commit()
    assert (await repo.find_by_id(created.log_id)).action == "USER_UPDATE"


async def test_service_over_sql_store(session_factory: async_sessionmaker[AsyncSession]) -> None:
    service = AuditLogService(AuditLogRepository(session_factory, clock=lambda: NOW))
    result = await service.log(
        AuditLogEntryCreate(
            action="USER_UPDATE",
            before_data={"name": "a", "password": "x"},
            after_data={"name": "b", "password": "y"},
        )
    )
    assert result is not None
    assert result.changes == {"name": {"old": "a", "new": "b"}}
    stored = await service.get_by_id(result.log_id)
    assert stored.before_data["password"] == "***REDACTED***"
    assert await service.cleanup(30) == {"deleted": 0}
