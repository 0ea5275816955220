"""Pytest configuration and fixtures for the audit pipeline.

HTTP tests build a fresh app with create_app() and wire app.state by hand
(ASGITransport does not run the lifespan): an in-memory audit repository,
in-process failed-login counters on a fake clock, and the background task
runner that audit hooks are spawned on. Repository tests run against
SQLite in memory (aiosqlite).
"""

from __future__ import annotations

from typing import Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.application.services.audit_log_service import AuditLogService
from app.core.limiter import limiter
from app.infrastructure.cache.memory_counter import InMemoryCounterStore
from app.infrastructure.persistence import models  # noqa: F401  (register tables)
from app.infrastructure.persistence.database import Base
from app.main import create_app
from app.middleware.security_monitoring import SecurityConfig, SecurityMonitor
from tests.fakes import FakeAuditLogRepository, FakeAuthMiddleware, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audit_repo() -> FakeAuditLogRepository:
    return FakeAuditLogRepository()


@pytest.fixture
def audit_service(audit_repo: FakeAuditLogRepository) -> AuditLogService:
    return AuditLogService(audit_repo, export_limit=100)


@pytest.fixture
def counter_store(clock: FakeClock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def security_monitor(
    counter_store: InMemoryCounterStore, audit_service: AuditLogService
) -> SecurityMonitor:
    return SecurityMonitor(counter_store, SecurityConfig(), audit_service=audit_service)


@pytest.fixture
def app(
    audit_service: AuditLogService,
    counter_store: InMemoryCounterStore,
) -> FastAPI:
    """Fresh app with services wired on app.state (no lifespan under ASGITransport)."""
    limiter.reset()
    application = create_app()
    application.add_middleware(FakeAuthMiddleware)
    application.state.audit_service = audit_service
    application.state.security_monitor = SecurityMonitor(
        counter_store,
        SecurityConfig(),
        audit_service=audit_service,
        runner=application.state.background_tasks,
    )
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.background_tasks.drain(timeout=5)


@pytest.fixture
async def drain(app: FastAPI) -> Callable:
    """Wait for audit hooks spawned after responses were sent."""

    async def _drain() -> None:
        await app.state.background_tasks.drain(timeout=5)

    return _drain


@pytest.fixture
async def session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory over a fresh in-memory SQLite database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()
