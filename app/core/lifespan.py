"""Application lifespan: startup and shutdown.

Single place for all startup/shutdown logic (SRP). Used by main.py;
no business logic here, only wiring of infrastructure (audit store,
counter store, security monitor, counter sweep, DB engine dispose).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.application.services.audit_log_service import AuditLogService
from app.core.config import Settings, get_settings
from app.infrastructure.cache.counter_protocol import CounterStore
from app.infrastructure.cache.memory_counter import InMemoryCounterStore
from app.infrastructure.cache.redis_counter import RedisCounterStore
from app.infrastructure.persistence import database
from app.infrastructure.persistence.repositories import AuditLogRepository
from app.middleware.security_monitoring import SecurityConfig, SecurityMonitor
from app.shared.background import BackgroundTaskRunner

logger = logging.getLogger(__name__)

# Upper bound on waiting for pending audit writes at shutdown
_DRAIN_TIMEOUT_SECONDS = 10.0


async def build_audit_service(settings: Settings) -> AuditLogService | None:
    """AuditLogService over the SQL store, or None when no database is configured."""
    session_factory = database.get_session_factory()
    if session_factory is None:
        return None
    if settings.database_create_tables:
        try:
            await database.create_tables()
        except Exception:
            logger.exception("Could not create audit tables; audit writes may fail")
    return AuditLogService(
        AuditLogRepository(session_factory),
        export_limit=settings.audit_export_limit,
    )


async def build_counter_store(settings: Settings) -> CounterStore:
    """Redis counters when enabled and reachable, else in-process counters."""
    if settings.redis_enabled:
        store = RedisCounterStore(key_prefix=settings.brute_force_key_prefix)
        if await store.connect(settings):
            return store
    return InMemoryCounterStore()


async def run_counter_sweep(monitor: SecurityMonitor, interval_seconds: int) -> None:
    """Periodically drop idle failed-login counters until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await monitor.sweep()
        except Exception:
            logger.exception("Failed-login counter sweep failed")


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: audit store + service, counter store, security monitor,
    counter sweep task. Shutdown order: sweep task cancel, drain pending
    audit tasks, counter store disconnect, SQL engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    runner: BackgroundTaskRunner = app.state.background_tasks

    audit_service = await build_audit_service(settings)
    app.state.audit_service = audit_service
    if audit_service is None:
        logger.warning("Audit persistence disabled (DATABASE_URL not set)")

    store = await build_counter_store(settings)
    monitor = SecurityMonitor(
        store,
        SecurityConfig.from_settings(settings),
        audit_service=audit_service,
        runner=runner,
    )
    app.state.security_monitor = monitor
    logger.info("Brute force counters: %s", type(store).__name__)

    sweep_task = asyncio.create_task(
        run_counter_sweep(monitor, settings.brute_force_sweep_interval_seconds)
    )
    app.state.counter_sweep_task = sweep_task

    yield

    # ---- Shutdown ----
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass
    logger.info("Counter sweep task stopped")

    await runner.drain(timeout=_DRAIN_TIMEOUT_SECONDS)

    if isinstance(store, RedisCounterStore):
        await store.disconnect()
        logger.info("Redis counter store disconnected")

    if database.engine is not None:
        await database.dispose_engine()
        logger.info("Database engine disposed")
