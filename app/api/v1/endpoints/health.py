"""Health check endpoint. Used for liveness and readiness probes."""

import logging

from fastapi import APIRouter, Request
from sqlalchemy import text

from app.infrastructure.cache.redis_counter import RedisCounterStore
from app.infrastructure.persistence import database
from app.schemas.health import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Report the audit store and the counter backend in use.

    Audit persistence is best-effort, so an unreachable store is reported
    but does not make the service unready.
    """
    audit_store = "disabled"
    if getattr(request.app.state, "audit_service", None) is not None and database.engine is not None:
        try:
            async with database.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            audit_store = "ok"
        except Exception:
            logger.warning("Audit store readiness check failed", exc_info=True)
            audit_store = "unavailable"
    monitor = getattr(request.app.state, "security_monitor", None)
    counter_store = (
        "redis"
        if monitor is not None and isinstance(monitor.store, RedisCounterStore)
        else "memory"
    )
    return ReadinessResponse(audit_store=audit_store, counter_store=counter_store)
