"""Run audit log retention: delete audit entries older than the retention window.

Usage:
    uv run python -m scripts.run_audit_cleanup [retention_days]
If retention_days is omitted, AUDIT_RETENTION_DAYS (default 90) is used.
Requires DATABASE_URL. The run itself is recorded as a DATABASE_CLEANUP entry.
"""

import asyncio
import sys

from app.application.services.audit_log_service import AuditLogService
from app.core.config import get_settings
import app.infrastructure.persistence.database as database
from app.infrastructure.persistence.repositories import AuditLogRepository
from app.shared.telemetry import setup_logging


async def main() -> None:
    """Delete expired audit entries once and report the count."""
    settings = get_settings()
    setup_logging()
    session_factory = database.get_session_factory()
    if session_factory is None:
        print("DATABASE_URL not configured", file=sys.stderr)
        sys.exit(1)

    retention_days = settings.audit_retention_days
    if len(sys.argv) > 1:
        try:
            retention_days = int(sys.argv[1])
        except ValueError:
            print(f"retention_days must be an integer, got: {sys.argv[1]}", file=sys.stderr)
            sys.exit(1)
    if retention_days < 1:
        print("retention_days must be >= 1", file=sys.stderr)
        sys.exit(1)

    service = AuditLogService(AuditLogRepository(session_factory))
    try:
        result = await service.cleanup(retention_days)
    finally:
        await database.dispose_engine()

    print(f"Done. Deleted {result['deleted']} audit log(s) older than {retention_days} day(s)")


if __name__ == "__main__":
    asyncio.run(main())
