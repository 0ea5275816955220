"""Audit log ORM model. Append-only structured action log (sys_audit_logs)."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Connection, DateTime, Index, Integer, String, Text, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, Mapper, mapped_column

from app.core.constants import AUDIT_LOG_TABLE
from app.infrastructure.persistence.database import Base
from app.shared.utils.datetime import utc_now
from app.shared.utils.generators import generate_cuid

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


class AuditLog(Base):
    """Audit log entry. Who did what, when, to which target, with what outcome.

    Actor fields are snapshots taken at logging time, not foreign keys, so
    entries survive changes to (or removal of) the user record.
    """

    __tablename__ = AUDIT_LOG_TABLE
    __table_args__ = (
        Index("ix_audit_target", "target_type", "target_id"),
        Index("ix_audit_category_severity", "category", "severity"),
    )

    log_id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_cuid)

    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    user_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    action_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    target_table: Mapped[str | None] = mapped_column(String(100), nullable=True)

    before_data: Mapped[Any] = mapped_column(JsonType, nullable=True)
    after_data: Mapped[Any] = mapped_column(JsonType, nullable=True)
    changes: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True, index=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    request_method: Mapped[str | None] = mapped_column(String(10), nullable=True)
    request_body: Mapped[Any] = mapped_column(JsonType, nullable=True)
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="SUCCESS")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    organization_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    correlation_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="INFO")
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JsonType, nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, index=True
    )


@event.listens_for(AuditLog, "before_update")
def _prevent_audit_log_updates(
    _mapper: Mapper[Any], _connection: Connection, _target: AuditLog
) -> None:
    """Audit log entries are append-only; updates are forbidden."""
    raise ValueError("Audit log entries are immutable and cannot be updated.")


@event.listens_for(AuditLog, "before_delete")
def _prevent_audit_log_deletes(
    _mapper: Mapper[Any], _connection: Connection, _target: AuditLog
) -> None:
    """Single entries cannot be deleted; only the retention sweep removes rows."""
    raise ValueError("Audit log entries cannot be deleted individually.")
