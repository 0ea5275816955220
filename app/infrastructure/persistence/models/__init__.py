"""Persistence models: ORM entities."""

from app.infrastructure.persistence.models.audit_log import AuditLog

__all__ = ["AuditLog"]
