"""Application layer: interfaces, DTOs, services.

Depends only on domain and protocol definitions (DIP).
Infrastructure implements the interfaces (audit log repository).
"""

from app.application.interfaces import IAuditLogRepository
from app.application.services.audit_log_service import AuditLogService

__all__ = [
    "AuditLogService",
    "IAuditLogRepository",
]
