"""HTTP middleware: correlation ID, session ID, client info, request logging,
brute-force protection, audit capture.

Applied in main app; order matters (last added = outermost).
Import and use from app.main.
"""

from app.middleware.audit_log import AuditCaptureMiddleware
from app.middleware.correlation_id import CorrelationIDMiddleware
from app.middleware.security_monitoring import (
    BruteForceProtectionMiddleware,
    ClientInfoMiddleware,
    RequestLoggerMiddleware,
    SecurityMonitor,
)
from app.middleware.session_id import SessionIDMiddleware

__all__ = [
    "AuditCaptureMiddleware",
    "BruteForceProtectionMiddleware",
    "ClientInfoMiddleware",
    "CorrelationIDMiddleware",
    "RequestLoggerMiddleware",
    "SecurityMonitor",
    "SessionIDMiddleware",
]
