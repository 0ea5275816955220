"""Shared telemetry: logging setup and the security event logger."""

from app.shared.telemetry.logging import (
    SECURITY_LOGGER_NAME,
    get_security_logger,
    log_suspicious_activity,
    setup_logging,
)

__all__ = [
    "SECURITY_LOGGER_NAME",
    "get_security_logger",
    "log_suspicious_activity",
    "setup_logging",
]
