"""Logging configuration for the application.

Two streams: the root logger (stdout) for operational messages, and the
dedicated app.security logger for security events (suspicious requests,
brute-force lockouts). The security logger also writes to
settings.security_log_file when one is configured.
"""

import json
import logging
import sys
from typing import Any

from app.core.config import get_settings

SECURITY_LOGGER_NAME = "app.security"

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Configure application-wide logging.

    Level is DEBUG when settings.debug is True, otherwise INFO.
    Output goes to stdout; security events additionally go to the security
    log file if set. Safe to call more than once.
    """
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if settings.security_log_file:
        security_logger = get_security_logger()
        path = settings.security_log_file
        already = any(
            isinstance(h, logging.FileHandler) and h.baseFilename.endswith(path)
            for h in security_logger.handlers
        )
        if not already:
            handler = logging.FileHandler(path, encoding="utf-8")
            handler.setFormatter(logging.Formatter(_LOG_FORMAT))
            security_logger.addHandler(handler)


def get_security_logger() -> logging.Logger:
    """Return the security event logger."""
    return logging.getLogger(SECURITY_LOGGER_NAME)


def log_suspicious_activity(
    message: str,
    ip_address: str | None,
    user_agent: str | None,
    details: dict[str, Any] | None = None,
) -> None:
    """Write one suspicious-activity warning to the security logger."""
    get_security_logger().warning(
        "SUSPICIOUS_ACTIVITY %s ip=%s user_agent=%s details=%s",
        message,
        ip_address,
        user_agent,
        json.dumps(details or {}, default=str, ensure_ascii=False),
    )
