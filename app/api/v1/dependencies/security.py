"""Security monitoring dependencies (composition root)."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request

from app.domain.exceptions import SuspiciousRequestException
from app.middleware.audit_log import parse_json_body
from app.middleware.security_monitoring import (
    SECURITY_MONITOR_STATE_KEY,
    SecurityMonitor,
    SuspiciousFinding,
)
from app.shared.context import get_request_user
from app.shared.request_audit import client_info_for

logger = logging.getLogger(__name__)

_BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "DELETE"})


def get_security_monitor(request: Request) -> SecurityMonitor | None:
    """SecurityMonitor from app state (built in lifespan)."""
    return getattr(request.app.state, SECURITY_MONITOR_STATE_KEY, None)


async def check_brute_force(
    request: Request,
    monitor: Annotated[SecurityMonitor | None, Depends(get_security_monitor)],
) -> None:
    """Reject with 429 while the client IP is locked out (use on login routes)."""
    if monitor is None:
        return
    info = client_info_for(request)
    await monitor.check_brute_force(info.ip_address, info.user_agent)


async def detect_suspicious_patterns(
    request: Request,
    monitor: Annotated[SecurityMonitor | None, Depends(get_security_monitor)],
) -> list[SuspiciousFinding]:
    """Scan the request body and user agent; raise 400 only under the block policy."""
    if monitor is None:
        return []
    body = None
    if request.method not in _BODYLESS_METHODS:
        raw = await request.body()
        body = parse_json_body(raw)
        if body is None and raw:
            body = raw
    info = client_info_for(request)
    user = get_request_user(request)
    findings = await monitor.detect_suspicious_patterns(
        body,
        ip_address=info.ip_address,
        user_agent=request.headers.get("user-agent"),
        endpoint=str(request.url.path),
        user_id=user.user_id if user else None,
    )
    if monitor.should_block(findings):
        raise SuspiciousRequestException([f.threat_type.value for f in findings])
    return findings
