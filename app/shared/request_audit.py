"""Shared helpers for audit logging: derive client metadata from the ASGI scope.

Single source of truth for client identity: ClientInfoMiddleware builds the
ClientInfo from these helpers, and audit hooks fall back to them when the
middleware is not installed.
"""

from __future__ import annotations

from typing import Any

from app.core.constants import UNKNOWN_IP, UNKNOWN_USER_AGENT
from app.shared.context import ClientInfo

_IPV4_MAPPED_PREFIX = "::ffff:"
_LOOPBACK = ("127.0.0.1", "::1", "::ffff:127.0.0.1")


def get_header(scope: dict, name: str) -> str | None:
    """Return first header value for name (case-insensitive). Headers are (bytes, bytes)."""
    want = name.lower().encode()
    for k, v in scope.get("headers", []):
        if k.lower() == want:
            return v.decode("utf-8", errors="replace")
    return None


def clean_ip(raw: str | None) -> str:
    """Normalize a client IP: strip the IPv4-mapped prefix, ::1 -> 127.0.0.1.

    Falsy input returns the unknown-IP marker.
    """
    if not raw:
        return UNKNOWN_IP
    ip = raw.strip()
    if ip.startswith(_IPV4_MAPPED_PREFIX):
        ip = ip[len(_IPV4_MAPPED_PREFIX) :]
    if ip == "::1":
        ip = "127.0.0.1"
    return ip or UNKNOWN_IP


def resolve_client_ip(scope: dict) -> str:
    """Return the normalized client IP for a request.

    The socket peer is used unless it is missing or loopback (local reverse
    proxy); then the first X-Forwarded-For hop, then X-Real-IP.
    """
    client = scope.get("client")
    raw = client[0] if client else None
    if not raw or raw in _LOOPBACK:
        forwarded = get_header(scope, "x-forwarded-for")
        first_hop = forwarded.split(",")[0].strip() if forwarded else None
        raw = first_hop or get_header(scope, "x-real-ip") or raw
    return clean_ip(raw)


def build_client_info(scope: dict) -> ClientInfo:
    """Build the ClientInfo for a request scope (IP, user agent, client hints)."""
    return ClientInfo(
        ip_address=resolve_client_ip(scope),
        user_agent=get_header(scope, "user-agent") or UNKNOWN_USER_AGENT,
        platform=get_header(scope, "sec-ch-ua-platform"),
        browser=get_header(scope, "sec-ch-ua"),
    )


def client_info_for(request: Any) -> ClientInfo:
    """Return the request's ClientInfo, building one if the middleware did not."""
    info = getattr(getattr(request, "state", None), "client_info", None)
    if isinstance(info, ClientInfo):
        return info
    return build_client_info(request.scope)
