"""Request-scoped identity and client data carried on request.state.

Upstream authentication places an AuthenticatedUser on request.state.user;
ClientInfoMiddleware places a ClientInfo on request.state.client_info.
Audit hooks and security checks read them through the helpers below so a
missing value never raises.

Usage:
    user = get_request_user(request)
    info = get_client_info(request)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.core.constants import UNKNOWN_IP, UNKNOWN_USER_AGENT


@dataclass(frozen=True)
class AuthenticatedUser:
    """Snapshot of the caller as resolved by the authentication layer."""

    user_id: str
    email: str | None = None
    full_name: str | None = None
    role_id: int | None = None
    current_org_id: str | None = None


@dataclass(frozen=True)
class ClientInfo:
    """Normalized client identity for one request."""

    ip_address: str = UNKNOWN_IP
    user_agent: str = UNKNOWN_USER_AGENT
    platform: str | None = None
    browser: str | None = None


def _state_value(request: Any, name: str) -> Any:
    state = getattr(request, "state", None)
    return getattr(state, name, None) if state is not None else None


def get_request_user(request: Any) -> AuthenticatedUser | None:
    """Return the authenticated user on the request, or None."""
    user = _state_value(request, "user")
    return user if isinstance(user, AuthenticatedUser) else None


def get_client_info(request: Any) -> ClientInfo | None:
    """Return the ClientInfo set by ClientInfoMiddleware, or None."""
    info = _state_value(request, "client_info")
    return info if isinstance(info, ClientInfo) else None


def get_correlation_id(request: Any) -> str | None:
    """Return the correlation ID set by CorrelationIDMiddleware, or None."""
    return _state_value(request, "correlation_id")


def get_session_id(request: Any) -> str | None:
    """Return the session ID set by SessionIDMiddleware, or None."""
    return _state_value(request, "session_id")
