"""Caller identity dependencies.

Authentication itself (token verification) happens upstream and leaves an
AuthenticatedUser on request.state.user; these dependencies only read it.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from app.core.config import get_settings
from app.domain.exceptions import AuthenticationException, AuthorizationException
from app.shared.context import AuthenticatedUser, get_request_user


def get_current_user(request: Request) -> AuthenticatedUser:
    """Return the authenticated user or raise AuthenticationException (401)."""
    user = get_request_user(request)
    if user is None:
        raise AuthenticationException()
    return user


def is_audit_admin(user: AuthenticatedUser) -> bool:
    """True if the user's role may read everyone's audit logs."""
    return user.role_id is not None and user.role_id in get_settings().audit_admin_role_id_list


def require_audit_admin(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
) -> AuthenticatedUser:
    """Return the user if they hold an audit admin role, else raise 403."""
    if not is_audit_admin(user):
        raise AuthorizationException("audit_log", "read")
    return user
