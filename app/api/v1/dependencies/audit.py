"""Audit log dependencies (composition root).

audit_log() and audit_change() build per-route dependencies that register
hooks with AuditCaptureMiddleware. The hooks run in the background after
the response has been sent:

    @router.get("/{id}", dependencies=[Depends(audit_log("VIEW_USER", "USER"))])

    @router.put(
        "/{id}",
        dependencies=[Depends(audit_change(TargetType.USER, user_repo.find_by_id))],
    )
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import HTTPException, Request

from app.application.services.audit_classification import table_for
from app.application.services.audit_log_service import AuditLogService
from app.core.config import get_settings
from app.middleware.audit_log import (
    AuditOptions,
    CapturedResponse,
    after_state_from_body,
    build_request_entry,
    change_action,
    change_context,
    parse_json_body,
    register_audit_hook,
    should_log,
    target_id_from_params,
    to_plain,
)
from app.middleware.correlation_id import sanitize_correlation_id
from app.shared.context import get_correlation_id, get_request_user

logger = logging.getLogger(__name__)

FetchCurrent = Callable[[str], Awaitable[Any]]

_BEFORE_STATE_METHODS = frozenset({"PUT", "PATCH", "DELETE"})


def get_audit_service(request: Request) -> AuditLogService | None:
    """AuditLogService from app state; None when audit persistence is disabled."""
    return getattr(request.app.state, "audit_service", None)


def require_audit_service(request: Request) -> AuditLogService:
    """AuditLogService from app state; 503 when no audit store is configured."""
    service = get_audit_service(request)
    if service is None:
        raise HTTPException(status_code=503, detail="Audit log store is not configured")
    return service


def ensure_correlation_id(request: Request) -> str:
    """Return the request's correlation id, creating one if the middleware did not."""
    correlation_id = get_correlation_id(request)
    if not correlation_id:
        header = get_settings().correlation_id_header
        correlation_id = sanitize_correlation_id(request.headers.get(header))
        request.state.correlation_id = correlation_id
    return correlation_id


async def _request_body(request: Request, options: AuditOptions) -> Any:
    if not options.include_request_body or request.method in ("GET", "HEAD", "OPTIONS"):
        return None
    try:
        return parse_json_body(await request.body())
    except Exception:
        logger.debug("Could not read request body for audit", exc_info=True)
        return None


def audit_log(
    action: str,
    target_type: str | None = None,
    *,
    options: AuditOptions | None = None,
) -> Callable[[Request], Awaitable[None]]:
    """Dependency factory: audit the request once its response has been sent."""
    opts = options or AuditOptions()

    async def dependency(request: Request) -> None:
        ensure_correlation_id(request)
        service = get_audit_service(request)
        if service is None:
            return
        request_body = await _request_body(request, opts)

        async def hook(captured: CapturedResponse) -> None:
            if not should_log(captured.status_code, opts):
                return
            entry = build_request_entry(
                request, captured, action, target_type, opts, request_body
            )
            await service.log(entry)

        register_audit_hook(request, hook)

    return dependency


def audit_change(
    target_type: str,
    fetch_current: FetchCurrent | None,
    *,
    options: AuditOptions | None = None,
) -> Callable[[Request], Awaitable[None]]:
    """Dependency factory: log a data change with before/after snapshots.

    For PUT/PATCH/DELETE with a target id in the path, fetch_current(target_id)
    is awaited before the handler runs. A failed fetch is logged and the
    change is recorded without a before snapshot. The after snapshot comes
    from the 2xx response body.
    """
    opts = options or AuditOptions()
    type_value = getattr(target_type, "value", target_type)

    async def dependency(request: Request) -> None:
        ensure_correlation_id(request)
        service = get_audit_service(request)
        if service is None:
            return
        target_id = target_id_from_params(dict(request.path_params))
        before: Any = None
        if fetch_current is not None and target_id and request.method in _BEFORE_STATE_METHODS:
            try:
                before = to_plain(await fetch_current(target_id))
            except Exception:
                logger.warning(
                    "Failed to fetch before state for %s %s", type_value, target_id, exc_info=True
                )
                before = None
        request.state.audit_before_data = before

        async def hook(captured: CapturedResponse) -> None:
            if not 200 <= captured.status_code < 300:
                return
            action = change_action(type_value, request.method, opts)
            if action is None:
                return
            after = after_state_from_body(captured.json())
            resolved_id = target_id
            if resolved_id is None and isinstance(after, dict) and after.get("id") is not None:
                resolved_id = str(after["id"])
            user = get_request_user(request)
            extra = change_context(request)
            extra["duration_ms"] = captured.duration_ms
            extra["response_status"] = captured.status_code
            if opts.metadata:
                extra["metadata"] = dict(opts.metadata)
            await service.log_data_change(
                action,
                type_value,
                resolved_id,
                opts.target_table or table_for(type_value),
                before,
                after,
                user.user_id if user else None,
                extra,
            )

        register_audit_hook(request, hook)

    return dependency
