"""Audit capture middleware and audit entry builders.

AuditCaptureMiddleware wraps ``send`` to observe the response (status, headers
and, up to a size cap, the body) without changing or delaying it. Route-level
dependencies (app.api.v1.dependencies.audit) register hooks on the request;
once the final body chunk has been handed to the server each hook is spawned
as a background task, so audit persistence never adds latency to the
response and its failures never reach the client.

Uses raw ASGI (no BaseHTTPMiddleware) for production-safe streaming and background tasks.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from app.application.dtos.audit_log import AuditLogEntryCreate
from app.application.services.audit_classification import (
    category_of,
    severity_of,
    table_for,
)
from app.core.constants import TARGET_ID_PATH_PARAMS
from app.shared.background import BackgroundTaskRunner
from app.shared.context import get_correlation_id, get_request_user, get_session_id
from app.shared.enums import AuditStatus
from app.shared.request_audit import client_info_for

logger = logging.getLogger(__name__)

AUDIT_HOOKS_STATE_KEY = "audit_hooks"

# 4xx statuses that are still audited by default (access attempts worth keeping)
AUDITED_CLIENT_ERRORS: frozenset[int] = frozenset({401, 403, 404})

# Body the generic exception handler sends for an unhandled error
UNHANDLED_ERROR_BODY = json.dumps(
    {"error": "INTERNAL_ERROR", "message": "Internal server error"}
).encode()

_MUTATION_ACTIONS = {
    "POST": "CREATE",
    "PUT": "UPDATE",
    "PATCH": "UPDATE",
    "DELETE": "DELETE",
}


@dataclass(frozen=True)
class CapturedResponse:
    """What the client received, as seen by the capture middleware."""

    status_code: int
    headers: list[tuple[bytes, bytes]]
    body: bytes
    duration_ms: int
    truncated: bool = False

    def json(self) -> Any:
        """Parsed JSON body, or None for empty, truncated or non-JSON bodies."""
        if self.truncated or not self.body:
            return None
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError):
            return None


AuditHook = Callable[[CapturedResponse], Awaitable[None]]


@dataclass(frozen=True)
class AuditOptions:
    """Per-route audit options.

    log_all / force_log: audit every status, not just 2xx/3xx and 401/403/404.
    action: explicit action for audit_change (default <TYPE>_CREATE|UPDATE|DELETE).
    """

    log_all: bool = False
    force_log: bool = False
    action: str | None = None
    description: str | None = None
    target_table: str | None = None
    severity: str | None = None
    category: str | None = None
    controller: str | None = None
    tags: tuple[str, ...] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    include_request_body: bool = True


def register_audit_hook(request: Any, hook: AuditHook) -> bool:
    """Attach hook to the request. False when AuditCaptureMiddleware is not installed."""
    hooks = getattr(request.state, AUDIT_HOOKS_STATE_KEY, None)
    if hooks is None:
        logger.warning(
            "Audit hook for %s %s dropped: AuditCaptureMiddleware not installed",
            request.method,
            request.url.path,
        )
        return False
    hooks.append(hook)
    return True


async def _run_hook(hook: AuditHook, captured: CapturedResponse) -> None:
    try:
        await hook(captured)
    except Exception:
        logger.warning("Audit hook failed", exc_info=True)


def AuditCaptureMiddleware(
    app: Callable,
    runner: BackgroundTaskRunner,
    max_body_bytes: int = 1024 * 1024,
    correlation_header: str = "X-Correlation-ID",
) -> Callable:
    """Capture responses for registered audit hooks and run them afterwards. Raw ASGI."""
    header_key = correlation_header.lower().encode()

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        state = scope.setdefault("state", {})
        hooks: list[AuditHook] = []
        state[AUDIT_HOOKS_STATE_KEY] = hooks
        started = time.perf_counter()
        status_code = 0
        response_headers: list[tuple[bytes, bytes]] = []
        body = bytearray()
        truncated = False

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code, response_headers, truncated
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                correlation_id = state.get("correlation_id")
                if correlation_id and not any(k.lower() == header_key for k, _ in headers):
                    headers.append((correlation_header.encode(), correlation_id.encode()))
                    message["headers"] = headers
                response_headers = headers
            elif message["type"] == "http.response.body" and hooks and not truncated:
                chunk = message.get("body", b"")
                if len(body) + len(chunk) > max_body_bytes:
                    truncated = True
                    body.clear()
                else:
                    body.extend(chunk)

            await send(message)

            if (
                message["type"] == "http.response.body"
                and not message.get("more_body", False)
                and hooks
            ):
                spawn_hooks(
                    CapturedResponse(
                        status_code=status_code,
                        headers=response_headers,
                        body=bytes(body),
                        duration_ms=int((time.perf_counter() - started) * 1000),
                        truncated=truncated,
                    )
                )

        def spawn_hooks(captured: CapturedResponse) -> None:
            for hook in hooks:
                runner.spawn(_run_hook(hook, captured), name="audit-hook")
            hooks.clear()

        try:
            await app(scope, receive, send_wrapper)
        except Exception:
            # The outermost server middleware turns this into a 500 after we
            # have unwound; audit it as that 500.
            if hooks:
                spawn_hooks(
                    CapturedResponse(
                        status_code=500,
                        headers=[],
                        body=UNHANDLED_ERROR_BODY,
                        duration_ms=int((time.perf_counter() - started) * 1000),
                    )
                )
            raise

    return asgi_app


# ---- Entry builders (used by the audit dependencies) ----


def _get(obj: Any, *path: str) -> Any:
    """Nested dict lookup; None if any step is missing or not a dict."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def to_plain(value: Any) -> Any:
    """Convert ORM/pydantic/dataclass objects to plain JSON-like data."""
    if value is None or isinstance(value, (dict, list, str, int, float, bool)):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


def parse_json_body(raw: bytes | None) -> Any:
    """Parse a request body as JSON; None if empty or not JSON."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None
    if isinstance(parsed, (dict, list)) and not parsed:
        return None
    return parsed


def target_id_from_params(path_params: dict[str, Any]) -> str | None:
    """First non-empty target-id path param (id, org_id, user_id, member_id)."""
    for name in TARGET_ID_PATH_PARAMS:
        value = path_params.get(name)
        if value not in (None, ""):
            return str(value)
    return None


def extract_target_id(path_params: dict[str, Any], body: Any) -> str | None:
    """Target id from path params, else response body (data.id, user.user_id, data.org_id)."""
    from_params = target_id_from_params(path_params)
    if from_params is not None:
        return from_params
    for path in (("data", "id"), ("user", "user_id"), ("data", "org_id")):
        value = _get(body, *path)
        if value not in (None, ""):
            return str(value)
    return None


def after_state_from_body(body: Any) -> Any:
    """Post-mutation state from a response body: data, user, organization, or the body."""
    if isinstance(body, dict):
        for key in ("data", "user", "organization"):
            if body.get(key):
                return body[key]
    return body


def _actor(request: Any, body: Any) -> tuple[str | None, str | None, str | None, str | None]:
    """(user_id, email, name, organization_id) from the authenticated user, else the body."""
    user = get_request_user(request)
    if user is not None:
        return user.user_id, user.email, user.full_name, user.current_org_id
    user_id = _get(body, "user", "user_id") or _get(body, "data", "user_id")
    email = _get(body, "user", "email") or _get(body, "data", "email")
    name = _get(body, "user", "full_name")
    if not name and _get(body, "user", "name"):
        name = f"{_get(body, 'user', 'name')} {_get(body, 'user', 'surname') or ''}".strip()
    return (
        None if user_id is None else str(user_id),
        email,
        name,
        None,
    )


def _error_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    for key in ("message", "error", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def should_log(status_code: int, options: AuditOptions) -> bool:
    """Success and 401/403/404 are audited by default; log_all/force_log audit everything."""
    return (
        options.log_all
        or options.force_log
        or status_code < 400
        or status_code in AUDITED_CLIENT_ERRORS
    )


def endpoint_template(path: str, path_params: dict[str, Any]) -> str:
    """Request path with path parameter values put back as ``{name}``.

    Built from the full request path rather than the matched route, whose
    ``path`` does not carry the prefixes of included routers. Parameters are
    matched right to left so a value equal to a prefix segment stays literal.
    """
    segments = path.split("/")
    end = len(segments)
    for name, value in reversed(list(path_params.items())):
        for index in range(end - 1, -1, -1):
            if segments[index] == str(value):
                segments[index] = "{" + name + "}"
                end = index
                break
    return "/".join(segments)


def _route_metadata(request: Any, options: AuditOptions) -> dict[str, Any]:
    metadata: dict[str, Any] = dict(options.metadata)
    metadata["endpoint"] = endpoint_template(
        request.scope.get("path") or request.url.path, request.path_params
    )
    metadata["controller"] = options.controller
    if request.path_params:
        metadata["params"] = dict(request.path_params)
    if request.query_params:
        metadata["query"] = dict(request.query_params)
    return metadata


def build_request_entry(
    request: Any,
    captured: CapturedResponse,
    action: str,
    target_type: str | None,
    options: AuditOptions,
    request_body: Any = None,
) -> AuditLogEntryCreate:
    """Assemble the audit entry for one completed request."""
    body = captured.json()
    target_type_value = getattr(target_type, "value", target_type)
    user_id, email, name, organization_id = _actor(request, body)
    info = client_info_for(request)
    status_code = captured.status_code
    return AuditLogEntryCreate(
        action=action,
        action_description=options.description,
        user_id=user_id,
        user_email=email,
        user_name=name,
        target_type=target_type_value,
        target_id=extract_target_id(dict(request.path_params), body),
        target_table=options.target_table or table_for(target_type_value),
        ip_address=info.ip_address,
        user_agent=info.user_agent,
        request_url=str(request.url),
        request_method=request.method,
        request_body=request_body,
        response_status=status_code,
        status=(AuditStatus.SUCCESS if status_code < 400 else AuditStatus.FAILED).value,
        error_message=_error_message(body) if status_code >= 400 else None,
        duration_ms=captured.duration_ms,
        organization_id=organization_id,
        session_id=get_session_id(request),
        correlation_id=get_correlation_id(request),
        severity=options.severity or severity_of(status_code, action).value,
        category=options.category or category_of(action).value,
        tags=list(options.tags) if options.tags else None,
        metadata=_route_metadata(request, options),
    )


def change_action(target_type: str, method: str, options: AuditOptions) -> str | None:
    """Action for a data change: options.action or <TYPE>_CREATE|UPDATE|DELETE."""
    if options.action:
        return options.action
    verb = _MUTATION_ACTIONS.get(method.upper())
    if verb is None:
        return None
    return f"{getattr(target_type, 'value', target_type)}_{verb}"


def change_context(request: Any) -> dict[str, Any]:
    """Request context attached to data-change entries."""
    info = client_info_for(request)
    user = get_request_user(request)
    return {
        "ip_address": info.ip_address,
        "user_agent": info.user_agent,
        "organization_id": user.current_org_id if user else None,
        "correlation_id": get_correlation_id(request),
        "session_id": get_session_id(request),
        "request_url": str(request.url),
        "request_method": request.method,
    }
