"""Session ID middleware.

Reads the client session id from the X-Session-ID header, falling back to the
sessionId cookie, and stores it on the request state (None when absent).
Audit entries carry it so one session's actions can be replayed in order.
Uses raw ASGI (no BaseHTTPMiddleware).
"""

from http.cookies import CookieError, SimpleCookie
from typing import Callable

from app.shared.request_audit import get_header

SESSION_ID_MAX_LENGTH = 255


def _cookie_value(scope: dict, name: str) -> str | None:
    raw = get_header(scope, "cookie")
    if not raw:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(raw)
    except CookieError:
        return None
    morsel = cookie.get(name)
    return morsel.value if morsel else None


def SessionIDMiddleware(
    app: Callable,
    header_name: str = "X-Session-ID",
    cookie_name: str = "sessionId",
) -> Callable:
    """Store the client session id on request state. Raw ASGI."""

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        session_id = get_header(scope, header_name) or _cookie_value(scope, cookie_name)
        if session_id:
            session_id = session_id.strip()[:SESSION_ID_MAX_LENGTH] or None
        scope.setdefault("state", {})["session_id"] = session_id
        await app(scope, receive, send)

    return asgi_app
