"""Correlation ID middleware.

Forwards X-Correlation-ID from the client or generates one, stores it on the
request state and echoes it on the response. Client-provided values are
sanitized (length + character set) to prevent log injection.
Uses raw ASGI (no BaseHTTPMiddleware) for production-safe streaming and background tasks.
"""

import re
from typing import Callable

from app.shared.request_audit import get_header
from app.shared.utils.generators import generate_correlation_id

# Safe for logging: alphanumeric, hyphen, underscore; max length to avoid abuse.
CORRELATION_ID_MAX_LENGTH = 64
CORRELATION_ID_ALLOWED_PATTERN = re.compile(
    r"^[a-zA-Z0-9_-]{1," + str(CORRELATION_ID_MAX_LENGTH) + r"}$"
)


def sanitize_correlation_id(raw: str | None) -> str:
    """Return raw if valid and safe; otherwise return a new UUID. Prevents log injection."""
    if not raw or not CORRELATION_ID_ALLOWED_PATTERN.match(raw.strip()):
        return generate_correlation_id()
    return raw.strip()


def CorrelationIDMiddleware(
    app: Callable, header_name: str = "X-Correlation-ID"
) -> Callable:
    """Add or forward X-Correlation-ID on each request and response. Raw ASGI."""
    header_key = header_name.lower().encode()

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        correlation_id = sanitize_correlation_id(get_header(scope, header_name))
        state = scope.setdefault("state", {})
        state["correlation_id"] = correlation_id

        async def send_wrapper(message: dict) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers = [(k, v) for k, v in headers if k.lower() != header_key]
                headers.append((header_name.encode(), state["correlation_id"].encode()))
                message["headers"] = headers
            await send(message)

        await app(scope, receive, send_wrapper)

    return asgi_app
