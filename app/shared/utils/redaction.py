"""Redaction of sensitive fields in audit payloads.

Applied to before/after snapshots and request bodies before they reach the
audit log store. Keys are matched case-insensitively by substring, so
"oldPassword", "reset_token" and "X-Api-Key-Secret" are all caught.
"""

from typing import Any

from app.core.constants import REDACTION_MARKER, SENSITIVE_FIELD_FRAGMENTS


def is_sensitive_key(key: Any) -> bool:
    """Return True if the key name contains any sensitive fragment."""
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in SENSITIVE_FIELD_FRAGMENTS)


def redact(value: Any) -> Any:
    """Return a copy of value with every sensitive dict key masked.

    Dicts are rebuilt key by key; lists and tuples element by element.
    Anything else (str, numbers, bool, None) passes through unchanged.
    The input is never mutated.

    Args:
        value: JSON-shaped data (acyclic).

    Returns:
        Redacted copy (same container types).
    """
    if isinstance(value, dict):
        return {
            key: REDACTION_MARKER if is_sensitive_key(key) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redact(item) for item in value)
    return value
