"""Field-level diff between two resource snapshots (before/after)."""

import json
from typing import Any

# Distinguishes "key missing" from an explicit None when comparing.
_MISSING = object()


def _serialize(value: Any) -> str:
    if value is _MISSING:
        return "<missing>"
    return json.dumps(value, sort_keys=True, default=str)


def compute_changes(
    old: dict[str, Any] | None, new: dict[str, Any] | None
) -> dict[str, dict[str, Any]] | None:
    """Return {field: {"old": ..., "new": ...}} for every field that differs.

    Values are compared by their JSON serialization, so nested structures
    compare by content. A key present on only one side counts as a change
    and the missing side is reported as None.

    Args:
        old: Snapshot before the change.
        new: Snapshot after the change.

    Returns:
        Mapping of changed fields, or None when either snapshot is absent
        or nothing changed.
    """
    if old is None or new is None:
        return None
    changes: dict[str, dict[str, Any]] = {}
    for key in list(old) + [k for k in new if k not in old]:
        before = old.get(key, _MISSING)
        after = new.get(key, _MISSING)
        if _serialize(before) != _serialize(after):
            changes[key] = {
                "old": None if before is _MISSING else before,
                "new": None if after is _MISSING else after,
            }
    return changes or None
