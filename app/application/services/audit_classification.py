"""Severity, category and storage-table rules for audit entries.

Rules are ordered tables; the first matching rule wins and later rules are
fallbacks only, so the order of the tuples below is significant.
"""

from __future__ import annotations

from app.core.constants import TARGET_TABLES
from app.shared.enums import AuditCategory, AuditSeverity

# (action keywords, category); checked top to bottom
_CATEGORY_RULES: tuple[tuple[tuple[str, ...], AuditCategory], ...] = (
    (("LOGIN", "LOGOUT", "PASSWORD"), AuditCategory.SECURITY),
    (("SYSTEM", "DATABASE"), AuditCategory.SYSTEM),
    (("SUSPICIOUS", "FAILED"), AuditCategory.SECURITY),
)

_ELEVATED_ACTION_KEYWORDS: tuple[str, ...] = ("DELETE", "TRANSFER")


def severity_of(status_code: int, action: str | None = None) -> AuditSeverity:
    """Map an HTTP status and action name to a severity.

    Status wins: 5xx is ERROR and 4xx is WARNING regardless of action.
    Otherwise destructive actions (DELETE/TRANSFER) are WARNING, else INFO.
    """
    if status_code >= 500:
        return AuditSeverity.ERROR
    if status_code >= 400:
        return AuditSeverity.WARNING
    if action and any(keyword in action for keyword in _ELEVATED_ACTION_KEYWORDS):
        return AuditSeverity.WARNING
    return AuditSeverity.INFO


def category_of(action: str | None) -> AuditCategory:
    """Map an action name to a category (BUSINESS when nothing matches)."""
    if not action:
        return AuditCategory.BUSINESS
    for keywords, category in _CATEGORY_RULES:
        if any(keyword in action for keyword in keywords):
            return category
    return AuditCategory.BUSINESS


def table_for(target_type: str | None) -> str | None:
    """Return the storage table for a target type, or None if unknown."""
    if not target_type:
        return None
    return TARGET_TABLES.get(str(getattr(target_type, "value", target_type)))
