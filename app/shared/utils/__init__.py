"""Shared utilities: datetime, generators, redaction, diff."""

from app.shared.utils.datetime import ensure_utc, utc_now
from app.shared.utils.diff import compute_changes
from app.shared.utils.generators import generate_correlation_id, generate_cuid
from app.shared.utils.redaction import is_sensitive_key, redact

__all__ = [
    "compute_changes",
    "ensure_utc",
    "generate_correlation_id",
    "generate_cuid",
    "is_sensitive_key",
    "redact",
    "utc_now",
]
