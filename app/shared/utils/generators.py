"""ID generators: CUID2 for audit log rows, UUID4 for correlation IDs."""

import uuid

from cuid2 import cuid_wrapper

cuid_generator = cuid_wrapper()


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2) for log_id.

    Returns:
        A new CUID string.
    """
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def generate_correlation_id() -> str:
    """Return a new correlation ID (UUID4 string), the format clients send in X-Correlation-ID."""
    return str(uuid.uuid4())
