"""Rate limiter instance for SlowAPI.

Shared so both main (app.state.limiter) and route modules can use the same
instance without circular imports. Central limit strings and decorators keep
rate limits DRY.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

# Single source of truth for rate limit strings and decorators.
EXPORT_LIMIT = "10/minute"
CLEANUP_LIMIT = "2/minute"

limit_export = limiter.limit(EXPORT_LIMIT)
limit_cleanup = limiter.limit(CLEANUP_LIMIT)
