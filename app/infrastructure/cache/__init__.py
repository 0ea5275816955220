"""Cache: shared counter stores and key utilities.

Used by brute-force protection. InMemoryCounterStore serves single-instance
deployments; RedisCounterStore shares counters across instances. Key format
is in keys.py (DRY).
"""

from app.infrastructure.cache.counter_protocol import CounterStore
from app.infrastructure.cache.keys import failed_login_key
from app.infrastructure.cache.memory_counter import InMemoryCounterStore
from app.infrastructure.cache.redis_counter import RedisCounterStore

__all__ = [
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "failed_login_key",
]
