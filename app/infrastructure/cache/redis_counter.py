"""Redis counter store for multi-instance deployments.

Each counter is a hash holding the failure count and the time of the last
failure. HINCRBY and the last_attempt write go in one MULTI, and EXPIRE ... NX
only sets a TTL on keys that have none, which gives the set-once lockout window
across all instances. Call connect() at startup and disconnect() at shutdown.
Errors from Redis propagate; SecurityMonitor decides how to degrade.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import redis.asyncio as redis

from app.core.config import Settings

logger = logging.getLogger(__name__)

COUNT_FIELD = "count"
LAST_ATTEMPT_FIELD = "last_attempt"


class RedisCounterStore:
    """CounterStore on Redis (HINCRBY / EXPIRE NX / TTL / DEL, SCAN sweep)."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        *,
        key_prefix: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize counter store.

        Args:
            redis_client: Optional Redis client for testing or DI.
            key_prefix: Prefix of the keys this store owns (limits sweep()).
            clock: Wall clock for last_attempt; shared by all instances.
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self._clock = clock

    async def connect(self, settings: Settings) -> bool:
        """Create the client and ping it. Returns False (client dropped) if unreachable."""
        if self.redis is None:
            self.redis = redis.Redis(
                host=settings.redis_host,
                port=settings.redis_port,
                db=settings.redis_db,
                password=(
                    settings.redis_password.get_secret_value()
                    if settings.redis_password
                    else None
                ),
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
            )
        try:
            await self.redis.ping()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis connection failed: %s. Using in-process counters.", e)
            await self.disconnect()
            return False
        logger.info("Redis counter store connected: %s:%s", settings.redis_host, settings.redis_port)
        return True

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise redis.ConnectionError("Redis counter store is not connected")
        return self.redis

    async def get(self, key: str) -> int | None:
        value = await self._client().hget(key, COUNT_FIELD)
        return int(value) if value is not None else None

    async def incr(self, key: str) -> int:
        async with self._client().pipeline(transaction=True) as pipe:
            pipe.hincrby(key, COUNT_FIELD, 1)
            pipe.hset(key, LAST_ATTEMPT_FIELD, self._clock())
            count, _ = await pipe.execute()
        return int(count)

    async def expire(self, key: str, seconds: int, *, only_if_unset: bool = False) -> bool:
        if only_if_unset:
            return bool(await self._client().expire(key, seconds, nx=True))
        return bool(await self._client().expire(key, seconds))

    async def ttl(self, key: str) -> float | None:
        remaining = await self._client().ttl(key)
        # -2: missing key, -1: no expiry
        return float(remaining) if remaining is not None and remaining >= 0 else None

    async def delete(self, key: str) -> None:
        await self._client().delete(key)

    async def sweep(self, idle_seconds: int) -> int:
        """Delete prefixed keys whose last failure is older than idle_seconds.

        Keys without a last_attempt field are not ours to judge and are kept.
        """
        client = self._client()
        cutoff = self._clock() - idle_seconds
        removed = 0
        async for key in client.scan_iter(match=f"{self.key_prefix}*"):
            last_attempt = await client.hget(key, LAST_ATTEMPT_FIELD)
            if last_attempt is not None and float(last_attempt) < cutoff:
                removed += int(await client.unlink(key) or 0)
        if removed:
            logger.info("Counter sweep removed %d idle keys", removed)
        return removed
