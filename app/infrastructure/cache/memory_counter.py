"""In-process counter store (single-instance deployments and tests).

A dict guarded by a threading.Lock. Expired keys are dropped lazily on
access and by sweep().
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock


@dataclass
class _Counter:
    count: int
    last_attempt: float
    expires_at: float | None = None


class InMemoryCounterStore:
    """CounterStore backed by a process-local dict.

    clock must be monotonic; tests pass a fake to simulate time passing.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._counters: dict[str, _Counter] = {}
        self._lock = Lock()

    def _live(self, key: str, now: float) -> _Counter | None:
        """Return the counter for key, dropping it if expired. Caller holds the lock."""
        counter = self._counters.get(key)
        if counter is not None and counter.expires_at is not None and counter.expires_at <= now:
            del self._counters[key]
            return None
        return counter

    async def get(self, key: str) -> int | None:
        with self._lock:
            counter = self._live(key, self._clock())
            return counter.count if counter else None

    async def incr(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            counter = self._live(key, now)
            if counter is None:
                counter = _Counter(count=0, last_attempt=now)
                self._counters[key] = counter
            counter.count += 1
            counter.last_attempt = now
            return counter.count

    async def expire(self, key: str, seconds: int, *, only_if_unset: bool = False) -> bool:
        now = self._clock()
        with self._lock:
            counter = self._live(key, now)
            if counter is None:
                return False
            if only_if_unset and counter.expires_at is not None:
                return False
            counter.expires_at = now + seconds
            return True

    async def ttl(self, key: str) -> float | None:
        now = self._clock()
        with self._lock:
            counter = self._live(key, now)
            if counter is None or counter.expires_at is None:
                return None
            return counter.expires_at - now

    async def delete(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)

    async def sweep(self, idle_seconds: int) -> int:
        now = self._clock()
        cutoff = now - idle_seconds
        with self._lock:
            stale = [
                key
                for key, c in self._counters.items()
                if c.last_attempt < cutoff or (c.expires_at is not None and c.expires_at <= now)
            ]
            for key in stale:
                del self._counters[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)
