"""Counter store protocol for brute-force protection (DIP).

Both backends must make incr() atomic per key and honor only_if_unset in
expire() so a lockout window, once set, is never extended by later failures.
"""

from typing import Protocol


class CounterStore(Protocol):
    """Protocol for shared integer counters with optional expiry."""

    async def get(self, key: str) -> int | None:
        """Return the current count, or None if the key is missing or expired."""
        ...

    async def incr(self, key: str) -> int:
        """Atomically increment (creating at 1) and return the new count."""
        ...

    async def expire(self, key: str, seconds: int, *, only_if_unset: bool = False) -> bool:
        """Set expiry on key. With only_if_unset, keep an existing expiry. True if set."""
        ...

    async def ttl(self, key: str) -> float | None:
        """Return seconds until expiry, or None if missing or without expiry."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key."""
        ...

    async def sweep(self, idle_seconds: int) -> int:
        """Remove keys not incremented for idle_seconds. Return count removed."""
        ...
