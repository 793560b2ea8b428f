"""In-memory TTL cache for assembled API responses.

Async-safe via asyncio.Lock so route handlers and fanned-out tasks can read
and write it concurrently. Instances are created by the app factory and
injected; there is no module-level cache.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from treasury.logging import get_logger

logger = get_logger(__name__)


class TTLCache:
    """Key/value cache with a per-entry time to live.

    A ttl of 0 (or None) stores the entry without expiry.
    """

    def __init__(
        self,
        default_ttl: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        expires_at = self._clock() + ttl if ttl else None
        async with self._lock:
            self._entries[key] = (value, expires_at)
        logger.debug("cache_set", key=key, ttl=ttl)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
