import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """A cached value paired with its absolute expiry time."""
    value: Any
    expires_at: datetime


class MemoryCache:
    """
    Async-safe in-memory store with absolute per-entry expiry.

    Lookups return the whole CacheEntry so a cached None can be told apart
    from a miss.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._store: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._store[key]
                return None
            return entry

    async def set(self, key: str, value: Any, ttl: timedelta) -> CacheEntry:
        entry = CacheEntry(value=value, expires_at=self._clock() + ttl)
        async with self._lock:
            self._store[key] = entry
        return entry

    async def remove(self, *keys: str) -> None:
        async with self._lock:
            for key in keys:
                self._store.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()
