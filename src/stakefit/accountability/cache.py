"""Short-lived local cache for challenge list queries.

A plain key/value store with timestamped entries. Entries expire on read
once they are older than the TTL; nothing is purged proactively since the
key space is one entry per list query shape.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from .clock import Clock, SystemClock

DEFAULT_TTL_SECONDS = 300


@dataclass
class CacheEntry:
    """A cached payload and the time it was stored."""

    payload: Any
    timestamp: datetime


class TTLCache:
    """Key/value cache whose entries expire after a fixed TTL."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Optional[Clock] = None):
        """Initialize cache.

        Args:
            ttl_seconds: Lifetime of an entry in seconds
            clock: Time source (system clock if not provided)
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or SystemClock()
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached payload, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock.now() - entry.timestamp >= self.ttl:
            return None
        return entry.payload

    def set(self, key: str, value: Any) -> None:
        """Store a payload, replacing any previous entry."""
        self._entries[key] = CacheEntry(payload=value, timestamp=self.clock.now())

    def invalidate(self, key: str) -> None:
        """Drop an entry if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
