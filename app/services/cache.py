"""Small TTL cache owned by a single service instance"""

from typing import Any, Dict, Hashable, Optional, Tuple

from app.services.clock import Clock, SystemClock


class TTLCache:
    """Key/value cache whose entries expire ``ttl_seconds`` after being stored.

    Expiry is measured on the injected clock's monotonic counter, so tests can
    drive it with a ``FixedClock``. There is no background eviction; stale
    entries are dropped on read.
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl_seconds = ttl_seconds
        self.clock = clock or SystemClock()
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        stored_at, value = entry
        if self.clock.monotonic() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return default
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self.clock.monotonic(), value)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def __len__(self) -> int:
        return len(self._entries)
