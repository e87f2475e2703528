"""Bounded in-process key-value cache.

Used for the event deduplicator's last-seen table and the StreamClass lookup
cache. Entries are evicted least-recently-written first once `max_size` is
reached; there is no time-based expiry.
"""

import threading
from collections import OrderedDict
from collections.abc import Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedCache(Generic[K, V]):
    """Thread-safe mapping with a fixed upper bound on the number of entries.

    Args:
        max_size: Maximum number of entries kept. Must be positive.

    Example:
        ```python
        cache: BoundedCache[str, StreamClass] = BoundedCache(max_size=128)
        cache.put("SqlServerStream", stream_class)
        cache.get("SqlServerStream")
        ```
    """

    def __init__(self, max_size: int) -> None:
        if max_size <= 0:
            msg = f"max_size must be positive, got {max_size}"
            raise ValueError(msg)
        self.max_size = max_size
        self._entries: OrderedDict[K, V] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: K) -> V | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: K, value: V) -> None:
        self.replace(key, value)

    def replace(self, key: K, value: V) -> V | None:
        """Store `value` under `key` and return the previous value, atomically."""
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
            return previous

    def pop(self, key: K) -> V | None:
        with self._lock:
            return self._entries.pop(key, None)

    def values(self) -> list[V]:
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
