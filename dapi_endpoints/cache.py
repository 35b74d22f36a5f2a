"""A small thread-safe TTL cache with an injectable clock.

The lock is held only around dictionary access. Callers must never perform
network I/O while holding it, so ``get``/``set`` are the only critical
sections and readers can at worst observe a miss, never a partial entry.
"""

import threading
import time
from typing import Callable, Dict, Generic, Hashable, Iterable, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


class TTLCache(Generic[K, V]):
    """Mapping of key -> (value, stored_at) where entries expire after ``ttl_seconds``.

    An entry is fresh while ``clock() - stored_at < ttl_seconds``. Stale
    entries are evicted on read and reported as absent.
    """

    def __init__(self, ttl_seconds: float, *, clock: Clock = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[K, Tuple[V, float]] = {}
        self._last_write: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def last_write_at(self) -> Optional[float]:
        """Clock value of the most recent ``set``; None when empty or cleared."""
        with self._lock:
            return self._last_write

    def _is_fresh(self, stored_at: float, now: float) -> bool:
        return now - stored_at < self._ttl

    def get(self, key: K) -> Optional[V]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if not self._is_fresh(stored_at, now):
                del self._entries[key]
                return None
            return value

    def get_many(self, keys: Iterable[K]) -> Dict[K, V]:
        """Return the fresh entries among ``keys`` (stale ones are evicted)."""
        now = self._clock()
        found: Dict[K, V] = {}
        with self._lock:
            for key in keys:
                entry = self._entries.get(key)
                if entry is None:
                    continue
                value, stored_at = entry
                if self._is_fresh(stored_at, now):
                    found[key] = value
                else:
                    del self._entries[key]
        return found

    def set(self, key: K, value: V) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = (value, now)
            self._last_write = now

    def pop(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_write = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["TTLCache", "Clock"]
