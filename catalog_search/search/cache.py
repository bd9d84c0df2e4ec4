from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float  # milliseconds on the cache clock


class SuggestCache:
    """Bounded in-process cache with LRU eviction and per-entry TTL.

    Expiry is lazy: an expired entry is only dropped when read, or when LRU
    pressure pushes it out. Both `get` hits and `set` writes refresh recency.

    The internal OrderedDict is guarded by a lock so concurrent request threads
    never observe a half-evicted state. The lock only covers in-memory work.
    """

    def __init__(
        self,
        max_entries: int = 300,
        ttl_ms: float = 60000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self.max_entries = int(max_entries)
        self.ttl_ms = float(ttl_ms)
        self._clock = clock
        self._store: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            if entry.expires_at <= self._now_ms():
                del self._store[key]
                return None

            self._store.move_to_end(key)
            return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            entry = CacheEntry(value=value, expires_at=self._now_ms() + self.ttl_ms)
            self._store.pop(key, None)
            self._store[key] = entry

            while len(self._store) > self.max_entries:
                evicted, _ = self._store.popitem(last=False)
                logger.debug("Evicted suggest cache key %r", evicted)

    def __contains__(self, key: Hashable) -> bool:
        """Whether a live entry exists; does not touch recency."""
        with self._lock:
            entry = self._store.get(key)
            return entry is not None and entry.expires_at > self._now_ms()

    def __len__(self) -> int:
        # Counts expired-but-unread entries too.
        with self._lock:
            return len(self._store)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
