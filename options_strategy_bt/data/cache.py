"""
Caller-owned time-to-live cache for loaded quotes/chains.

There is no module-level instance: whoever runs backtests creates a cache and
passes it in, so independent runs stay reproducible and can share one cache
across threads.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)


class QuoteCache:
    """
    Cache values by key with a fixed time-to-live.

    Entries older than ``ttl_seconds`` (measured with ``clock``) are treated as
    missing and evicted on access. get_or_load runs at most one loader per key
    at a time; threads missing the same key wait for that load and reuse it.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._load_locks: Dict[Hashable, threading.Lock] = {}

    def __repr__(self) -> str:
        return f"QuoteCache(ttl_seconds={self.ttl_seconds}, entries={len(self)})"

    def _expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at >= self.ttl_seconds

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._expired(stored_at):
                del self._entries[key]
                return None
            return value

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def _load_lock(self, key: Hashable) -> threading.Lock:
        with self._lock:
            return self._load_locks.setdefault(key, threading.Lock())

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached

        with self._load_lock(key):
            # another thread may have loaded it while we waited
            cached = self.get(key)
            if cached is not None:
                logger.debug(f"Cache hit after wait: {key}")
                return cached
            logger.debug(f"Cache miss: {key}")
            value = loader()
            self.put(key, value)
            return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for stored_at, _ in self._entries.values() if now - stored_at < self.ttl_seconds)
