"""In-process cache with named regions.

Reads are cached per region ("products", "purchases", ...) and any
mutation evicts the whole region, so a stale entry can only live until
the next write or until its TTL runs out.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import Any, Callable, Hashable

from .config import settings


class RegionCache:
    """Thread-safe key/value store grouped by region with a per-entry TTL."""

    def __init__(self, ttl_seconds: int = 600):
        self._regions: dict[str, dict[Hashable, tuple[float, Any]]] = defaultdict(dict)
        self._generations: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.hits = 0
        self.misses = 0

    def get(self, region: str, key: Hashable, default: Any = None) -> Any:
        now = time.monotonic()
        with self._lock:
            entry = self._regions[region].get(key)
            if entry is None or entry[0] < now:
                self._regions[region].pop(key, None)
                self.misses += 1
                return default
            self.hits += 1
            return entry[1]

    def set(self, region: str, key: Hashable, value: Any) -> None:
        with self._lock:
            self._regions[region][key] = (time.monotonic() + self._ttl_seconds, value)

    def get_or_load(self, region: str, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value or call `loader`, cache and return its result.

        `None` results are not cached so a later insert becomes visible. A
        result is also dropped when the region was evicted while `loader` ran.
        """
        missing = object()
        value = self.get(region, key, missing)
        if value is not missing:
            return value
        with self._lock:
            generation = self._generations[region]
        value = loader()
        if value is not None:
            with self._lock:
                if self._generations[region] == generation:
                    self._regions[region][key] = (time.monotonic() + self._ttl_seconds, value)
        return value

    def evict(self, region: str) -> None:
        """Drop every entry of `region`."""
        with self._lock:
            self._regions.pop(region, None)
            self._generations[region] += 1

    def clear(self) -> None:
        with self._lock:
            self._regions.clear()
            for region in self._generations:
                self._generations[region] += 1
            self.hits = 0
            self.misses = 0

    def size(self, region: str) -> int:
        with self._lock:
            return len(self._regions.get(region, {}))


cache = RegionCache(ttl_seconds=settings.CACHE_TTL_SECONDS)
