"""
In-process caches.

`BoundedCache` is a fixed-capacity map that evicts the oldest insertion once full. The
maps chat collaborator keeps its successful replies in one; `clear_all_caches` and
`get_all_cache_stats` back the /dev cache endpoints.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Generic, TypeVar

from .metrics import cache_evictions_total, cache_hits_total, cache_misses_total, cache_size

V = TypeVar("V")

_registry: dict[str, BoundedCache] = {}


class BoundedCache(Generic[V]):
    def __init__(self, name: str, max_size: int = 50) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.name = name
        self.max_size = max_size
        self._data: OrderedDict[str, V] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        _registry[name] = self

    def get(self, key: str) -> V | None:
        with self._lock:
            # lookups do not refresh position: eviction is by insertion order
            value = self._data.get(key)
            if value is None:
                self.misses += 1
                cache_misses_total.labels(cache_name=self.name).inc()
                return None
            self.hits += 1
            cache_hits_total.labels(cache_name=self.name).inc()
            return value

    def set(self, key: str, value: V) -> None:
        with self._lock:
            if key in self._data:
                self._data[key] = value
                return
            self._data[key] = value
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)
                self.evictions += 1
                cache_evictions_total.labels(cache_name=self.name).inc()
            cache_size.labels(cache_name=self.name).set(len(self._data))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            cache_size.labels(cache_name=self.name).set(0)

    def stats(self) -> dict[str, int]:
        return {
            "entries": len(self._data),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }


def clear_all_caches() -> None:
    """Purge all in-process caches."""
    for cache in _registry.values():
        cache.clear()


def get_all_cache_stats() -> dict[str, dict[str, int]]:
    return {name: cache.stats() for name, cache in _registry.items()}
