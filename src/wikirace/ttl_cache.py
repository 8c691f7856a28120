# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Time-bounded memoization for external lookups.

Pure Python module — no network dependencies.

Backs the connectivity metrics cache (backlinks, outgoing links, page views)
and the Wikipedia category cache.  An entry older than the TTL is never
returned: lookup evicts it and reports a miss so the caller refetches.

Concurrent writers to one key race harmlessly (same key → same fetched
value), so there is no locking.  Not thread-safe; share only within one
event loop.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger("wikirace.ttl_cache")

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 3600.0  # 1 hour
DEFAULT_MAX_ENTRIES = 4096


@dataclass
class CacheEntry(Generic[V]):
    """A cached value with its insertion time."""

    data: V
    timestamp: float  # clock() at insertion

    def is_expired(self, ttl: float, now: float) -> bool:
        return (now - self.timestamp) >= ttl


@dataclass
class CacheStats:
    """Counters for cache behaviour — used for logging and CLI output."""

    hits: int = 0
    misses: int = 0
    ttl_expirations: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class TTLCache(Generic[V]):
    """Key → value map with a fixed expiry and an LRU size bound."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {ttl}")
        if max_entries <= 0:
            raise ValueError(f"max_entries must be > 0, got {max_entries}")
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._name = name
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._stats = CacheStats()

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None
        if entry.is_expired(self._ttl, self._clock()):
            self._entries.pop(key, None)
            self._stats.ttl_expirations += 1
            self._stats.misses += 1
            logger.debug("%s TTL expired: %s", self._name, key)
            return None
        self._entries.move_to_end(key)
        self._stats.hits += 1
        return entry.data

    def set(self, key: str, data: V) -> None:
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self._stats.evictions += 1
            logger.debug("%s eviction: %s", self._name, evicted_key)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._ttl, self._clock())

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def stats(self) -> CacheStats:
        return self._stats
