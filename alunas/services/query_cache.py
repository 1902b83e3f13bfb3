# alunas/services/query_cache.py
from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Hashable, Tuple

logger = logging.getLogger("alunas.cache")

CacheKey = Tuple[Hashable, ...]

_MISSING = object()


def _matches(key: CacheKey, prefix: CacheKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """
    Keyed result cache for read operations.

    Keys are tuples whose first element names the operation, e.g.
    ("alunas", filters, page, limit). invalidate(("alunas",)) drops every
    entry under that namespace; ("alunas-stats",) is a different key.

    Concurrent fetches of the same key share one in-flight load. Failed
    loads are never stored. At most max_entries results are kept; the oldest
    stored entry is evicted first. All access happens on one event loop.
    """

    def __init__(
        self,
        stale_time: float = 30.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        if stale_time < 0:
            raise ValueError("stale_time must be >= 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.stale_time = stale_time
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, Tuple[float, Any]]" = OrderedDict()
        self._inflight: Dict[CacheKey, "asyncio.Task[Any]"] = {}

    def get(self, key: CacheKey, default: Any = None) -> Any:
        """Return the fresh cached value for key, or default."""
        hit = self._entries.get(key)
        if hit is None:
            return default
        stored_at, value = hit
        if self._clock() - stored_at >= self.stale_time:
            self._entries.pop(key, None)
            return default
        return value

    async def fetch(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        hit = self.get(key, _MISSING)
        if hit is not _MISSING:
            return hit

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(loader())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._settle(k, t))
        return await asyncio.shield(task)

    def _settle(self, key: CacheKey, task: "asyncio.Task[Any]") -> None:
        # an invalidate() while loading forgets the task; don't repopulate
        if self._inflight.get(key) is not task:
            return
        del self._inflight[key]
        if task.cancelled() or task.exception() is not None:
            return
        if self.stale_time > 0:
            self._store(key, task.result())

    def _store(self, key: CacheKey, value: Any) -> None:
        now = self._clock()
        self._entries.pop(key, None)
        self._entries[key] = (now, value)
        self._sweep(now)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def _sweep(self, now: float) -> None:
        # entries are in store order, so expired ones sit at the front
        while self._entries:
            stored_at, _ = next(iter(self._entries.values()))
            if now - stored_at < self.stale_time:
                break
            self._entries.popitem(last=False)

    def invalidate(self, prefix: CacheKey) -> int:
        """Drop cached entries and in-flight loads whose key starts with prefix."""
        stale = [k for k in self._entries if _matches(k, prefix)]
        for k in stale:
            del self._entries[k]
        pending = [k for k in self._inflight if _matches(k, prefix)]
        for k in pending:
            del self._inflight[k]
        dropped = len(set(stale) | set(pending))
        logger.debug("invalidate prefix=%r dropped=%d", prefix, dropped)
        return dropped

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
