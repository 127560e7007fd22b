"""
Query result cache with freshness windows and in-flight de-duplication.

Keys are tuples (``("auth", "me")``, ``("categoryListings", game, ...)``);
invalidation works on key prefixes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from config.settings import config

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]


@dataclass
class _Entry:
    data: Any
    updated_at: float
    stale_time: float


class QueryCache:
    def __init__(
        self,
        stale_time: float | None = None,
        gc_time: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_time = config.query_stale_seconds if stale_time is None else stale_time
        self.gc_time = config.query_gc_seconds if gc_time is None else gc_time
        self._clock = clock
        self._entries: Dict[QueryKey, _Entry] = {}
        self._inflight: Dict[QueryKey, asyncio.Future] = {}
        self._generation = 0

    def _is_fresh(self, entry: _Entry) -> bool:
        return self._clock() - entry.updated_at < entry.stale_time

    def _collect_garbage(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.updated_at >= self.gc_time]
        for key in expired:
            del self._entries[key]

    def get(self, key: QueryKey) -> Optional[Any]:
        """Cached data for *key*, fresh or stale; ``None`` when absent."""
        entry = self._entries.get(key)
        return entry.data if entry else None

    def is_fresh(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._is_fresh(entry)

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[Any]],
        *,
        stale_time: float | None = None,
    ) -> Any:
        """
        Return fresh cached data, join an identical in-flight request, or run
        *fetcher*.  Exceptions from *fetcher* propagate and are not cached.
        """
        self._collect_garbage()
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            return entry.data

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        generation = self._generation
        task = asyncio.ensure_future(fetcher())
        self._inflight[key] = task
        try:
            data = await asyncio.shield(task)
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

        # A clear/invalidate while the request was out makes the result stale.
        if generation == self._generation:
            self._entries[key] = _Entry(
                data=data,
                updated_at=self._clock(),
                stale_time=self.stale_time if stale_time is None else stale_time,
            )
        return data

    def set(self, key: QueryKey, data: Any, *, stale_time: float | None = None) -> None:
        self._entries[key] = _Entry(
            data=data,
            updated_at=self._clock(),
            stale_time=self.stale_time if stale_time is None else stale_time,
        )

    def invalidate(self, prefix: QueryKey = ()) -> int:
        """Drop every entry whose key starts with *prefix*; returns the count."""
        self._generation += 1
        doomed = [k for k in self._entries if k[: len(prefix)] == tuple(prefix)]
        for key in doomed:
            del self._entries[key]
        for key in [k for k in self._inflight if k[: len(prefix)] == tuple(prefix)]:
            del self._inflight[key]
        return len(doomed)

    def clear(self) -> None:
        self._generation += 1
        self._entries.clear()
        self._inflight.clear()
        logger.debug("Query cache cleared")

    def __len__(self) -> int:
        return len(self._entries)
