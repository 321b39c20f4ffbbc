"""Bounded recency cache used to throttle repeated note accesses."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, List

from noteviews.models import AccessRecord, CacheStats

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000
STALE_AFTER_SECONDS = 30 * 60


class RecencyCache:
    """Map of note path to :class:`AccessRecord` with strict LRU eviction.

    Eviction scans for the smallest ``last_seen``; at a few thousand entries
    the linear scan is cheaper than keeping a second structure in sync.
    Records handed out are copies, the cache is the only owner.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        clock: Callable[[], float] = time.time,
        stale_after: float = STALE_AFTER_SECONDS,
    ) -> None:
        self._records: Dict[str, AccessRecord] = {}
        self._capacity = max(1, capacity)
        self._clock = clock
        self._stale_after = stale_after
        self._hits = 0
        self._misses = 0
        self._cleanup_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def hit_rate(self) -> float:
        return self.stats().hit_rate

    def should_process(self, path: str, min_interval_ms: float) -> bool:
        """Return True when an access to ``path`` should be counted."""
        record = self._records.get(path)
        if record is None:
            self._misses += 1
            return True

        self._hits += 1
        elapsed_ms = (self._clock() - record.last_seen) * 1000
        if elapsed_ms < 0:
            # Clock moved backwards; treat the path as unseen.
            LOGGER.debug("Negative elapsed time for %s, resetting record", path)
            del self._records[path]
            return True
        return elapsed_ms >= min_interval_ms

    def touch(self, path: str) -> AccessRecord:
        now = self._clock()
        record = self._records.get(path)
        if record is not None:
            record.last_seen = now
            record.access_count += 1
            return replace(record)

        if len(self._records) >= self._capacity:
            self._evict_oldest()
        record = AccessRecord(path=path, first_seen=now, last_seen=now, access_count=1)
        self._records[path] = record
        return replace(record)

    def get(self, path: str) -> AccessRecord | None:
        record = self._records.get(path)
        if record is None:
            self._misses += 1
            return None
        self._hits += 1
        return replace(record)

    def remove(self, path: str) -> bool:
        return self._records.pop(path, None) is not None

    def clear(self) -> None:
        self._records.clear()
        self._hits = 0
        self._misses = 0

    def set_capacity(self, capacity: int) -> None:
        self._capacity = max(1, capacity)
        while len(self._records) > self._capacity:
            self._evict_oldest()

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._records),
            capacity=self._capacity,
        )

    def records(self) -> List[AccessRecord]:
        return [replace(record) for record in self._records.values()]

    def most_accessed(self, limit: int = 10) -> List[AccessRecord]:
        return sorted(self.records(), key=lambda r: r.access_count, reverse=True)[:limit]

    def recently_accessed(self, limit: int = 10) -> List[AccessRecord]:
        return sorted(self.records(), key=lambda r: r.last_seen, reverse=True)[:limit]

    def records_with_min_count(self, min_count: int) -> List[AccessRecord]:
        return [record for record in self.records() if record.access_count >= min_count]

    def purge_stale(self) -> int:
        """Drop records not seen within the staleness window."""
        cutoff = self._clock() - self._stale_after
        stale = [path for path, record in self._records.items() if record.last_seen < cutoff]
        for path in stale:
            del self._records[path]
        if stale:
            LOGGER.debug("Purged %d stale cache records", len(stale))
        return len(stale)

    def start_periodic_cleanup(self, interval_ms: float) -> None:
        """Run :meth:`purge_stale` every ``interval_ms`` on the running loop."""
        self.stop()
        loop = asyncio.get_running_loop()
        self._cleanup_task = loop.create_task(self._cleanup_loop(interval_ms / 1000))

    def stop(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    async def _cleanup_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.purge_stale()

    def _evict_oldest(self) -> None:
        if not self._records:
            return
        oldest = min(self._records.values(), key=lambda record: record.last_seen)
        del self._records[oldest.path]
        LOGGER.debug("Evicted %s from recency cache", oldest.path)
