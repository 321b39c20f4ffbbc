"""Access tracking pipeline: filter, throttle, queue, persist."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict

from noteviews.config import TrackerConfig
from noteviews.frontmatter.store import FrontmatterStore
from noteviews.models import DocumentRef, FilterRules, Priority, UpdateOperation
from noteviews.tracking.batch_queue import BatchQueue
from noteviews.tracking.cache import RecencyCache
from noteviews.tracking.path_filter import PathFilter

LOGGER = logging.getLogger(__name__)


class ViewTracker:
    """Coordinates the components that turn note accesses into header counts."""

    def __init__(
        self,
        config: TrackerConfig,
        *,
        store: FrontmatterStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        config.validate()
        self.config = config
        self.store = store or FrontmatterStore(config.resolve_vault_path())
        self.path_filter = PathFilter(
            FilterRules(tuple(config.include_paths), tuple(config.exclude_paths))
        )
        self.cache = RecencyCache(config.cache_capacity, clock=clock)
        self.queue = BatchQueue(
            self.store,
            max_batch_size=config.max_batch_size,
            flush_interval_ms=config.flush_interval_ms,
            debounce_ms=config.debounce_ms,
            clock=clock,
        )
        self._clock = clock
        self._started = False

    @property
    def counter_field(self) -> str:
        return self.config.counter_field

    @property
    def is_running(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self.cache.start_periodic_cleanup(self.config.cache_cleanup_interval_ms)
        self.queue.start()
        self._started = True
        LOGGER.info("Tracking notes in %s", self.store.root)

    async def stop(self) -> None:
        """Stop timers and write out everything still queued."""
        if not self._started:
            return
        self._started = False
        self.cache.stop()
        await self.queue.stop()
        await self.drain()
        LOGGER.info("Tracker stopped")

    async def drain(self) -> int:
        """Flush until the queue is empty; failing updates stop at the retry cap."""
        written = 0
        while self.queue.pending_count:
            result = await self.queue.flush()
            if result.processed_count == 0:
                break
            written += result.success_count
        return written

    def notify_access(
        self, document: DocumentRef, *, priority: Priority = Priority.NORMAL
    ) -> bool:
        """Register that ``document`` was opened; True if it will be counted."""
        if not self.path_filter.should_track(document):
            return False
        if not self.cache.should_process(document.path, self.config.min_interval_ms):
            LOGGER.debug("Throttled access to %s", document.path)
            return False

        operation = UpdateOperation(
            document=document,
            field_key=self.config.counter_field,
            delta=1,
            enqueued_at=self._clock(),
            priority=priority,
        )
        if not self.queue.enqueue(operation):
            return False
        self.cache.touch(document.path)
        return True

    def apply_config(self, config: TrackerConfig) -> None:
        """Apply new settings to every component, or to none of them."""
        config.validate()
        candidate = PathFilter()
        candidate.replace(config.include_paths, config.exclude_paths)

        self.path_filter.update_from_rules(candidate.rules)
        self.cache.set_capacity(config.cache_capacity)
        self.queue.set_max_batch_size(config.max_batch_size)
        self.queue.set_flush_interval_ms(config.flush_interval_ms)
        self.queue.set_debounce_ms(config.debounce_ms)
        # The store stays bound to the vault it was created for.
        self.config = replace(config, vault_path=self.config.vault_path)
        LOGGER.info("Configuration applied (field=%s)", config.counter_field)

    async def current_count(self, document: DocumentRef) -> int:
        """Persisted count plus updates still waiting in the queue."""
        stored = await self.store.read_field(document, self.config.counter_field)
        return stored + self.queue.pending_delta(document.path, self.config.counter_field)

    def status(self) -> Dict[str, Any]:
        cache_stats = self.cache.stats()
        queue_status = self.queue.queue_status()
        return {
            "running": self._started,
            "counter_field": self.config.counter_field,
            "cache": {
                "hits": cache_stats.hits,
                "misses": cache_stats.misses,
                "size": cache_stats.size,
                "capacity": cache_stats.capacity,
                "hit_rate": cache_stats.hit_rate,
            },
            "queue": {
                "queue_size": queue_status.queue_size,
                "is_flushing": queue_status.is_flushing,
                "is_paused": queue_status.is_paused,
                "next_flush_at": queue_status.next_flush_at,
                "high_priority_count": queue_status.high_priority_count,
            },
            "filter": {
                "include": list(self.path_filter.rules.include_patterns),
                "exclude": list(self.path_filter.rules.exclude_patterns),
            },
        }
