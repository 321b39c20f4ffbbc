"""Priority batch queue that coalesces counter updates into flushes.

Operations accumulate until either ``max_batch_size`` is reached (which arms
a short debounce so a burst of enqueues yields one flush) or the periodic
timer fires. A flush takes at most ``max_batch_size`` operations from the
head of the queue and applies them one by one to the frontmatter store.
Failed operations go back to the tail until they have been retried
``MAX_RETRIES`` times, after which they are dropped and reported.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Protocol, Set

from noteviews.errors import TrackerError, TrackerErrorKind
from noteviews.models import (
    DocumentRef,
    FailedOperation,
    Priority,
    ProcessResult,
    QueueStatus,
    UpdateOperation,
)

LOGGER = logging.getLogger(__name__)

MAX_RETRIES = 3
DEFAULT_MAX_BATCH_SIZE = 10
DEFAULT_FLUSH_INTERVAL_MS = 5000
MIN_FLUSH_INTERVAL_MS = 1000
DEFAULT_DEBOUNCE_MS = 500

FlushCallback = Callable[[ProcessResult], None]


class CounterStore(Protocol):
    async def increment_field(self, document: DocumentRef, key: str, delta: int) -> int: ...


class BatchQueue:
    """Queue of :class:`UpdateOperation` owned by a single tracker."""

    def __init__(
        self,
        store: CounterStore,
        *,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self._queue: List[UpdateOperation] = []
        self._max_batch_size = max(1, max_batch_size)
        self._flush_interval_ms = max(MIN_FLUSH_INTERVAL_MS, flush_interval_ms)
        self._debounce_ms = debounce_ms
        self._clock = clock
        self._flushing = False
        self._paused = False
        self._running = False
        self._callbacks: List[FlushCallback] = []
        self._timer_task: asyncio.Task | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._flush_tasks: Set[asyncio.Task] = set()
        self._next_flush_at: float | None = None

    # -- configuration -------------------------------------------------

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    @property
    def flush_interval_ms(self) -> int:
        return self._flush_interval_ms

    def set_max_batch_size(self, size: int) -> None:
        self._max_batch_size = max(1, size)

    def set_debounce_ms(self, debounce_ms: int) -> None:
        self._debounce_ms = max(0, debounce_ms)

    def set_flush_interval_ms(self, interval_ms: int) -> None:
        self._flush_interval_ms = max(MIN_FLUSH_INTERVAL_MS, interval_ms)
        if self._running and not self._paused:
            self._start_timer()

    # -- lifecycle -----------------------------------------------------

    def start(self) -> None:
        """Start the periodic flush timer on the running event loop."""
        self._running = True
        if not self._paused:
            self._start_timer()

    async def stop(self) -> None:
        """Cancel timers and wait for flushes already scheduled to finish."""
        self._running = False
        self._stop_timer()
        self._cancel_debounce()
        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)

    def pause(self) -> None:
        self._paused = True
        self._stop_timer()
        self._cancel_debounce()

    def resume(self) -> None:
        self._paused = False
        if self._running:
            self._start_timer()

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_flushing(self) -> bool:
        return self._flushing

    # -- queue mutation ------------------------------------------------

    def enqueue(self, operation: UpdateOperation) -> bool:
        """Queue ``operation``; returns False when the queue is paused."""
        if self._paused:
            LOGGER.debug("Queue paused, dropping update for %s", operation.path)
            return False

        if operation.priority is Priority.HIGH:
            # After the high-priority run already at the head.
            index = 0
            while index < len(self._queue) and self._queue[index].priority is Priority.HIGH:
                index += 1
            self._queue.insert(index, operation)
        else:
            self._queue.append(operation)

        if len(self._queue) >= self._max_batch_size:
            self._request_flush()
        return True

    def clear(self) -> int:
        removed = len(self._queue)
        self._queue = []
        return removed

    def remove_operations_for(self, path: str) -> int:
        before = len(self._queue)
        self._queue = [op for op in self._queue if op.path != path]
        return before - len(self._queue)

    # -- introspection -------------------------------------------------

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def queue_status(self) -> QueueStatus:
        return QueueStatus(
            queue_size=len(self._queue),
            is_flushing=self._flushing,
            is_paused=self._paused,
            next_flush_at=self._next_flush_at if self._timer_task is not None else None,
            high_priority_count=sum(1 for op in self._queue if op.priority is Priority.HIGH),
        )

    def operations_by_priority(self, priority: Priority) -> List[UpdateOperation]:
        return [op for op in self._queue if op.priority is priority]

    def oldest_operation(self) -> UpdateOperation | None:
        if not self._queue:
            return None
        return min(self._queue, key=lambda op: op.enqueued_at)

    def file_paths_queued(self) -> List[str]:
        return list(dict.fromkeys(op.path for op in self._queue))

    def pending_delta(self, path: str, field_key: str) -> int:
        return sum(op.delta for op in self._queue if op.path == path and op.field_key == field_key)

    def on_flush_complete(self, callback: FlushCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    # -- flushing ------------------------------------------------------

    async def flush(self) -> ProcessResult:
        if self._flushing or not self._queue:
            return ProcessResult()

        self._flushing = True
        started = time.perf_counter()
        batch = self._queue[: self._max_batch_size]
        del self._queue[: self._max_batch_size]

        success_count = 0
        failures: List[FailedOperation] = []
        try:
            for operation in batch:
                try:
                    await self.store.increment_field(
                        operation.document, operation.field_key, operation.delta
                    )
                except Exception as exc:
                    failures.append(self._handle_failure(operation, exc))
                else:
                    success_count += 1
        finally:
            self._flushing = False

        result = ProcessResult(
            processed_count=len(batch),
            success_count=success_count,
            failure_count=len(failures),
            processing_time_ms=(time.perf_counter() - started) * 1000,
            failures=tuple(failures),
        )
        LOGGER.info(
            "Flushed %d updates (%d ok, %d failed, %d pending)",
            result.processed_count,
            result.success_count,
            result.failure_count,
            len(self._queue),
        )
        self._notify(result)
        return result

    def _handle_failure(self, operation: UpdateOperation, exc: Exception) -> FailedOperation:
        if not isinstance(exc, TrackerError):
            exc = TrackerError(
                TrackerErrorKind.BATCH_OPERATION,
                str(exc) or type(exc).__name__,
                path=operation.path,
                operation="increment_field",
            )
        failure = FailedOperation(
            operation=operation, error_message=str(exc), failed_at=self._clock()
        )
        if operation.retry_count < MAX_RETRIES:
            operation.retry_count += 1
            self._queue.append(operation)
            LOGGER.debug(
                "Re-queued %s (attempt %d/%d)", operation.path, operation.retry_count, MAX_RETRIES
            )
        else:
            LOGGER.warning(
                "Dropping update for %s after %d retries: %s", operation.path, MAX_RETRIES, exc
            )
        return failure

    def _notify(self, result: ProcessResult) -> None:
        for callback in list(self._callbacks):
            try:
                callback(result)
            except Exception:
                LOGGER.exception("Error in flush completion callback")

    # -- timers --------------------------------------------------------

    def _request_flush(self) -> None:
        """Arm the debounce timer; later crossings join a pending request."""
        if self._debounce_handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running event loop, flush left to the caller")
            return
        self._debounce_handle = loop.call_later(self._debounce_ms / 1000, self._spawn_flush)

    def _spawn_flush(self) -> None:
        self._debounce_handle = None
        self._start_flush_task()

    def _start_flush_task(self) -> None:
        task = asyncio.get_running_loop().create_task(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _start_timer(self) -> None:
        self._stop_timer()
        loop = asyncio.get_running_loop()
        self._timer_task = loop.create_task(self._timer_loop())

    def _stop_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
        self._next_flush_at = None

    async def _timer_loop(self) -> None:
        interval = self._flush_interval_ms / 1000
        while True:
            self._next_flush_at = self._clock() + interval
            await asyncio.sleep(interval)
            if not self._paused and self._queue:
                self._start_flush_task()
