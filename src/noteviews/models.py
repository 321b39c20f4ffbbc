"""Core NoteViews data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Tuple


class Priority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


@dataclass(slots=True, frozen=True)
class DocumentRef:
    """A note in the vault, addressed by its vault-relative path."""

    path: str
    size_bytes: int = 0
    modified_at: float = 0.0
    created_at: float = 0.0


@dataclass(slots=True)
class AccessRecord:
    """In-memory access history for one note path."""

    path: str
    first_seen: float
    last_seen: float
    access_count: int = 1


@dataclass(slots=True)
class UpdateOperation:
    """Pending change of a numeric header field."""

    document: DocumentRef
    field_key: str
    delta: int = 1
    enqueued_at: float = field(default_factory=time.time)
    retry_count: int = 0
    priority: Priority = Priority.NORMAL

    @property
    def path(self) -> str:
        return self.document.path


@dataclass(slots=True, frozen=True)
class FailedOperation:
    operation: UpdateOperation
    error_message: str
    failed_at: float


@dataclass(slots=True, frozen=True)
class ProcessResult:
    """Outcome of one flush of the batch queue."""

    processed_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    processing_time_ms: float = 0.0
    failures: Tuple[FailedOperation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed_count": self.processed_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "processing_time_ms": self.processing_time_ms,
            "failures": [
                {
                    "path": failure.operation.path,
                    "field_key": failure.operation.field_key,
                    "retry_count": failure.operation.retry_count,
                    "error": failure.error_message,
                    "failed_at": failure.failed_at,
                }
                for failure in self.failures
            ],
        }


@dataclass(slots=True)
class FieldUpdate:
    """Absolute value to write into one header field."""

    document: DocumentRef
    key: str
    value: Any


@dataclass(slots=True)
class FailedUpdate:
    update: FieldUpdate
    error_message: str


@dataclass(slots=True)
class BatchUpdateResult:
    successful: List[FieldUpdate] = field(default_factory=list)
    failed: List[FailedUpdate] = field(default_factory=list)
    total: int = 0


@dataclass(slots=True, frozen=True)
class FilterRules:
    include_patterns: Tuple[str, ...] = ()
    exclude_patterns: Tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    capacity: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


@dataclass(slots=True, frozen=True)
class QueueStatus:
    queue_size: int
    is_flushing: bool
    is_paused: bool
    next_flush_at: float | None
    high_priority_count: int
