"""Error type shared by the tracking pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict


class TrackerErrorKind(str, Enum):
    FILTER_CONFIG = "filter_config"
    FRONTMATTER = "frontmatter"
    BATCH_OPERATION = "batch_operation"
    CONFIG = "config"


class TrackerError(Exception):
    """Single error type for the pipeline, discriminated by ``kind``.

    ``path`` and ``operation`` are filled in for document-level failures so a
    log line or API response can say which note failed and what was attempted.
    """

    def __init__(
        self,
        kind: TrackerErrorKind,
        message: str,
        *,
        path: str | None = None,
        operation: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.path = path
        self.operation = operation
        self.details = details or {}

    def __str__(self) -> str:
        if self.path and self.operation:
            return f"{self.operation} failed for '{self.path}': {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "path": self.path,
            "operation": self.operation,
            "details": self.details,
        }


def filter_config_error(pattern: str, reason: str) -> TrackerError:
    return TrackerError(
        TrackerErrorKind.FILTER_CONFIG,
        f"Invalid path pattern {pattern!r}: {reason}",
        details={"pattern": pattern},
    )


def frontmatter_error(path: str, operation: str, exc: BaseException | str) -> TrackerError:
    return TrackerError(
        TrackerErrorKind.FRONTMATTER,
        str(exc),
        path=path,
        operation=operation,
    )
