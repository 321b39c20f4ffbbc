"""Read-only statistics over note access records."""

from __future__ import annotations

import fnmatch
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Sequence

import numpy as np

from noteviews.errors import TrackerError
from noteviews.frontmatter.store import FrontmatterStore
from noteviews.models import AccessRecord
from noteviews.utils.files import document_ref_for, iter_note_paths

LOGGER = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
ACCESS_RANGE_LABELS = ("1-5", "6-10", "11-25", "26-50", "51-100", "100+")
ACCESS_RANGE_EDGES = (6, 11, 26, 51, 101)
SORT_KEYS = ("path", "access_count", "first_seen", "last_seen")


@dataclass(slots=True)
class AggregatedStats:
    total_files: int = 0
    total_accesses: int = 0
    average_accesses_per_file: float = 0.0
    most_accessed: AccessRecord | None = None
    least_accessed: AccessRecord | None = None
    first_access: float | None = None
    last_access: float | None = None
    access_ranges: Dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class AccessTrends:
    daily_accesses: List[tuple[str, int]]
    hourly_pattern: List[int]
    growth_rate: float
    peak_hour: int


class AccessStats:
    """Summaries over a snapshot of :class:`AccessRecord` values."""

    def __init__(
        self, records: Sequence[AccessRecord], *, clock: Callable[[], float] = time.time
    ) -> None:
        self.records = list(records)
        self._clock = clock

    def most_frequent(self, limit: int = 10) -> List[AccessRecord]:
        return sorted(self.records, key=lambda r: r.access_count, reverse=True)[:limit]

    def most_recent(self, limit: int = 10) -> List[AccessRecord]:
        return sorted(self.records, key=lambda r: r.last_seen, reverse=True)[:limit]

    def unaccessed_since(self, since: float) -> List[AccessRecord]:
        return [r for r in self.records if r.last_seen < since]

    def by_access_count(self, minimum: int, maximum: int) -> List[AccessRecord]:
        return [r for r in self.records if minimum <= r.access_count <= maximum]

    def accessed_in_range(self, start: float, end: float) -> List[AccessRecord]:
        return [r for r in self.records if start <= r.last_seen <= end]

    def search(
        self,
        *,
        path_pattern: str | None = None,
        min_count: int | None = None,
        max_count: int | None = None,
        sort_by: str | None = None,
        descending: bool = False,
    ) -> List[AccessRecord]:
        results = list(self.records)
        if min_count is not None:
            results = [r for r in results if r.access_count >= min_count]
        if max_count is not None:
            results = [r for r in results if r.access_count <= max_count]
        if path_pattern:
            results = [r for r in results if fnmatch.fnmatchcase(r.path, path_pattern)]
        if sort_by is not None:
            if sort_by not in SORT_KEYS:
                raise ValueError(f"Cannot sort by {sort_by!r}")
            results.sort(key=lambda r: getattr(r, sort_by), reverse=descending)
        return results

    def aggregate(self) -> AggregatedStats:
        if not self.records:
            return AggregatedStats(access_ranges={label: 0 for label in ACCESS_RANGE_LABELS})

        counts = np.array([r.access_count for r in self.records], dtype=np.int64)
        buckets = np.bincount(
            np.digitize(counts, ACCESS_RANGE_EDGES), minlength=len(ACCESS_RANGE_LABELS)
        )
        total = int(counts.sum())
        return AggregatedStats(
            total_files=len(self.records),
            total_accesses=total,
            average_accesses_per_file=total / len(self.records),
            most_accessed=self.records[int(np.argmax(counts))],
            least_accessed=self.records[int(np.argmin(counts))],
            first_access=min(r.first_seen for r in self.records),
            last_access=max(r.last_seen for r in self.records),
            access_ranges=dict(zip(ACCESS_RANGE_LABELS, (int(n) for n in buckets))),
        )

    def trends(self, days: int = 7) -> AccessTrends:
        """Daily and hourly activity of notes last seen in the past ``days``."""
        days = max(1, days)
        now = self._clock()
        recent = [r for r in self.records if r.last_seen >= now - days * DAY_SECONDS]
        seen = np.array([r.last_seen for r in recent], dtype=np.float64)

        today = datetime.fromtimestamp(now, tz=timezone.utc).date()
        dates = [
            datetime.fromtimestamp(now - offset * DAY_SECONDS, tz=timezone.utc).date()
            for offset in range(days - 1, -1, -1)
        ]
        day_offsets = np.array(
            [(today - datetime.fromtimestamp(t, tz=timezone.utc).date()).days for t in seen],
            dtype=np.int64,
        )
        in_window = (day_offsets >= 0) & (day_offsets < days)
        per_day = np.bincount(day_offsets[in_window], minlength=days)
        daily = [(d.isoformat(), int(per_day[(today - d).days])) for d in dates]

        hours = np.array(
            [datetime.fromtimestamp(t, tz=timezone.utc).hour for t in seen], dtype=np.int64
        )
        hourly = np.bincount(hours, minlength=24)

        halfway = now - days * DAY_SECONDS / 2
        newer = int(np.count_nonzero(seen >= halfway))
        older = len(seen) - newer
        growth = 0.0 if older == 0 else (newer - older) / older * 100

        return AccessTrends(
            daily_accesses=daily,
            hourly_pattern=[int(n) for n in hourly],
            growth_rate=growth,
            peak_hour=int(np.argmax(hourly)),
        )


async def collect_vault_records(
    store: FrontmatterStore, counter_field: str, paths: Sequence[Path] | None = None
) -> List[AccessRecord]:
    """Build records from note headers; ctime/mtime stand in for first/last seen."""
    vault = store.root
    records: List[AccessRecord] = []
    for path in iter_note_paths(paths or [vault]):
        document = document_ref_for(vault, path)
        try:
            count = await store.read_field(document, counter_field)
        except TrackerError as exc:
            LOGGER.warning("Skipping %s: %s", document.path, exc)
            continue
        if count <= 0:
            continue
        records.append(
            AccessRecord(
                path=document.path,
                first_seen=min(document.created_at, document.modified_at),
                last_seen=document.modified_at,
                access_count=count,
            )
        )
    return records
