"""Tests for access statistics."""

from __future__ import annotations

from pathlib import Path

import pytest

from noteviews.frontmatter.store import FrontmatterStore
from noteviews.models import AccessRecord
from noteviews.reporting.stats import DAY_SECONDS, AccessStats, collect_vault_records

NOW = 1_700_000_000.0  # 2023-11-14 22:13:20 UTC


def _record(path: str, first_days: float, last_days: float, count: int) -> AccessRecord:
    return AccessRecord(
        path=path,
        first_seen=NOW - first_days * DAY_SECONDS,
        last_seen=NOW - last_days * DAY_SECONDS,
        access_count=count,
    )


def _records() -> list[AccessRecord]:
    return [
        _record("a.md", 10, 0, 3),
        _record("dir/b.md", 9, 1, 8),
        _record("dir/c.md", 8, 3, 30),
        _record("d.md", 20, 5, 150),
        _record("old.md", 40, 30, 1),
    ]


@pytest.fixture
def stats() -> AccessStats:
    return AccessStats(_records(), clock=lambda: NOW)


class TestQueries:
    """Tests for record queries."""

    def test_most_frequent(self, stats: AccessStats) -> None:
        """Sorted by count, highest first."""
        assert [r.path for r in stats.most_frequent(2)] == ["d.md", "dir/c.md"]

    def test_most_recent(self, stats: AccessStats) -> None:
        """Sorted by last access, newest first."""
        assert [r.path for r in stats.most_recent(2)] == ["a.md", "dir/b.md"]

    def test_unaccessed_since(self, stats: AccessStats) -> None:
        """Records last seen before a cutoff."""
        assert [r.path for r in stats.unaccessed_since(NOW - 7 * DAY_SECONDS)] == ["old.md"]

    def test_by_access_count(self, stats: AccessStats) -> None:
        """Inclusive count range."""
        assert [r.path for r in stats.by_access_count(3, 30)] == ["a.md", "dir/b.md", "dir/c.md"]

    def test_accessed_in_range(self, stats: AccessStats) -> None:
        """Inclusive time range on last access."""
        paths = [r.path for r in stats.accessed_in_range(NOW - 3 * DAY_SECONDS, NOW - DAY_SECONDS)]
        assert paths == ["dir/b.md", "dir/c.md"]

    def test_search(self, stats: AccessStats) -> None:
        """Pattern and count filters combine, with optional sorting."""
        results = stats.search(
            path_pattern="dir/*", min_count=5, sort_by="access_count", descending=True
        )
        assert [r.path for r in results] == ["dir/c.md", "dir/b.md"]

    def test_search_bad_sort_key(self, stats: AccessStats) -> None:
        """Unknown sort keys are rejected."""
        with pytest.raises(ValueError):
            stats.search(sort_by="size")


class TestAggregate:
    """Tests for aggregate()."""

    def test_empty(self) -> None:
        """No records yields zero totals and empty buckets."""
        summary = AccessStats([]).aggregate()
        assert summary.total_files == 0
        assert summary.most_accessed is None
        assert set(summary.access_ranges.values()) == {0}

    def test_totals_and_ranges(self, stats: AccessStats) -> None:
        """Counts are bucketed into fixed ranges."""
        summary = stats.aggregate()
        assert summary.total_files == 5
        assert summary.total_accesses == 192
        assert summary.average_accesses_per_file == pytest.approx(38.4)
        assert summary.most_accessed.path == "d.md"
        assert summary.least_accessed.path == "old.md"
        assert summary.first_access == NOW - 40 * DAY_SECONDS
        assert summary.last_access == NOW
        assert summary.access_ranges == {
            "1-5": 2,
            "6-10": 1,
            "11-25": 0,
            "26-50": 1,
            "51-100": 0,
            "100+": 1,
        }

    @pytest.mark.parametrize(
        "count, label", [(5, "1-5"), (6, "6-10"), (100, "51-100"), (101, "100+")]
    )
    def test_range_edges(self, count: int, label: str) -> None:
        """Bucket edges are inclusive on the low side."""
        record = AccessRecord(path="x.md", first_seen=0.0, last_seen=0.0, access_count=count)
        assert AccessStats([record]).aggregate().access_ranges[label] == 1


class TestTrends:
    """Tests for trends()."""

    def test_weekly_trends(self, stats: AccessStats) -> None:
        """Daily and hourly activity over the window."""
        trends = stats.trends(7)

        assert trends.daily_accesses == [
            ("2023-11-08", 0),
            ("2023-11-09", 1),
            ("2023-11-10", 0),
            ("2023-11-11", 1),
            ("2023-11-12", 0),
            ("2023-11-13", 1),
            ("2023-11-14", 1),
        ]
        assert len(trends.hourly_pattern) == 24
        assert trends.hourly_pattern[22] == 4
        assert trends.peak_hour == 22
        assert trends.growth_rate == pytest.approx(200.0)

    def test_no_recent_activity(self) -> None:
        """An idle window reports zeros."""
        trends = AccessStats([], clock=lambda: NOW).trends(3)
        assert [count for _, count in trends.daily_accesses] == [0, 0, 0]
        assert trends.growth_rate == 0.0
        assert trends.peak_hour == 0


class TestCollectVaultRecords:
    """Tests for reading counters from a vault."""

    @pytest.mark.asyncio
    async def test_collects_counted_notes(self, tmp_path: Path) -> None:
        """Only notes with a positive counter are returned."""
        (tmp_path / "a.md").write_text("---\nview_count: 4\n---\nA", encoding="utf-8")
        (tmp_path / "b.md").write_text("No header", encoding="utf-8")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.md").write_text("---\nview_count: 1\n---\n", encoding="utf-8")
        (tmp_path / ".obsidian").mkdir()
        (tmp_path / ".obsidian" / "x.md").write_text("---\nview_count: 9\n---\n", encoding="utf-8")

        records = await collect_vault_records(FrontmatterStore(tmp_path), "view_count")
        assert {(r.path, r.access_count) for r in records} == {("a.md", 4), ("sub/c.md", 1)}

    @pytest.mark.asyncio
    async def test_other_field(self, tmp_path: Path) -> None:
        """The counter field is configurable."""
        (tmp_path / "a.md").write_text("---\nreads: 2\nview_count: 7\n---\n", encoding="utf-8")
        records = await collect_vault_records(FrontmatterStore(tmp_path), "reads")
        assert [r.access_count for r in records] == [2]
