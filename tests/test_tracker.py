"""Tests for the access tracking pipeline."""

from __future__ import annotations

from pathlib import Path

import pytest

from noteviews.config import TrackerConfig
from noteviews.errors import TrackerError, TrackerErrorKind
from noteviews.models import DocumentRef, FilterRules, Priority
from noteviews.tracking.tracker import ViewTracker


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "a.md").write_text("---\nview_count: 1\n---\nBody text", encoding="utf-8")
    (tmp_path / "notes" / "b.md").write_text("Just content", encoding="utf-8")
    (tmp_path / "templates").mkdir()
    (tmp_path / "templates" / "t.md").write_text("Template", encoding="utf-8")
    return tmp_path


def _tracker(vault: Path, clock: FakeClock | None = None, **settings) -> ViewTracker:
    config = TrackerConfig(vault_path=vault, exclude_paths=["templates/*"], **settings)
    return ViewTracker(config, clock=clock or FakeClock())


class TestNotifyAccess:
    """Tests for notify_access."""

    def test_counts_first_access(self, vault: Path) -> None:
        """A tracked note is queued and remembered."""
        tracker = _tracker(vault)
        assert tracker.notify_access(DocumentRef(path="notes/a.md"))
        assert tracker.queue.pending_count == 1
        assert "notes/a.md" in tracker.cache

    def test_excluded_note(self, vault: Path) -> None:
        """Excluded notes are ignored entirely."""
        tracker = _tracker(vault)
        assert not tracker.notify_access(DocumentRef(path="templates/t.md"))
        assert tracker.queue.pending_count == 0
        assert len(tracker.cache) == 0

    def test_repeat_within_interval(self, vault: Path) -> None:
        """A second open inside min_interval_ms is not counted."""
        clock = FakeClock()
        tracker = _tracker(vault, clock, min_interval_ms=1000)
        document = DocumentRef(path="notes/a.md")
        assert tracker.notify_access(document)
        clock.now += 0.2
        assert not tracker.notify_access(document)
        clock.now += 1.0
        assert tracker.notify_access(document)
        assert tracker.queue.pending_count == 2
        assert tracker.cache.get("notes/a.md").access_count == 2

    def test_paused_queue(self, vault: Path) -> None:
        """Rejected enqueues leave the cache untouched."""
        tracker = _tracker(vault)
        tracker.queue.pause()
        assert not tracker.notify_access(DocumentRef(path="notes/a.md"))
        assert "notes/a.md" not in tracker.cache

    def test_high_priority(self, vault: Path) -> None:
        """Priority is passed to the queue."""
        tracker = _tracker(vault)
        tracker.notify_access(DocumentRef(path="notes/a.md"))
        tracker.notify_access(DocumentRef(path="notes/b.md"), priority=Priority.HIGH)
        assert tracker.queue.file_paths_queued() == ["notes/b.md", "notes/a.md"]


class TestPersistence:
    """Tests for writing counts to notes."""

    @pytest.mark.asyncio
    async def test_stop_writes_pending_updates(self, vault: Path) -> None:
        """Stopping drains the queue into the note headers."""
        tracker = _tracker(vault)
        await tracker.start()
        assert tracker.is_running
        tracker.notify_access(DocumentRef(path="notes/a.md"))
        tracker.notify_access(DocumentRef(path="notes/b.md"))
        await tracker.stop()

        assert not tracker.is_running
        assert tracker.queue.pending_count == 0
        assert (vault / "notes" / "a.md").read_text(encoding="utf-8") == (
            "---\nview_count: 2\n---\nBody text"
        )
        assert (vault / "notes" / "b.md").read_text(encoding="utf-8") == (
            "---\nview_count: 1\n---\nJust content"
        )

    @pytest.mark.asyncio
    async def test_drain_stops_on_missing_note(self, vault: Path) -> None:
        """Updates for missing notes are dropped after their retries."""
        tracker = _tracker(vault)
        tracker.notify_access(DocumentRef(path="notes/gone.md"))
        tracker.notify_access(DocumentRef(path="notes/a.md"))

        assert await tracker.drain() == 1
        assert tracker.queue.pending_count == 0

    @pytest.mark.asyncio
    async def test_current_count_includes_pending(self, vault: Path) -> None:
        """The current count adds queued increments to the stored value."""
        clock = FakeClock()
        tracker = _tracker(vault, clock)
        document = DocumentRef(path="notes/a.md")
        tracker.notify_access(document)
        clock.now += 5
        tracker.notify_access(document)

        assert await tracker.current_count(document) == 3
        await tracker.drain()
        assert await tracker.current_count(document) == 3


class TestApplyConfig:
    """Tests for runtime reconfiguration."""

    def test_applies_to_components(self, vault: Path) -> None:
        """New settings reach the filter, cache and queue."""
        tracker = _tracker(vault)
        config = TrackerConfig(
            vault_path=vault / "elsewhere",
            counter_field="reads",
            include_paths=["notes/*"],
            max_batch_size=3,
            cache_capacity=50,
            flush_interval_ms=2000,
        )
        tracker.apply_config(config)

        assert tracker.counter_field == "reads"
        assert tracker.config.vault_path == vault
        assert tracker.path_filter.rules == FilterRules(include_patterns=("notes/*",))
        assert tracker.cache.capacity == 50
        assert tracker.queue.max_batch_size == 3
        assert tracker.queue.flush_interval_ms == 2000
        assert config.vault_path == vault / "elsewhere"

    def test_bad_pattern_changes_nothing(self, vault: Path) -> None:
        """A pattern that fails to compile leaves every setting as it was."""
        tracker = _tracker(vault)
        with pytest.raises(TrackerError) as info:
            tracker.apply_config(
                TrackerConfig(vault_path=vault, exclude_paths=["[broken"], max_batch_size=2)
            )
        assert info.value.kind is TrackerErrorKind.FILTER_CONFIG
        assert tracker.path_filter.rules.exclude_patterns == ("templates/*",)
        assert tracker.queue.max_batch_size == 10

    def test_invalid_values(self, vault: Path) -> None:
        """Out of range values raise a config error."""
        tracker = _tracker(vault)
        with pytest.raises(TrackerError) as info:
            tracker.apply_config(TrackerConfig(vault_path=vault, cache_capacity=1))
        assert info.value.kind is TrackerErrorKind.CONFIG
        assert tracker.cache.capacity == 1000

    def test_invalid_initial_config(self, vault: Path) -> None:
        """The constructor validates its config."""
        with pytest.raises(TrackerError):
            ViewTracker(TrackerConfig(vault_path=vault, counter_field="not valid"))


class TestStatus:
    """Tests for the status snapshot."""

    def test_status_shape(self, vault: Path) -> None:
        """Status reports cache, queue and filter state."""
        tracker = _tracker(vault)
        tracker.notify_access(DocumentRef(path="notes/a.md"))
        status = tracker.status()

        assert status["running"] is False
        assert status["counter_field"] == "view_count"
        assert status["cache"]["size"] == 1
        assert status["cache"]["misses"] == 1
        assert status["queue"]["queue_size"] == 1
        assert status["filter"]["exclude"] == ["templates/*"]
