"""Tests for the tracker error type."""

from __future__ import annotations

from noteviews.errors import (
    TrackerError,
    TrackerErrorKind,
    filter_config_error,
    frontmatter_error,
)


class TestTrackerError:
    """Tests for TrackerError formatting."""

    def test_plain_message(self) -> None:
        """Without path and operation the message is used as-is."""
        exc = TrackerError(TrackerErrorKind.CONFIG, "bad value")
        assert str(exc) == "bad value"
        assert exc.details == {}

    def test_document_message(self) -> None:
        """Document failures name the operation and the path."""
        exc = TrackerError(
            TrackerErrorKind.FRONTMATTER, "denied", path="a.md", operation="write_all"
        )
        assert str(exc) == "write_all failed for 'a.md': denied"

    def test_to_dict(self) -> None:
        """Serializes the kind by value."""
        exc = TrackerError(TrackerErrorKind.BATCH_OPERATION, "boom", path="x.md")
        data = exc.to_dict()
        assert data["kind"] == "batch_operation"
        assert data["path"] == "x.md"
        assert data["operation"] is None


class TestErrorHelpers:
    """Tests for the error constructors."""

    def test_filter_config_error(self) -> None:
        """Carries the offending pattern."""
        exc = filter_config_error("[", "unterminated set")
        assert exc.kind is TrackerErrorKind.FILTER_CONFIG
        assert exc.details["pattern"] == "["
        assert "'['" in str(exc)

    def test_frontmatter_error_from_exception(self) -> None:
        """Wraps an OS error message."""
        exc = frontmatter_error("n.md", "read_all", OSError("gone"))
        assert exc.kind is TrackerErrorKind.FRONTMATTER
        assert str(exc) == "read_all failed for 'n.md': gone"
