"""Tests for record exports."""

from __future__ import annotations

import json

import pytest

from noteviews.models import AccessRecord
from noteviews.reporting.export import export_csv, export_json, export_markdown, export_records

RECORDS = [
    AccessRecord(path="a.md", first_seen=0.0, last_seen=86400.0, access_count=4),
    AccessRecord(path="dir/b, c.md", first_seen=60.0, last_seen=120.0, access_count=1),
]


class TestExport:
    """Tests for the export formats."""

    def test_csv(self) -> None:
        """CSV has a header row and quotes where needed."""
        assert export_csv(RECORDS) == (
            "path,access_count,first_seen,last_seen\n"
            "a.md,4,1970-01-01T00:00:00+00:00,1970-01-02T00:00:00+00:00\n"
            '"dir/b, c.md",1,1970-01-01T00:01:00+00:00,1970-01-01T00:02:00+00:00\n'
        )

    def test_json(self) -> None:
        """JSON is a list of objects with ISO timestamps."""
        data = json.loads(export_json(RECORDS))
        assert data[0] == {
            "path": "a.md",
            "access_count": 4,
            "first_seen": "1970-01-01T00:00:00+00:00",
            "last_seen": "1970-01-02T00:00:00+00:00",
        }
        assert len(data) == 2

    def test_markdown_escapes_pipes(self) -> None:
        """Pipes in paths do not break the table."""
        record = AccessRecord(path="a|b.md", first_seen=0.0, last_seen=0.0, access_count=2)
        text = export_markdown([record], title="Views")
        lines = text.splitlines()
        assert lines[0] == "# Views"
        assert lines[-1] == r"| a\|b.md | 2 | 1970-01-01T00:00:00+00:00 | 1970-01-01T00:00:00+00:00 |"

    def test_empty(self) -> None:
        """Empty exports still carry headers."""
        assert export_csv([]) == "path,access_count,first_seen,last_seen\n"
        assert export_json([]) == "[]"

    def test_dispatch(self) -> None:
        """export_records picks the writer by name."""
        assert export_records(RECORDS, "csv") == export_csv(RECORDS)
        assert export_records(RECORDS, "markdown").startswith("# Access Statistics")
        with pytest.raises(ValueError):
            export_records(RECORDS, "xml")
