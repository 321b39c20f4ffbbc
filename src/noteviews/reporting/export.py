"""Flat exports and text reports of access records."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import Iterable, List, Sequence

from noteviews.models import AccessRecord

EXPORT_FORMATS = ("csv", "json", "markdown")
CSV_HEADERS = ["path", "access_count", "first_seen", "last_seen"]


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat(timespec="seconds")


def _rows(records: Iterable[AccessRecord]) -> List[List[str]]:
    return [
        [record.path, str(record.access_count), _iso(record.first_seen), _iso(record.last_seen)]
        for record in records
    ]


def export_csv(records: Sequence[AccessRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    writer.writerows(_rows(records))
    return buffer.getvalue()


def export_json(records: Sequence[AccessRecord]) -> str:
    payload = [
        {
            "path": record.path,
            "access_count": record.access_count,
            "first_seen": _iso(record.first_seen),
            "last_seen": _iso(record.last_seen),
        }
        for record in records
    ]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def export_markdown(records: Sequence[AccessRecord], *, title: str = "Access Statistics") -> str:
    lines = [
        f"# {title}",
        "",
        "| Path | Access Count | First Seen | Last Seen |",
        "|------|--------------|------------|-----------|",
    ]
    for path, count, first, last in _rows(records):
        escaped = path.replace("|", r"\|")
        lines.append(f"| {escaped} | {count} | {first} | {last} |")
    return "\n".join(lines) + "\n"


def export_records(records: Sequence[AccessRecord], fmt: str) -> str:
    if fmt == "csv":
        return export_csv(records)
    if fmt == "json":
        return export_json(records)
    if fmt == "markdown":
        return export_markdown(records)
    raise ValueError(f"Unsupported export format: {fmt}")
