"""Minimal codec for the ``---`` delimited metadata header of a note.

Only a flat subset is understood: ``key: scalar`` lines, inline ``[a, b]``
arrays and dash-list arrays under an empty ``key:``. Anything else is kept
as a raw string. This is not a YAML parser.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Set

HEADER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<body>.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
NUMBER_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$")
INT_RE = re.compile(r"^[-+]?\d+$")
LIST_ITEM_RE = re.compile(r"^\s*-\s*(?P<value>.*)$")

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SplitDocument:
    header: str | None
    body: str


class HeaderCodec(Protocol):
    def split(self, text: str) -> SplitDocument: ...

    def parse(self, header: str) -> Dict[str, Any]: ...

    def serialize(self, data: Dict[str, Any]) -> str: ...


def parse_scalar(raw: str) -> Any:
    value = raw.strip()
    if value in ("", "null", "~"):
        return None
    if value == "true":
        return True
    if value == "false":
        return False
    if INT_RE.match(value):
        return int(value)
    if NUMBER_RE.match(value):
        return float(value)
    if len(value) >= 2 and value[0] == value[-1] == '"':
        try:
            return json.loads(value)
        except ValueError:
            return value[1:-1]
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1].replace("''", "'")
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1].strip()
        if not inner:
            return []
        return [parse_scalar(item) for item in _split_inline(inner)]
    return value


def _split_inline(inner: str) -> List[str]:
    """Split ``a, "b, c", d`` on commas outside quotes."""
    items: List[str] = []
    current: List[str] = []
    quote: str | None = None
    for char in inner:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
            current.append(char)
        elif char == ",":
            items.append("".join(current))
            current = []
        else:
            current.append(char)
    items.append("".join(current))
    return items


def format_scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False, default=str)


class SimpleHeaderCodec:
    """Line-oriented header codec with deterministic output."""

    def split(self, text: str) -> SplitDocument:
        match = HEADER_RE.match(text)
        if match is None:
            return SplitDocument(header=None, body=text)
        return SplitDocument(header=match.group("body"), body=text[match.end():])

    def parse(self, header: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        block_lists: Set[str] = set()
        list_key: str | None = None
        dropped = 0

        for line in header.splitlines():
            stripped = line.strip()
            if not stripped:
                continue
            if stripped.startswith("#"):
                dropped += 1
                continue

            item = LIST_ITEM_RE.match(line)
            if item and list_key is not None:
                result[list_key].append(parse_scalar(item.group("value")))
                continue
            if line[:1] in (" ", "\t"):
                # Nested maps and folded scalars are not understood.
                dropped += 1
                continue

            key, sep, raw_value = stripped.partition(":")
            key = key.strip()
            if not sep or not key:
                list_key = None
                dropped += 1
                continue

            if raw_value.strip():
                result[key] = parse_scalar(raw_value)
                list_key = None
            else:
                result[key] = []
                block_lists.add(key)
                list_key = key

        # A bare ``key:`` with no dash items is a null, not an empty list.
        for key in block_lists:
            if result.get(key) == []:
                result[key] = None
        if dropped:
            LOGGER.warning("Ignored %d unsupported header line(s)", dropped)
        return result

    def serialize(self, data: Dict[str, Any]) -> str:
        lines = ["---"]
        for key, value in data.items():
            if isinstance(value, (list, tuple)):
                if not value:
                    lines.append(f"{key}: []")
                    continue
                lines.append(f"{key}:")
                lines.extend(f"  - {format_scalar(item)}" for item in value)
            else:
                lines.append(f"{key}: {format_scalar(value)}")
        lines.append("---")
        return "\n".join(lines) + "\n"
