"""Read-modify-write access to note headers on disk."""

from __future__ import annotations

import asyncio
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, Sequence

from noteviews.errors import TrackerError, frontmatter_error
from noteviews.frontmatter.codec import HeaderCodec, SimpleHeaderCodec
from noteviews.models import BatchUpdateResult, DocumentRef, FailedUpdate, FieldUpdate

LOGGER = logging.getLogger(__name__)


def coerce_count(value: Any) -> int:
    """Interpret a header value as a counter, 0 when it is not a number."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        return int(number) if math.isfinite(number) else 0
    return 0


def _read_text(path: Path) -> str:
    # newline="" keeps the body's line endings byte-for-byte.
    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def _write_text(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text)


class FrontmatterStore:
    """Persistence layer for counters kept in note headers.

    Every write re-reads the note first so edits made by other programs since
    the last read are kept. No caching happens here.
    """

    def __init__(self, root: Path, *, codec: HeaderCodec | None = None) -> None:
        self.root = Path(root)
        self.codec: HeaderCodec = codec or SimpleHeaderCodec()

    def resolve(self, document: DocumentRef) -> Path:
        root = Path(os.path.realpath(self.root))
        candidate = Path(os.path.realpath(root / document.path))
        if candidate != root and root not in candidate.parents:
            raise frontmatter_error(document.path, "resolve", "path is outside the vault")
        return candidate

    async def read_all(self, document: DocumentRef) -> Dict[str, Any] | None:
        text = await self._read(document, "read_all")
        split = self.codec.split(text)
        if split.header is None:
            return None
        return self.codec.parse(split.header)

    async def has_header(self, document: DocumentRef) -> bool:
        text = await self._read(document, "has_header")
        return self.codec.split(text).header is not None

    async def read_field(self, document: DocumentRef, key: str) -> int:
        data = await self.read_all(document)
        if not data or key not in data:
            return 0
        return coerce_count(data[key])

    async def update_field(self, document: DocumentRef, key: str, value: Any) -> None:
        text = await self._read(document, "update_field")
        split = self.codec.split(text)
        data = self.codec.parse(split.header) if split.header is not None else {}
        data[key] = value
        await self._write(document, self.codec.serialize(data) + split.body, "update_field")

    async def increment_field(self, document: DocumentRef, key: str, delta: int) -> int:
        """Add ``delta`` to a counter field with a single read and write."""
        text = await self._read(document, "increment_field")
        split = self.codec.split(text)
        data = self.codec.parse(split.header) if split.header is not None else {}
        value = coerce_count(data.get(key)) + delta
        data[key] = value
        await self._write(document, self.codec.serialize(data) + split.body, "increment_field")
        return value

    async def write_all(self, document: DocumentRef, data: Dict[str, Any]) -> None:
        """Replace the whole header with ``data``, keeping the body."""
        await self._replace_header(document, data, "write_all")

    async def create_header(self, document: DocumentRef, data: Dict[str, Any]) -> None:
        await self._replace_header(document, data, "create_header")

    async def batch_update(self, updates: Sequence[FieldUpdate]) -> BatchUpdateResult:
        result = BatchUpdateResult(total=len(updates))
        for update in updates:
            try:
                await self.update_field(update.document, update.key, update.value)
            except TrackerError as exc:
                LOGGER.warning("Batch update failed: %s", exc)
                result.failed.append(FailedUpdate(update=update, error_message=str(exc)))
            else:
                result.successful.append(update)
        return result

    async def _replace_header(
        self, document: DocumentRef, data: Dict[str, Any], operation: str
    ) -> None:
        text = await self._read(document, operation)
        body = self.codec.split(text).body
        await self._write(document, self.codec.serialize(dict(data)) + body, operation)

    async def _read(self, document: DocumentRef, operation: str) -> str:
        path = self.resolve(document)
        try:
            return await asyncio.to_thread(_read_text, path)
        except (OSError, UnicodeDecodeError) as exc:
            raise frontmatter_error(document.path, operation, exc) from exc

    async def _write(self, document: DocumentRef, text: str, operation: str) -> None:
        path = self.resolve(document)
        try:
            await asyncio.to_thread(_write_text, path, text)
        except OSError as exc:
            raise frontmatter_error(document.path, operation, exc) from exc
        LOGGER.debug("Wrote header for %s (%s)", document.path, operation)
