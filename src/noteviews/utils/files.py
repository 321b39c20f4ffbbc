"""Utility helpers for working with vault files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from noteviews.models import DocumentRef

NOTE_SUFFIXES = (".md", ".markdown")


def iter_note_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield note paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            children = sorted(
                child
                for child in item.rglob("*")
                if child.is_file() and not _is_hidden(child.relative_to(item))
            )
            yield from iter_note_paths(children)
        elif item.is_file() and item.suffix.lower() in NOTE_SUFFIXES:
            yield item


def _is_hidden(relative: Path) -> bool:
    return any(part.startswith(".") for part in relative.parts)


def vault_relative(vault: Path, path: Path) -> str:
    """Vault-relative POSIX path used as the tracking key."""
    absolute = path if path.is_absolute() else vault / path
    return absolute.resolve().relative_to(vault.resolve()).as_posix()


def document_ref_for(vault: Path, path: Path) -> DocumentRef:
    """Build a :class:`DocumentRef` for a note from its ``stat()``."""
    relative = vault_relative(vault, path)
    stat = (vault / relative).stat()
    return DocumentRef(
        path=relative,
        size_bytes=stat.st_size,
        modified_at=stat.st_mtime,
        created_at=getattr(stat, "st_birthtime", stat.st_ctime),
    )
