"""FastAPI application exposing the view tracker."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from noteviews.config import TrackerConfig
from noteviews.errors import TrackerError, TrackerErrorKind
from noteviews.models import AccessRecord, DocumentRef, Priority
from noteviews.reporting.export import EXPORT_FORMATS, export_records
from noteviews.reporting.stats import AccessStats, collect_vault_records
from noteviews.tracking.tracker import ViewTracker
from noteviews.utils.files import document_ref_for

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="NoteViews", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class AccessPayload(BaseModel):
    path: str
    priority: Priority = Priority.NORMAL


class ConfigPayload(BaseModel):
    counter_field: str | None = None
    include_paths: List[str] | None = None
    exclude_paths: List[str] | None = None
    min_interval_ms: int | None = None
    max_batch_size: int | None = None
    flush_interval_ms: int | None = None
    cache_capacity: int | None = None
    debounce_ms: int | None = None


def _status_for(exc: TrackerError) -> int:
    if exc.kind in (TrackerErrorKind.CONFIG, TrackerErrorKind.FILTER_CONFIG):
        return 400
    return 500


def _tracker(request: Request) -> ViewTracker:
    tracker = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise HTTPException(status_code=503, detail="Tracker is not running")
    return tracker


def _document(tracker: ViewTracker, path: str) -> DocumentRef:
    clean = path.strip().replace("\r", "").replace("\n", "")
    if not clean or "\0" in clean:
        raise HTTPException(status_code=400, detail="Invalid path")
    try:
        return document_ref_for(tracker.store.root, Path(clean))
    except ValueError:
        raise HTTPException(status_code=400, detail="Path is outside the vault")
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Note not found: {clean}")


def _record_dict(record: AccessRecord) -> Dict[str, Any]:
    return asdict(record)


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    config = getattr(app.state, "config", None) or TrackerConfig()
    config.vault_path = config.resolve_vault_path(Path.cwd())
    tracker = ViewTracker(config)
    await tracker.start()
    app.state.tracker = tracker


@app.on_event("shutdown")
async def shutdown_event() -> None:
    tracker = getattr(app.state, "tracker", None)
    if tracker is not None:
        await tracker.stop()
        app.state.tracker = None


@app.post("/access")
async def record_access(payload: AccessPayload, request: Request) -> dict[str, Any]:
    tracker = _tracker(request)
    document = _document(tracker, payload.path)
    counted = tracker.notify_access(document, priority=payload.priority)
    return {"path": document.path, "counted": counted}


@app.get("/count")
async def get_count(path: str, request: Request) -> dict[str, Any]:
    tracker = _tracker(request)
    document = _document(tracker, path)
    try:
        stored = await tracker.store.read_field(document, tracker.counter_field)
    except TrackerError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    pending = tracker.queue.pending_delta(document.path, tracker.counter_field)
    return {"path": document.path, "stored": stored, "pending": pending, "count": stored + pending}


@app.post("/flush")
async def flush_queue(request: Request) -> dict[str, Any]:
    result = await _tracker(request).queue.flush()
    return result.to_dict()


@app.get("/queue")
async def queue_status(request: Request) -> dict[str, Any]:
    tracker = _tracker(request)
    return {
        **asdict(tracker.queue.queue_status()),
        "files": tracker.queue.file_paths_queued(),
    }


@app.get("/status")
async def tracker_status(request: Request) -> dict[str, Any]:
    return _tracker(request).status()


async def _records(tracker: ViewTracker, source: str) -> List[AccessRecord]:
    if source == "cache":
        return tracker.cache.records()
    if source == "vault":
        return await collect_vault_records(tracker.store, tracker.counter_field)
    raise HTTPException(status_code=400, detail=f"Unknown source: {source}")


@app.get("/stats")
async def access_stats(
    request: Request, source: str = "vault", top: int = 10
) -> dict[str, Any]:
    tracker = _tracker(request)
    records = await _records(tracker, source)
    stats = AccessStats(records)
    summary = stats.aggregate()
    top = max(1, min(top, 100))
    return {
        "source": source,
        "summary": asdict(summary),
        "most_frequent": [_record_dict(r) for r in stats.most_frequent(top)],
        "most_recent": [_record_dict(r) for r in stats.most_recent(top)],
    }


@app.get("/export")
async def export_stats(
    request: Request, fmt: str = Query("csv", alias="format"), source: str = "vault"
) -> PlainTextResponse:
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format: {fmt}")
    tracker = _tracker(request)
    records = await _records(tracker, source)
    records.sort(key=lambda record: record.access_count, reverse=True)
    return PlainTextResponse(export_records(records, fmt))


@app.put("/config")
async def update_config(payload: ConfigPayload, request: Request) -> dict[str, Any]:
    tracker = _tracker(request)
    current = tracker.config
    changes = payload.model_dump(exclude_none=True)
    config = TrackerConfig(
        vault_path=current.vault_path,
        counter_field=changes.get("counter_field", current.counter_field),
        include_paths=changes.get("include_paths", list(current.include_paths)),
        exclude_paths=changes.get("exclude_paths", list(current.exclude_paths)),
        min_interval_ms=changes.get("min_interval_ms", current.min_interval_ms),
        max_batch_size=changes.get("max_batch_size", current.max_batch_size),
        flush_interval_ms=changes.get("flush_interval_ms", current.flush_interval_ms),
        cache_capacity=changes.get("cache_capacity", current.cache_capacity),
        cache_cleanup_interval_ms=current.cache_cleanup_interval_ms,
        debounce_ms=changes.get("debounce_ms", current.debounce_ms),
    )
    try:
        tracker.apply_config(config)
    except TrackerError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=exc.to_dict()) from exc
    return {"status": "ok", "config": tracker.status()}
