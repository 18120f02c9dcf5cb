"""FastAPI server for the tax-code section search API.

Thin wrapper over ``SectionStore``: routes validate input, call the core and
serialize its output.  The initial load runs in a worker thread started by
the lifespan hook, so the API answers (with zero sections, state "loading")
while sources are still being fetched.

Usage:
    TAXCODE_CONFIG=config/sources.json uvicorn taxcode.server:app --port 3000
"""
from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, ORJSONResponse
from pydantic import BaseModel

from taxcode.config import Settings, load_settings
from taxcode.loader import reload_store
from taxcode.search import EmptyQueryError
from taxcode.store import SectionNotFoundError, SectionStore

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Globals
#
# The store is safe to read from any thread; reloads serialize on its write
# lock, so the blocking reload runs via asyncio.to_thread.
# ---------------------------------------------------------------------------
_store = SectionStore()
_settings = Settings()
_initial_load: asyncio.Task[Any] | None = None

DEBUG_TITLES_LIMIT = 200
# Optional minus sign and ASCII digits only.
_SECTION_ID_RE = re.compile(r"-?[0-9]+")


def _error(status_code: int, kind: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": kind, "message": message})


def _run_reload() -> dict[str, Any]:
    snapshot, report = reload_store(_store, _settings)
    return {
        "reloaded": True,
        "sectionCount": snapshot.section_count,
        "sources": report.details()["sources"],
    }


def _log_initial_load(task: asyncio.Future[Any]) -> None:
    if task.cancelled():
        log.warning("Initial load cancelled")
        return
    exc = task.exception()
    if exc is not None:
        log.error("Initial load failed: %s", exc, exc_info=exc)
        return
    log.info("Initial load finished: %d sections", task.result()["sectionCount"])


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    global _settings, _initial_load  # noqa: PLW0603
    _settings = load_settings()
    if _settings.sources:
        _initial_load = asyncio.create_task(asyncio.to_thread(_run_reload))
        _initial_load.add_done_callback(_log_initial_load)
    else:
        log.warning("No sources configured; serving an empty store")
    yield
    if _initial_load is not None and not _initial_load.done():
        log.info("Shutdown while initial load still running")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Tax Code Section Search API",
    version="0.1.0",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


class SearchRequest(BaseModel):
    query: str = ""
    limit: Any = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index():
    return """
    <h2>Tax Code Section Search API</h2>
    <ul>
      <li>GET /health</li>
      <li>GET /debug/titles</li>
      <li>POST /search { "query": "статья 54", "limit": 5 }</li>
      <li>GET /search?q=статья 54&amp;limit=5</li>
      <li>GET /section?id=1054</li>
      <li>GET /reload</li>
    </ul>
    """


@app.get("/health")
async def health():
    snapshot = _store.snapshot()
    return {
        "status": "ok" if snapshot.section_count else _store.state.value,
        "state": _store.state.value,
        "sections": snapshot.section_count,
        "generation": snapshot.generation,
        "loadedAt": snapshot.loaded_at,
        "sources": snapshot.details.get("sources", []),
    }


@app.get("/debug/titles")
async def debug_titles():
    sections = _store.sections
    return {
        "count": len(sections),
        "titles": [{"id": s.id, "title": s.title} for s in sections[:DEBUG_TITLES_LIMIT]],
    }


def _search(query: str, limit: Any) -> dict[str, Any]:
    try:
        hits = _store.search(query, limit)
    except EmptyQueryError as exc:
        raise _error(400, exc.error_kind, str(exc)) from exc
    return {
        "query": query,
        "total": len(hits),
        "hits": [h.to_dict() for h in hits],
    }


@app.post("/search")
async def search_post(req: SearchRequest):
    return _search(req.query, req.limit)


@app.get("/search")
async def search_get(
    q: str = Query("", max_length=500),
    limit: str | None = Query(None),
):
    return _search(q, limit)


@app.get("/section")
async def get_section(id: str | None = Query(None)):  # noqa: A002
    if id is None or not _SECTION_ID_RE.fullmatch(id.strip()):
        raise _error(400, "bad_request", "query parameter 'id' must be an integer")
    try:
        section = _store.get(int(id))
    except SectionNotFoundError as exc:
        raise _error(404, exc.error_kind, f"no section with id {id}") from exc
    return section.to_dict()


@app.api_route("/reload", methods=["GET", "POST"])
async def reload():
    return await asyncio.to_thread(_run_reload)
