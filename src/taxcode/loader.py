"""Source ingestion: fetch, extract, sectionize, publish.

The single pure entry point is :func:`ingest`, which turns one source's raw
HTML (or plain text) into sections.  :func:`load_sources` fans fetching out
over a thread pool, isolates per-source failures and concatenates results in
configuration order.  :func:`reload_store` wires that into a
``SectionStore`` rebuild.

Failure policy:
    - A source that cannot be fetched contributes zero sections and is
      recorded as ``source_fetch_failed``; the reload still succeeds.
    - A suspiciously short extraction is recorded as
      ``extraction_degraded`` (warning only); its sections are kept.
    - There is no automatic retry; calling reload again is the retry.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx

from taxcode.config import Settings
from taxcode.html_utils import (
    DEFAULT_MIN_LENGTH,
    extract_main_text,
    looks_like_html,
    normalize_text,
)
from taxcode.parsing_types import Section, Source
from taxcode.section_parser import DEFAULT_ID_STRIDE, HeaderAnchor, sectionize
from taxcode.store import SectionStore, StoreSnapshot

log = logging.getLogger(__name__)

# Extractions shorter than this are flagged as degraded.
DEGRADED_TEXT_LENGTH = 500

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

STATUS_OK = "ok"
STATUS_FETCH_FAILED = "source_fetch_failed"
STATUS_DEGRADED = "extraction_degraded"

Fetcher = Callable[[str], str]


class SourceFetchError(RuntimeError):
    """A source could not be fetched (network error, timeout, HTTP status)."""

    error_kind = STATUS_FETCH_FAILED

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceOutcome:
    """What one source contributed to a load."""

    index: int
    url: str
    status: str
    section_count: int = 0
    text_length: int = 0
    error: str = ""


@dataclass(frozen=True, slots=True)
class LoadReport:
    """Sections of a full load plus per-source outcomes, in source order."""

    sections: tuple[Section, ...] = ()
    outcomes: tuple[SourceOutcome, ...] = ()
    id_stride: int = DEFAULT_ID_STRIDE

    @property
    def section_count(self) -> int:
        return len(self.sections)

    @property
    def failed(self) -> list[SourceOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_FETCH_FAILED]

    def details(self) -> dict[str, Any]:
        return {
            "id_stride": self.id_stride,
            "sources": [asdict(o) for o in self.outcomes],
        }


@dataclass(slots=True)
class _Fetched:
    index: int
    url: str
    text: str = ""
    error: str = ""
    chunks: list[Section] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Ingest (pure)
# ---------------------------------------------------------------------------


def to_plain_text(raw: str, *, min_length: int = DEFAULT_MIN_LENGTH) -> str:
    """Extract HTML or normalize plain text, whichever *raw* is."""
    if not raw:
        return ""
    if looks_like_html(raw):
        return extract_main_text(raw, min_length=min_length)
    return normalize_text(raw)


def ingest(
    source_url: str,
    raw: str,
    source_index: int = 0,
    *,
    min_length: int = DEFAULT_MIN_LENGTH,
    anchor: HeaderAnchor = "auto",
    id_stride: int = DEFAULT_ID_STRIDE,
) -> list[Section]:
    """Turn one source's raw HTML or text into sections.

    Args:
        source_url: URL the content was fetched from.
        raw: Raw HTML page or plain text.
        source_index: 0-based position of the source in configuration order.
        min_length: Container acceptance threshold for HTML extraction.
        anchor: Header anchoring mode for the sectionizer.
        id_stride: Id block size per source.

    Returns:
        Sections in document order (empty if *raw* has no text).
    """
    text = to_plain_text(raw, min_length=min_length)
    return sectionize(text, source_url, source_index, anchor=anchor, id_stride=id_stride)


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


def fetch_source(
    url: str,
    *,
    timeout: float = 30.0,
    client: httpx.Client | None = None,
) -> str:
    """GET *url* and return the decoded body.

    Raises:
        SourceFetchError: on any transport error, timeout or non-2xx status.
    """
    headers = {"User-Agent": USER_AGENT, "Accept-Language": "ru,en;q=0.9"}
    try:
        if client is None:
            r = httpx.get(url, timeout=timeout, follow_redirects=True, headers=headers)
        else:
            r = client.get(url, timeout=timeout, follow_redirects=True, headers=headers)
        r.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SourceFetchError(url, f"HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise SourceFetchError(url, f"{type(exc).__name__}: {exc}") from exc
    return r.text


def make_fetcher(timeout: float, client: httpx.Client | None = None) -> Fetcher:
    """Bind *timeout* (and optionally a shared client) into a fetcher."""
    def _fetch(url: str) -> str:
        return fetch_source(url, timeout=timeout, client=client)
    return _fetch


# ---------------------------------------------------------------------------
# Full load
# ---------------------------------------------------------------------------


def widen_stride(max_count: int, id_stride: int = DEFAULT_ID_STRIDE) -> int:
    """Smallest power-of-ten stride (>= *id_stride*) above *max_count*."""
    if max_count < id_stride:
        return id_stride
    return 10 ** (int(math.log10(max_count)) + 1)


def load_sources(
    sources: Sequence[Source],
    *,
    fetch: Fetcher,
    max_workers: int = 4,
    min_length: int = DEFAULT_MIN_LENGTH,
    anchor: HeaderAnchor = "auto",
) -> LoadReport:
    """Fetch and ingest every source; never raises for a single source.

    Fetches run in parallel but results are concatenated in *sources*
    order, not completion order.  A source whose fetch or text extraction
    raises contributes no sections and is reported as failed.
    """
    slots: list[_Fetched] = [_Fetched(i, s.url) for i, s in enumerate(sources)]

    if slots:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(slots)))) as pool:
            futures = {pool.submit(fetch, slot.url): slot for slot in slots}
            for future in as_completed(futures):
                slot = futures[future]
                try:
                    slot.text = to_plain_text(future.result(), min_length=min_length)
                except Exception as exc:
                    slot.error = str(exc) or type(exc).__name__
                    slot.text = ""
                    log.warning("Source %d (%s) failed: %s", slot.index, slot.url, exc)

    for slot in slots:
        slot.chunks = sectionize(slot.text, slot.url, slot.index, anchor=anchor)

    stride = widen_stride(max((len(s.chunks) for s in slots), default=0))
    if stride != DEFAULT_ID_STRIDE:
        log.warning("A source yielded >= %d sections; id stride widened to %d",
                    DEFAULT_ID_STRIDE, stride)
        for slot in slots:
            slot.chunks = sectionize(
                slot.text, slot.url, slot.index, anchor=anchor, id_stride=stride,
            )

    sections: list[Section] = []
    outcomes: list[SourceOutcome] = []
    for slot in slots:
        sections.extend(slot.chunks)
        outcomes.append(_outcome(slot))

    log.info(
        "Loaded %d sections from %d sources (%d failed)",
        len(sections), len(slots), sum(1 for o in outcomes if o.status == STATUS_FETCH_FAILED),
    )
    return LoadReport(sections=tuple(sections), outcomes=tuple(outcomes), id_stride=stride)


def _outcome(slot: _Fetched) -> SourceOutcome:
    if slot.error:
        return SourceOutcome(slot.index, slot.url, STATUS_FETCH_FAILED, error=slot.error)
    status = STATUS_OK
    if len(slot.text) < DEGRADED_TEXT_LENGTH:
        status = STATUS_DEGRADED
        log.warning(
            "Source %d (%s): extraction degraded (%d chars)",
            slot.index, slot.url, len(slot.text),
        )
    return SourceOutcome(
        slot.index, slot.url, status,
        section_count=len(slot.chunks),
        text_length=len(slot.text),
    )


def reload_store(
    store: SectionStore,
    settings: Settings,
    *,
    fetch: Fetcher | None = None,
) -> tuple[StoreSnapshot, LoadReport]:
    """Rebuild *store* from *settings*' sources and publish atomically."""
    fetcher = fetch or make_fetcher(settings.fetch_timeout)
    reports: list[LoadReport] = []

    def _build() -> tuple[list[Section], dict[str, Any]]:
        report = load_sources(
            settings.sources,
            fetch=fetcher,
            max_workers=settings.max_workers,
            min_length=settings.min_container_length,
            anchor=settings.header_anchor,  # type: ignore[arg-type]
        )
        reports.append(report)
        return list(report.sections), report.details()

    snapshot = store.rebuild(_build)
    return snapshot, reports[-1]
