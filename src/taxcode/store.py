"""In-memory section store with atomic snapshot publishing.

Readers call ``snapshot()`` and work on the returned immutable object; they
never lock.  Writers go through ``rebuild()``, which is serialized by a lock,
builds the new section list privately and swaps the snapshot reference in a
single assignment.  An in-flight search therefore sees either the old or the
new collection, never a mix.

State machine: EMPTY -> LOADING -> READY, then READY -> LOADING -> READY on
every reload.  A reload that produces zero sections still ends in READY.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from taxcode.parsing_types import LoadState, SearchHit, Section
from taxcode.search import search_sections
from taxcode.textmatch import fold_text

log = logging.getLogger(__name__)


class SectionNotFoundError(KeyError):
    """No section with the requested id."""

    error_kind = "not_found"


@dataclass(frozen=True, slots=True)
class StoreSnapshot:
    """One published generation of the store.

    ``folded`` holds the search-ready (``fold_text``) form of each section
    text, index-aligned with ``sections``.
    """

    sections: tuple[Section, ...] = ()
    folded: tuple[str, ...] = ()
    by_id: dict[int, Section] = field(default_factory=dict)
    loaded_at: datetime | None = None
    generation: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def section_count(self) -> int:
        return len(self.sections)


def build_snapshot(
    sections: Sequence[Section],
    *,
    generation: int,
    details: dict[str, Any] | None = None,
) -> StoreSnapshot:
    """Freeze *sections* into a snapshot, rejecting duplicate ids."""
    by_id: dict[int, Section] = {}
    for s in sections:
        if s.id in by_id:
            raise ValueError(f"duplicate section id {s.id} ({s.source_url})")
        by_id[s.id] = s
    return StoreSnapshot(
        sections=tuple(sections),
        folded=tuple(fold_text(s.text) for s in sections),
        by_id=by_id,
        loaded_at=datetime.now(UTC),
        generation=generation,
        details=dict(details or {}),
    )


class SectionStore:
    """Single-writer / many-reader holder of the current section snapshot."""

    def __init__(self) -> None:
        self._snapshot = StoreSnapshot()
        self._state = LoadState.EMPTY
        self._write_lock = threading.Lock()

    # -- readers ------------------------------------------------------------

    @property
    def state(self) -> LoadState:
        return self._state

    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    @property
    def sections(self) -> tuple[Section, ...]:
        return self._snapshot.sections

    def __len__(self) -> int:
        return len(self._snapshot.sections)

    def get(self, section_id: int) -> Section:
        """Return the section with *section_id*.

        Raises:
            SectionNotFoundError: if no such section is published.
        """
        section = self._snapshot.by_id.get(section_id)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    def search(self, query: str, limit: Any = None) -> list[SearchHit]:
        """Search the current snapshot (see ``search.search_sections``)."""
        snapshot = self._snapshot
        return search_sections(snapshot.sections, query, limit, folded=snapshot.folded)

    # -- writers ------------------------------------------------------------

    def publish(
        self,
        sections: Sequence[Section],
        *,
        details: dict[str, Any] | None = None,
    ) -> StoreSnapshot:
        """Replace the whole collection with *sections*."""
        return self.rebuild(lambda: (list(sections), details or {}))

    def rebuild(
        self,
        builder: Callable[[], tuple[Sequence[Section], dict[str, Any]]],
    ) -> StoreSnapshot:
        """Run *builder* and publish its sections as the new snapshot.

        The builder returns ``(sections, details)``; details are kept on the
        snapshot (per-source outcomes, for /health and /reload).  Concurrent
        rebuilds queue on the write lock.  If the builder raises, the store
        keeps its previous snapshot and state and the error propagates.
        """
        with self._write_lock:
            previous_state = self._state
            self._state = LoadState.LOADING
            try:
                sections, details = builder()
                snapshot = build_snapshot(
                    sections,
                    generation=self._snapshot.generation + 1,
                    details=details,
                )
            except Exception:
                self._state = previous_state
                raise
            self._snapshot = snapshot
            self._state = LoadState.READY
            log.info(
                "Published %d sections (generation %d)",
                snapshot.section_count, snapshot.generation,
            )
            return snapshot
