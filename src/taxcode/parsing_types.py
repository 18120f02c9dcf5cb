"""Core types shared by the extraction, sectioning and search layers.

All dataclasses are frozen and use slots=True. Sections are never mutated
after the sectionizer creates them; a reload replaces the whole sequence.

Type hierarchy:
  Source        - One configured document origin (URL)
  Section       - Titled, uniquely identified excerpt of a source document
  MatchSpan     - Scorer output: score plus matched char span
  SearchHit     - Ranked search result (ephemeral, never stored)
  LoadState     - Section store lifecycle (EMPTY -> LOADING -> READY)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


# ---------------------------------------------------------------------------
# Sources and sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Source:
    """A configured document origin. Read-only to the core."""

    url: str

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            raise ValueError("source url must be non-empty")


@dataclass(frozen=True, slots=True)
class Section:
    """A titled section of a legal document (e.g. "Статья 54. ...").

    ``id`` encodes (source index, ordinal within source) so ids from
    different sources never collide.  ``kind`` and ``number`` hold the parsed
    structural header ("статья", "54"); both are empty for a preamble chunk
    or a whole-document section.
    """

    id: int
    title: str
    source_url: str
    text: str
    kind: str = ""
    number: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.source_url,
            "text": self.text,
            "kind": self.kind,
            "number": self.number,
        }


# ---------------------------------------------------------------------------
# Scoring and search results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MatchSpan:
    """Relevance score and matched span inside a haystack.

    ``start``/``end`` are -1 when nothing matched (score 0).
    """

    score: int
    start: int
    end: int

    @property
    def matched(self) -> bool:
        return self.score > 0 and self.start >= 0


NO_MATCH = MatchSpan(score=0, start=-1, end=-1)


@dataclass(frozen=True, slots=True)
class SearchHit:
    """One ranked search result."""

    id: int
    title: str
    source_url: str
    score: int
    excerpt: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.source_url,
            "score": self.score,
            "excerpt": self.excerpt,
        }


class LoadState(StrEnum):
    """Section store lifecycle. Never returns to EMPTY after a load."""

    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
