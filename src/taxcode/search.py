"""Keyword search over sections.

Pipeline (``search_sections``):
    1. Reject empty queries (``EmptyQueryError``, kind ``bad_request``).
    2. Clamp the limit to [1, 50] (default 10).
    3. Expand the query into variants (normalized query + synonyms).
    4. Score every (variant, section) pair; add citation hits for queries
       like "статья 54" that name an article header exactly.
    5. Only if nothing scored: numeric fallback -- up to two numbers from
       the raw query, first literal occurrence per section, score 5.
    6. Keep the best hit per section id.
    7. Sort by score descending; ties keep store order.
    8. Truncate to the limit.

Read-only over the sections it is given; no I/O, no locking.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from taxcode.parsing_types import MatchSpan, SearchHit, Section
from taxcode.query_expansion import expand_query, tokenize
from taxcode.textmatch import build_excerpt, find_literal, fold_text, score_match

DEFAULT_LIMIT = 10
MAX_LIMIT = 50
FALLBACK_SCORE = 5
FALLBACK_MAX_NUMERALS = 2
CITATION_SCORE = 1000

_NUMERAL_RE = re.compile(r"\d+")
# "статья 54", "ст. 54", "статьи № 105.1"
_CITATION_RE = re.compile(
    r"(?:\bстать[ьяиею]\w*|\bст\.?)\s*№?\s*(\d{1,4}(?:\.\d+)*)",
    re.IGNORECASE,
)


class EmptyQueryError(ValueError):
    """Search query was empty or whitespace-only."""

    error_kind = "bad_request"


@dataclass(slots=True)
class _Candidate:
    position: int
    section: Section
    span: MatchSpan


def clamp_limit(limit: Any) -> int:
    """Clamp a requested result limit to [1, MAX_LIMIT].

    Missing or non-numeric values give ``DEFAULT_LIMIT``.
    """
    if limit is None or isinstance(limit, bool):
        return DEFAULT_LIMIT
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, value))


def cited_article(query: str) -> str | None:
    """Return the article number a query cites ("статья 54" -> "54")."""
    m = _CITATION_RE.search(query or "")
    return m.group(1) if m else None


def search_sections(
    sections: Sequence[Section],
    query: str,
    limit: Any = None,
    folded: Sequence[str] | None = None,
) -> list[SearchHit]:
    """Rank *sections* against *query*.

    Args:
        sections: Sections in store order (the tie-break order).
        query: Raw user query.
        limit: Requested maximum number of hits (clamped to [1, 50]).
        folded: ``fold_text`` of each section, index-aligned with
            *sections*; computed here when omitted.

    Returns:
        At most ``clamp_limit(limit)`` hits, best first.

    Raises:
        EmptyQueryError: if *query* is empty or whitespace-only.
    """
    if not query or not query.strip():
        raise EmptyQueryError("field 'query' is required")
    max_hits = clamp_limit(limit)

    if folded is None:
        folded = [fold_text(s.text) for s in sections]
    elif len(folded) != len(sections):
        raise ValueError("folded texts must align with sections")
    candidates = _scored_candidates(sections, folded, query)
    if not candidates:
        candidates = _numeric_fallback(sections, query)

    best: dict[int, _Candidate] = {}
    for cand in candidates:
        cur = best.get(cand.section.id)
        if cur is None or cand.span.score > cur.span.score:
            best[cand.section.id] = cand

    ranked = sorted(best.values(), key=lambda c: (-c.span.score, c.position))
    return [_to_hit(c) for c in ranked[:max_hits]]


# ---------------------------------------------------------------------------
# Internal: candidate generation
# ---------------------------------------------------------------------------


def _scored_candidates(
    sections: Sequence[Section],
    folded: Sequence[str],
    query: str,
) -> list[_Candidate]:
    candidates: list[_Candidate] = []
    for variant in expand_query(query):
        terms = tokenize(variant)
        for pos, (section, haystack) in enumerate(zip(sections, folded)):
            span = score_match(haystack, variant, terms)
            if span.score > 0:
                candidates.append(_Candidate(pos, section, span))

    number = cited_article(query)
    if number is not None:
        for pos, section in enumerate(sections):
            if section.kind == "статья" and section.number == number:
                span = MatchSpan(
                    score=CITATION_SCORE,
                    start=0,
                    end=len(section.title),
                )
                candidates.append(_Candidate(pos, section, span))
    return candidates


def _numeric_fallback(
    sections: Sequence[Section],
    query: str,
) -> list[_Candidate]:
    numerals = _NUMERAL_RE.findall(query)[:FALLBACK_MAX_NUMERALS]
    if not numerals:
        return []
    candidates: list[_Candidate] = []
    for pos, section in enumerate(sections):
        for num in numerals:
            span = find_literal(section.text, num)
            if span.start >= 0:
                candidates.append(_Candidate(
                    pos,
                    section,
                    MatchSpan(score=FALLBACK_SCORE, start=span.start, end=span.end),
                ))
                break
    return candidates


def _to_hit(cand: _Candidate) -> SearchHit:
    section = cand.section
    return SearchHit(
        id=section.id,
        title=section.title,
        source_url=section.source_url,
        score=cand.span.score,
        excerpt=build_excerpt(section.text, cand.span.start, cand.span.end),
    )
