"""Text-matching primitives for section scoring and excerpts.

Two scoring paths:
- Exact phrase: the whole normalized phrase occurs in the section
  (``120 + len(phrase)``).  Dominates token scores so exact legal citations
  rank first.
- Stem-anchored tokens: every query term becomes a regex that matches a
  word starting with the term's stem.  A cheap stand-in for Russian
  stemming; ``term_pattern`` is the only place that knows about it.

Offsets returned by the scorer index the original (unfolded) text, so
excerpts can be cut directly from ``Section.text``.
"""
from __future__ import annotations

import re
from functools import lru_cache

from taxcode.parsing_types import NO_MATCH, MatchSpan

PHRASE_BASE_SCORE = 120
TERM_SCORE_CAP = 25
TOKEN_SPAN_CHARS = 80
EXCERPT_CONTEXT_CHARS = 160
STEM_CHARS = 5
ELLIPSIS = "…"

_FOLD_TABLE = str.maketrans({"ё": "е", "Ё": "е", "\n": " "})
_WS_RE = re.compile(r"\s+")


def fold_text(text: str) -> str:
    """Lowercase, fold ё -> е and newlines -> spaces, preserving length.

    ``str.lower`` can grow a few characters (e.g. "İ"); those are kept as-is
    so every offset in the result is valid in *text*.
    """
    folded = text.translate(_FOLD_TABLE).lower()
    if len(folded) == len(text):
        return folded
    chars: list[str] = []
    for c in text.translate(_FOLD_TABLE):
        low = c.lower()
        chars.append(low if len(low) == 1 else c)
    return "".join(chars)


@lru_cache(maxsize=4096)
def term_pattern(term: str) -> re.Pattern[str]:
    """Build the stem-anchored regex for one query term.

    - Digits match exactly, as a whole number token ("53" never hits "153").
    - Words of up to ``STEM_CHARS`` characters are used in full, longer
      words are cut to a ``STEM_CHARS`` prefix; either way any trailing
      letters are allowed ("налогов" -> "налог\\w*").
    """
    if term.isdigit():
        return re.compile(r"(?<!\d)" + re.escape(term) + r"(?!\d)")
    stem = term if len(term) <= STEM_CHARS else term[:STEM_CHARS]
    return re.compile(r"(?<!\w)" + re.escape(stem) + r"[^\W\d_]*")


def score_match(haystack: str, phrase: str, terms: list[str]) -> MatchSpan:
    """Score one (phrase variant, section text) pair.

    Args:
        haystack: Folded section text (see ``fold_text``).
        phrase: Normalized query variant.
        terms: Tokenized terms of *phrase*.

    Returns:
        MatchSpan with score and span; ``NO_MATCH`` when neither the phrase
        nor any term occurs.
    """
    if phrase:
        pos = haystack.find(phrase)
        if pos >= 0:
            return MatchSpan(
                score=PHRASE_BASE_SCORE + len(phrase),
                start=pos,
                end=pos + len(phrase),
            )

    score = 0
    first: int | None = None
    for term in terms:
        m = term_pattern(term).search(haystack)
        if m is None:
            continue
        score += min(TERM_SCORE_CAP, 2 * len(term))
        if first is None:
            first = m.start()

    if first is None or score <= 0:
        return NO_MATCH
    return MatchSpan(
        score=score,
        start=first,
        end=min(first + TOKEN_SPAN_CHARS, len(haystack)),
    )


def find_literal(text: str, needle: str) -> MatchSpan:
    """Plain substring lookup returning a zero-score span (or NO_MATCH)."""
    if not needle:
        return NO_MATCH
    pos = text.find(needle)
    if pos < 0:
        return NO_MATCH
    return MatchSpan(score=0, start=pos, end=pos + len(needle))


def build_excerpt(
    text: str,
    start: int,
    end: int,
    *,
    context: int = EXCERPT_CONTEXT_CHARS,
) -> str:
    """Cut a preview window around ``text[start:end]``.

    The window extends *context* characters on each side, is collapsed to
    single spaces and gets an ellipsis on every side that stops short of
    the text boundary.  Sentinel spans (``start < 0``) give "".
    """
    if start < 0 or not text:
        return ""
    lo = max(0, start - context)
    hi = min(len(text), max(end, start) + context)
    window = _WS_RE.sub(" ", text[lo:hi]).strip()
    if lo > 0:
        window = ELLIPSIS + window
    if hi < len(text):
        window = window + ELLIPSIS
    return window
