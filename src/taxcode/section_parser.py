"""Section parser for Russian legal codes.

Splits a normalized text blob into addressable sections at structural
headers ("Статья 54.", "Глава 21", "Раздел VIII") with:
- Header detection (keyword + Arabic/Roman numeral + optional punctuation)
- Title derivation (first line of the chunk, length-bounded)
- Stable numeric ids: ``(source_index + 1) * id_stride + ordinal``

Header anchoring:
    ``"line"``  -- header must open the text or a line (precise; default for
                   multi-line text).
    ``"loose"`` -- compatibility fallback for single-line blobs: a header
                   may follow any whitespace, but only capitalised or
                   upper-case keywords count, so lower-case references
                   inside a sentence do not start a section.
    ``"auto"``  -- ``"line"`` when the text has line breaks, else ``"loose"``.

Pure and deterministic: the same (text, url, index) always yields the same
sections, which keeps reloads idempotent.
"""
from __future__ import annotations

import re
from typing import Literal

from taxcode.parsing_types import Section

HeaderAnchor = Literal["line", "loose", "auto"]

DEFAULT_ID_STRIDE = 1000
TITLE_MAX_CHARS = 160
WHOLE_DOCUMENT_TITLE = "Документ (целиком)"


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Numeral: "54", "105.1", "26.3.2" or a Roman "VIII".
_NUMERAL = r"(\d+(?:\.\d+)*|[IVXLC]+\b)"
_TRAILER = r"[.\-–—:]?"

# Line-anchored header, keyword in any case: "СТАТЬЯ 1.", "глава 21 -".
_LINE_HEADER_RE = re.compile(
    r"^[^\S\n]*(статья|глава|раздел)[^\S\n]*" + _NUMERAL + _TRAILER,
    re.IGNORECASE | re.MULTILINE,
)

# Loose header: after start/whitespace, capitalised or upper-case keyword only.
_LOOSE_HEADER_RE = re.compile(
    r"(?:^|(?<=\s))(Статья|СТАТЬЯ|Глава|ГЛАВА|Раздел|РАЗДЕЛ)\s*" + _NUMERAL + _TRAILER,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def resolve_anchor(text: str, anchor: HeaderAnchor = "auto") -> Literal["line", "loose"]:
    """Resolve ``"auto"`` to a concrete anchoring mode for *text*."""
    if anchor == "auto":
        return "line" if "\n" in text.strip() else "loose"
    if anchor not in ("line", "loose"):
        raise ValueError(f"unknown header anchor: {anchor!r}")
    return anchor


def find_headers(
    text: str,
    anchor: HeaderAnchor = "auto",
) -> list[tuple[int, str, str]]:
    """Locate structural headers in *text*.

    Returns:
        List of (char_start, kind, number) in text order, where ``kind`` is
        the lower-cased keyword ("статья") and ``number`` the numeral.
    """
    mode = resolve_anchor(text, anchor)
    pattern = _LINE_HEADER_RE if mode == "line" else _LOOSE_HEADER_RE
    headers: list[tuple[int, str, str]] = []
    for m in pattern.finditer(text):
        start = m.start(1)
        headers.append((start, m.group(1).lower(), m.group(2)))
    return headers


def derive_title(chunk: str, max_chars: int = TITLE_MAX_CHARS) -> str:
    """First line of *chunk*, cut to *max_chars* at a word boundary."""
    first_line = chunk.strip().split("\n", 1)[0].strip()
    if len(first_line) <= max_chars:
        return first_line
    cut = first_line[:max_chars]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(" ,;:-") + "…"


def section_id(source_index: int, ordinal: int, id_stride: int = DEFAULT_ID_STRIDE) -> int:
    """Compose a section id from a 0-based source index and 1-based ordinal."""
    return (source_index + 1) * id_stride + ordinal


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def split_chunks(
    text: str,
    anchor: HeaderAnchor = "auto",
) -> list[tuple[str, str, str]]:
    """Split *text* at headers into (chunk, kind, number) triples.

    The preamble before the first header becomes a chunk with empty kind
    and number.  Chunks that are empty after stripping are dropped.
    """
    if not text or not text.strip():
        return []
    headers = find_headers(text, anchor)
    bounds: list[tuple[int, str, str]] = [(0, "", "")]
    for start, kind, number in headers:
        if start == 0:
            bounds[0] = (0, kind, number)
        else:
            bounds.append((start, kind, number))

    chunks: list[tuple[str, str, str]] = []
    for i, (start, kind, number) in enumerate(bounds):
        end = bounds[i + 1][0] if i + 1 < len(bounds) else len(text)
        chunk = text[start:end].strip()
        if chunk:
            chunks.append((chunk, kind, number))
    return chunks


def sectionize(
    text: str,
    source_url: str,
    source_index: int,
    *,
    anchor: HeaderAnchor = "auto",
    id_stride: int = DEFAULT_ID_STRIDE,
) -> list[Section]:
    """Split a normalized legal text into ordered sections.

    Args:
        text: Normalized text (output of ``extract_main_text`` or
            ``normalize_text``).
        source_url: URL the text came from; carried on every section.
        source_index: 0-based position of the source in configuration order.
        anchor: Header anchoring mode (see module docstring).
        id_stride: Id block size per source; ordinals must stay below it.

    Returns:
        Sections in text order.  A text with no headers (zero or one chunk)
        yields exactly one whole-document section; an empty text yields
        no sections.
    """
    if not text or not text.strip():
        return []

    chunks = split_chunks(text, anchor)
    if len(chunks) <= 1:
        kind, number = (chunks[0][1], chunks[0][2]) if chunks else ("", "")
        return [Section(
            id=section_id(source_index, 1, id_stride),
            title=WHOLE_DOCUMENT_TITLE,
            source_url=source_url,
            text=text.strip(),
            kind=kind,
            number=number,
        )]

    sections: list[Section] = []
    for ordinal, (chunk, kind, number) in enumerate(chunks, start=1):
        sections.append(Section(
            id=section_id(source_index, ordinal, id_stride),
            title=derive_title(chunk),
            source_url=source_url,
            text=chunk,
            kind=kind,
            number=number,
        ))
    return sections
