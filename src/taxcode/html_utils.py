"""HTML text extraction and encoding-safe file reading.

Turns a legal-portal page into a flat, whitespace-normalized text blob that
the sectionizer can split on "Статья/Глава/Раздел" headers.

Extraction strategy (``extract_main_text``):
    1. Parse with BeautifulSoup, drop scripts, styles and site chrome
       (header/nav/footer/aside/forms).
    2. Try candidate content containers in a fixed preference order.  For
       each, join the text of its innermost block elements with newlines.
    3. Accept the first candidate longer than ``min_length`` characters
       (a "looks like a full document" signal).
    4. Otherwise fall back to the whole body with block newlines.

Never raises on malformed markup: the worst case is an empty or very short
string, which the loader reports as degraded extraction.
"""
from __future__ import annotations

import html
import logging
import re
from pathlib import Path

from bs4 import BeautifulSoup
from bs4.element import Comment, NavigableString, Tag
from bs4.exceptions import ParserRejectedMarkup

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Element tables
# ---------------------------------------------------------------------------

# Elements that never carry document content.
_NON_CONTENT_TAGS: list[str] = [
    "script", "style", "noscript", "template", "iframe", "svg",
    "header", "nav", "footer", "aside", "form",
]

# Block-level tags whose text becomes one line of output.
_BLOCK_TAGS: list[str] = [
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "li", "td", "th", "pre", "blockquote", "div",
]

# Tags that force a line break in whole-body fallback mode.
_BREAK_TAGS: list[str] = _BLOCK_TAGS + ["br", "tr", "table", "ul", "ol"]

# Candidate containers, most specific first.  Legal portals (consultant.ru,
# garant.ru, pravo.gov.ru, nalog.ru) come before generic layouts.
CONTAINER_SELECTORS: tuple[str, ...] = (
    ".document-page__content",
    ".document__text",
    ".doc-body",
    "#document_text",
    ".text-document",
    ".main-content",
    "#content",
    ".content",
    ".document",
    ".doc",
    "main",
    "article",
    "[role=main]",
)

DEFAULT_MIN_LENGTH = 1500


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

# Zero-width characters and BOM from Word/HTML conversions.
_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
# C0/C1 control characters except newline (tabs are mapped to spaces first).
_CONTROL_RE = re.compile("[\x00-\x09\x0b-\x1f\x7f-\x9f]")
_HSPACE_RE = re.compile(r"[^\S\n]+")
_HTML_SNIFF_RE = re.compile(
    r"<\s*(?:!doctype|html|head|body|div|p|span|table|br|main|article)\b",
    re.IGNORECASE,
)


def strip_zero_width(text: str) -> str:
    """Remove zero-width Unicode characters that break regex matching."""
    return _ZERO_WIDTH_RE.sub("", text)


def normalize_text(text: str) -> str:
    """Whitespace-normalize plain text, keeping line structure.

    Removes carriage returns and control characters, maps NBSP/tabs to
    spaces, collapses horizontal whitespace to a single space, strips each
    line and drops blank lines.
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\u00a0", " ").replace("\t", " ")
    text = strip_zero_width(text)
    text = _CONTROL_RE.sub("", text)
    text = _HSPACE_RE.sub(" ", text)
    lines = (line.strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def looks_like_html(raw: str) -> bool:
    """Heuristic: does *raw* contain HTML markup worth parsing?"""
    return bool(_HTML_SNIFF_RE.search(raw[:5000]))


# ---------------------------------------------------------------------------
# Boilerplate removal
# ---------------------------------------------------------------------------

_BOILERPLATE_PATTERNS: list[re.Pattern[str]] = [
    # Page markers: "Страница 3 из 120"
    re.compile(r"^Страница\s+\d+\s+из\s+\d+$", re.MULTILINE | re.IGNORECASE),
    # Print timestamps: "12.03.2024, 14:05"
    re.compile(r"^\d{1,2}\.\d{1,2}\.\d{2,4},?\s+\d{1,2}:\d{2}$", re.MULTILINE),
    # Portal banners: "Документ предоставлен КонсультантПлюс"
    re.compile(r"^Документ предоставлен .{0,80}$", re.MULTILINE),
    re.compile(r"^Дата сохранения: .{0,40}$", re.MULTILINE),
]


def strip_boilerplate(text: str) -> str:
    """Remove portal boilerplate lines (page markers, print banners)."""
    for pattern in _BOILERPLATE_PATTERNS:
        text = pattern.sub("", text)
    return text


# ---------------------------------------------------------------------------
# HTML text extraction
# ---------------------------------------------------------------------------


def strip_html(raw_html: str) -> str:
    """Extract the text of a whole HTML document with block line breaks.

    Args:
        raw_html: Raw HTML string.

    Returns:
        Normalized text. Empty string if *raw_html* is empty.
    """
    if not raw_html:
        return ""
    soup = _parse(raw_html)
    if soup is None:
        return _strip_tags(raw_html)
    root = soup.body or soup
    return _finish(_text_with_breaks(root))


def extract_main_text(
    raw_html: str,
    *,
    min_length: int = DEFAULT_MIN_LENGTH,
) -> str:
    """Return the plain text of the page's main document container.

    Args:
        raw_html: Raw HTML string.
        min_length: A candidate container is accepted only when its
            normalized text is longer than this many characters.

    Returns:
        Normalized text of the first acceptable container, or of the whole
        body when no container passes.
    """
    if not raw_html:
        return ""

    soup = _parse(raw_html)
    if soup is None:
        return _strip_tags(raw_html)

    picked = _pick_container(soup, min_length)
    if picked is not None:
        return picked[1]

    root = soup.body or soup
    return _finish(_text_with_breaks(root))


def select_container(
    raw_html: str,
    *,
    min_length: int = DEFAULT_MIN_LENGTH,
) -> str | None:
    """Name the selector ``extract_main_text`` would accept, or None.

    None means the whole-body fallback would be used.
    """
    if not raw_html:
        return None
    soup = _parse(raw_html)
    if soup is None:
        return None
    picked = _pick_container(soup, min_length)
    return picked[0] if picked is not None else None


# ---------------------------------------------------------------------------
# Encoding-safe file reading
# ---------------------------------------------------------------------------


def read_file(fpath: Path, *, min_size: int = 0) -> str:
    """Read a text file with encoding fallback: UTF-8 -> CP1251 -> replace.

    CP1251 covers legacy Russian exports of legal texts.

    Args:
        fpath: Path to the file.
        min_size: Minimum file size in bytes. Returns empty string if smaller.

    Returns:
        File contents as a string. Empty string on failure or below min_size.
    """
    try:
        if min_size > 0 and fpath.stat().st_size < min_size:
            return ""
        try:
            return fpath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            try:
                return fpath.read_text(encoding="cp1251")
            except UnicodeDecodeError:
                with open(fpath, encoding="utf-8", errors="replace") as f:
                    return f.read()
    except OSError:
        return ""


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


_RAW_NON_CONTENT_RE = re.compile(
    r"<(script|style|noscript|template)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL,
)
_RAW_TAG_RE = re.compile(r"<[^>]*>")


def _parse(raw_html: str) -> BeautifulSoup | None:
    """Parse *raw_html* and drop non-content nodes; None if bs4 rejects it."""
    try:
        soup = BeautifulSoup(raw_html, "html.parser")
    except ParserRejectedMarkup as exc:
        log.warning("HTML parser rejected markup, stripping tags instead: %s", exc)
        return None
    _remove_non_content(soup)
    return soup


def _strip_tags(raw_html: str) -> str:
    """Regex tag stripping for markup the parser refuses."""
    text = _RAW_NON_CONTENT_RE.sub(" ", raw_html)
    text = _RAW_TAG_RE.sub("\n", text)
    return _finish(html.unescape(text))


def _remove_non_content(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(_NON_CONTENT_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()


def _pick_container(
    soup: BeautifulSoup, min_length: int,
) -> tuple[str, str] | None:
    """Return (selector, text) of the first container longer than min_length."""
    for selector in CONTAINER_SELECTORS:
        for node in soup.select(selector):
            text = _finish(_container_text(node))
            if len(text) > min_length:
                return selector, text
    return None


def _container_text(node: Tag) -> str:
    """Join the text of the innermost block elements under *node*.

    Blocks with nested blocks contribute only their inline content (see
    ``_inline_text``), so text inside ``<div><p>...</p></div>`` is emitted
    once.
    """
    lines: list[str] = []
    for el in node.find_all(_BLOCK_TAGS):
        if el.find(_BLOCK_TAGS) is not None:
            line = _inline_text(el)
        else:
            line = el.get_text(separator=" ", strip=True)
        line = line.strip()
        if line:
            lines.append(line)
    if not lines:
        return node.get_text(separator=" ", strip=True)
    return "\n".join(lines)


def _inline_text(el: Tag) -> str:
    """Text of *el* outside its nested blocks.

    Inline children (``<span>Статья 1.</span>``) are kept; an inline child
    that wraps a block is descended into, since the block itself is emitted
    as its own line.
    """
    parts: list[str] = []
    for child in el.children:
        if isinstance(child, Tag):
            if child.name in _BLOCK_TAGS:
                continue
            if child.find(_BLOCK_TAGS) is not None:
                parts.append(_inline_text(child))
            else:
                parts.append(child.get_text(separator=" ", strip=True))
        elif isinstance(child, NavigableString):
            parts.append(child.strip())
    return " ".join(p for p in parts if p)


def _text_with_breaks(root: Tag | BeautifulSoup) -> str:
    for tag in root.find_all(_BREAK_TAGS):
        tag.insert_before("\n")
    return root.get_text(separator=" ")


def _finish(text: str) -> str:
    return normalize_text(strip_boilerplate(normalize_text(text)))
