"""Query normalization and synonym expansion.

A user query becomes an ordered, de-duplicated list of phrase variants:
the normalized query itself, then the phrases of every synonym rule whose
trigger matches it.  Rules are declarative (trigger pattern -> phrases) and
evaluated uniformly, so adding a synonym never means adding a branch.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

# Letters used interchangeably in Russian legal texts.
_FOLD_TABLE = str.maketrans({"ё": "е", "Ё": "Е"})
_WS_RE = re.compile(r"\s+")
_TOKEN_RE = re.compile(r"[^\W_]+")

MIN_TERM_LENGTH = 3


def normalize_query(query: str) -> str:
    """Lowercase, fold ё -> е, collapse whitespace and trim."""
    return _WS_RE.sub(" ", (query or "").translate(_FOLD_TABLE).lower()).strip()


def tokenize(phrase: str, *, min_length: int = MIN_TERM_LENGTH) -> list[str]:
    """Split a normalized phrase into distinct letter/digit terms.

    Terms shorter than *min_length* (prepositions, "ст", bare two-digit
    numbers) are dropped; order of first appearance is kept.
    """
    seen: set[str] = set()
    terms: list[str] = []
    for tok in _TOKEN_RE.findall(phrase):
        if len(tok) < min_length or tok in seen:
            continue
        seen.add(tok)
        terms.append(tok)
    return terms


# ---------------------------------------------------------------------------
# Synonym rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SynonymRule:
    """If ``trigger`` matches the normalized query, add ``phrases``."""

    trigger: re.Pattern[str]
    phrases: tuple[str, ...]

    def apply(self, normalized_query: str) -> tuple[str, ...]:
        return self.phrases if self.trigger.search(normalized_query) else ()


def _rule(trigger: str, *phrases: str) -> SynonymRule:
    return SynonymRule(re.compile(trigger), tuple(phrases))


SYNONYM_RULES: tuple[SynonymRule, ...] = (
    _rule(r"\bндс\b", "налог на добавленную стоимость"),
    _rule(r"добавленн\w* стоимост", "ндс"),
    _rule(r"\bндфл\b", "налог на доходы физических лиц"),
    _rule(r"доход\w* физическ\w* лиц", "ндфл"),
    _rule(r"\bусн\b|упрощенк", "упрощенная система налогообложения"),
    _rule(r"упрощенн\w* систем", "усн"),
    _rule(r"\bесхн\b", "единый сельскохозяйственный налог"),
    _rule(r"\bпсн\b|\bпатент", "патентная система налогообложения"),
    _rule(r"\bндпи\b", "налог на добычу полезных ископаемых"),
    _rule(r"\bнпд\b|самозанят", "налог на профессиональный доход"),
    _rule(r"\bип\b", "индивидуальный предприниматель"),
    _rule(r"\bинн\b", "идентификационный номер налогоплательщика"),
    _rule(r"\bнк\b|налогов\w* кодекс", "налоговый кодекс"),
    _rule(r"\bвычет", "налоговый вычет"),
    _rule(r"\bпени\b|\bпеня\b", "пеня"),
    _rule(r"\bштраф", "налоговое правонарушение", "ответственность"),
    _rule(r"\bльгот", "налоговые льготы"),
    _rule(r"\bдекларац", "налоговая декларация"),
    _rule(r"\bнедоимк", "задолженность по налогу"),
    _rule(r"\bvat\b", "налог на добавленную стоимость"),
)


def expand_query(
    query: str,
    rules: tuple[SynonymRule, ...] = SYNONYM_RULES,
) -> list[str]:
    """Return the normalized query followed by its synonym phrases.

    Args:
        query: Raw user query.
        rules: Synonym table; defaults to ``SYNONYM_RULES``.

    Returns:
        De-duplicated variants, normalized query first.  Empty list for an
        empty query.
    """
    normalized = normalize_query(query)
    if not normalized:
        return []
    variants: list[str] = [normalized]
    for rule in rules:
        for phrase in rule.apply(normalized):
            phrase = normalize_query(phrase)
            if phrase and phrase not in variants:
                variants.append(phrase)
    return variants
