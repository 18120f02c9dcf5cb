"""Tests for taxcode.query_expansion module."""
import re

from taxcode.query_expansion import (
    SYNONYM_RULES,
    SynonymRule,
    expand_query,
    normalize_query,
    tokenize,
)


class TestNormalizeQuery:
    def test_lowercase_and_yo(self) -> None:
        assert normalize_query("  НДС   Ёмкость ") == "ндс емкость"

    def test_empty(self) -> None:
        assert normalize_query("") == ""
        assert normalize_query("   ") == ""


class TestExpandQuery:
    def test_abbreviation_expands_to_full_phrase(self) -> None:
        assert expand_query("НДС") == ["ндс", "налог на добавленную стоимость"]

    def test_full_phrase_expands_to_abbreviation(self) -> None:
        variants = expand_query("Налог на добавленную стоимость")
        assert variants[0] == "налог на добавленную стоимость"
        assert "ндс" in variants

    def test_original_first_then_rule_order(self) -> None:
        assert expand_query("штраф") == [
            "штраф",
            "налоговое правонарушение",
            "ответственность",
        ]

    def test_no_duplicates(self) -> None:
        assert expand_query("пеня") == ["пеня"]
        assert expand_query("пени") == ["пени", "пеня"]

    def test_no_rule_matches(self) -> None:
        assert expand_query("объект налогообложения") == ["объект налогообложения"]

    def test_trigger_needs_whole_word(self) -> None:
        assert expand_query("индсистема") == ["индсистема"]

    def test_empty_query(self) -> None:
        assert expand_query("") == []
        assert expand_query("  ") == []

    def test_custom_rules(self) -> None:
        rules = (SynonymRule(re.compile(r"\bфнс\b"), ("федеральная налоговая служба",)),)
        assert expand_query("ФНС", rules=rules) == ["фнс", "федеральная налоговая служба"]

    def test_rule_phrases_are_normalized(self) -> None:
        for rule in SYNONYM_RULES:
            for phrase in rule.phrases:
                assert normalize_query(phrase) == phrase


class TestSynonymRule:
    def test_apply(self) -> None:
        rule = SynonymRule(re.compile(r"\bусн\b"), ("упрощенная система налогообложения",))
        assert rule.apply("переход на усн") == ("упрощенная система налогообложения",)
        assert rule.apply("усна") == ()


class TestTokenize:
    def test_drops_short_terms(self) -> None:
        assert tokenize("статья 53 на налог") == ["статья", "налог"]

    def test_keeps_long_numbers(self) -> None:
        assert tokenize("статья 153") == ["статья", "153"]

    def test_dedup_keeps_order(self) -> None:
        assert tokenize("налог ндс налог") == ["налог", "ндс"]

    def test_punctuation_split(self) -> None:
        assert tokenize("ст.346.11, усн") == ["346", "усн"]
