"""Tests for taxcode.section_parser module."""
import pytest

from taxcode.parsing_types import Section
from taxcode.section_parser import (
    WHOLE_DOCUMENT_TITLE,
    derive_title,
    find_headers,
    resolve_anchor,
    section_id,
    sectionize,
    split_chunks,
)

URL = "https://example.org/nk-rf"

SAMPLE_CODE_TEXT = """Налоговый кодекс Российской Федерации. Часть первая.
Статья 1. Законодательство Российской Федерации о налогах и сборах
1. Законодательство Российской Федерации о налогах и сборах состоит из настоящего Кодекса.
Статья 2. Отношения, регулируемые законодательством о налогах и сборах
Законодательство о налогах регулирует властные отношения, указанные в статья 1 настоящего Кодекса.
Статья 3. Основные начала законодательства о налогах и сборах
Каждое лицо должно уплачивать законно установленные налоги и сборы."""


class TestSectionize:
    def test_preamble_and_articles(self) -> None:
        sections = sectionize(SAMPLE_CODE_TEXT, URL, 0)
        assert [s.id for s in sections] == [1001, 1002, 1003, 1004]
        assert sections[0].title.startswith("Налоговый кодекс")
        assert sections[0].kind == ""
        assert sections[1].title == (
            "Статья 1. Законодательство Российской Федерации о налогах и сборах"
        )
        assert [s.number for s in sections[1:]] == ["1", "2", "3"]
        assert all(s.kind == "статья" for s in sections[1:])

    def test_all_sections_carry_source_url(self) -> None:
        sections = sectionize(SAMPLE_CODE_TEXT, URL, 0)
        assert all(isinstance(s, Section) for s in sections)
        assert {s.source_url for s in sections} == {URL}

    def test_ids_offset_by_source_index(self) -> None:
        sections = sectionize(SAMPLE_CODE_TEXT, URL, 2)
        assert [s.id for s in sections] == [3001, 3002, 3003, 3004]

    def test_section_text_starts_at_header(self) -> None:
        sections = sectionize(SAMPLE_CODE_TEXT, URL, 0)
        assert sections[2].text.startswith("Статья 2.")
        assert "Статья 3" not in sections[2].text

    def test_no_headers_gives_whole_document(self) -> None:
        text = "Письмо Минфина о порядке применения вычетов.\nВторая строка."
        sections = sectionize(text, URL, 0)
        assert len(sections) == 1
        assert sections[0].id == 1001
        assert sections[0].title == WHOLE_DOCUMENT_TITLE
        assert sections[0].text == text

    def test_single_header_gives_whole_document(self) -> None:
        sections = sectionize("Статья 5. Единственная статья\nТекст.", URL, 0)
        assert len(sections) == 1
        assert sections[0].title == WHOLE_DOCUMENT_TITLE
        assert sections[0].kind == "статья"
        assert sections[0].number == "5"

    def test_empty_text(self) -> None:
        assert sectionize("", URL, 0) == []
        assert sectionize("  \n ", URL, 0) == []

    def test_text_starting_with_header_has_no_preamble(self) -> None:
        text = "Статья 1. Первая\nТекст.\nСтатья 2. Вторая\nТекст."
        sections = sectionize(text, URL, 0)
        assert [s.number for s in sections] == ["1", "2"]
        assert sections[0].id == 1001

    def test_chapters_sections_and_dotted_numbers(self) -> None:
        text = (
            "Раздел VIII. Федеральные налоги\n"
            "Глава 21. Налог на добавленную стоимость\n"
            "Статья 143. Налогоплательщики\n"
            "Статья 105.1. Взаимозависимые лица"
        )
        sections = sectionize(text, URL, 0)
        assert [(s.kind, s.number) for s in sections] == [
            ("раздел", "VIII"),
            ("глава", "21"),
            ("статья", "143"),
            ("статья", "105.1"),
        ]

    def test_custom_stride(self) -> None:
        sections = sectionize(SAMPLE_CODE_TEXT, URL, 1, id_stride=10000)
        assert sections[0].id == 20001

    def test_deterministic(self) -> None:
        assert sectionize(SAMPLE_CODE_TEXT, URL, 0) == sectionize(SAMPLE_CODE_TEXT, URL, 0)


class TestHeaderAnchoring:
    def test_line_mode_ignores_mid_line_reference(self) -> None:
        text = "Статья 1. Первая\nсогласно Статья 3 кодекса\nСтатья 2. Вторая"
        assert len(sectionize(text, URL, 0, anchor="line")) == 2

    def test_loose_mode_splits_mid_line(self) -> None:
        text = "Статья 1. Первая\nсогласно Статья 3 кодекса\nСтатья 2. Вторая"
        assert len(sectionize(text, URL, 0, anchor="loose")) == 3

    def test_line_mode_case_insensitive(self) -> None:
        headers = find_headers("СТАТЬЯ 1. А\nстатья 2. Б", anchor="line")
        assert [(k, n) for _, k, n in headers] == [("статья", "1"), ("статья", "2")]

    def test_loose_mode_skips_lower_case_reference(self) -> None:
        text = "Статья 1. Текст. Статья 2. Другой текст, см. статья 1."
        headers = find_headers(text, anchor="loose")
        assert [n for _, _, n in headers] == ["1", "2"]

    def test_auto_resolution(self) -> None:
        assert resolve_anchor("одна строка") == "loose"
        assert resolve_anchor("строка\nещё строка") == "line"
        assert resolve_anchor("строка\n") == "loose"

    def test_auto_single_line_blob(self) -> None:
        text = "Статья 1. Текст первой. Статья 2. Текст второй."
        sections = sectionize(text, URL, 0)
        assert [s.number for s in sections] == ["1", "2"]

    def test_unknown_anchor(self) -> None:
        with pytest.raises(ValueError):
            resolve_anchor("text", "strict")  # type: ignore[arg-type]


class TestSplitChunks:
    def test_drops_empty_chunks(self) -> None:
        chunks = split_chunks("Статья 1.\nСтатья 2. Текст")
        assert [c[0] for c in chunks] == ["Статья 1.", "Статья 2. Текст"]

    def test_empty(self) -> None:
        assert split_chunks("") == []


class TestDeriveTitle:
    def test_first_line(self) -> None:
        assert derive_title("Статья 7. Название\nТекст") == "Статья 7. Название"

    def test_long_line_cut_at_word(self) -> None:
        chunk = "Статья 1. " + "слово " * 50
        title = derive_title(chunk)
        assert title.endswith("…")
        assert len(title) <= 161
        assert not title[:-1].endswith(" ")


class TestSectionId:
    def test_formula(self) -> None:
        assert section_id(0, 1) == 1001
        assert section_id(2, 7, 10000) == 30007
