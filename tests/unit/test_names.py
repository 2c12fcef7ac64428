"""Tests for name parsing and similarity helpers."""

import pytest

from src.pipeline.names import (
    compose_full_name,
    name_metaphone_key,
    normalize_text,
    overall_name_similarity,
    parse_name,
    phonetic_key,
    similarity,
)


class TestParseName:
    def test_first_last(self) -> None:
        p = parse_name("John Smith")
        assert (p.first, p.middle, p.last) == ("JOHN", "", "SMITH")

    def test_middle_initial_with_period(self) -> None:
        p = parse_name("John A. Smith")
        assert (p.first, p.middle, p.last) == ("JOHN", "A", "SMITH")

    def test_last_comma_first(self) -> None:
        p = parse_name("Smith, John Alan")
        assert (p.first, p.middle, p.last) == ("JOHN", "ALAN", "SMITH")

    def test_title_and_suffix_stripped(self) -> None:
        p = parse_name("Dr. John Smith Jr.")
        assert p.first == "JOHN"
        assert p.last == "SMITH"
        assert p.suffix == "JR"

    def test_single_token_is_last_name(self) -> None:
        p = parse_name("Smith")
        assert p.first == ""
        assert p.last == "SMITH"

    def test_metaphone_keys(self) -> None:
        p = parse_name("John Smith")
        assert p.metaphone_last == phonetic_key("SMITH")
        assert p.metaphone_first == phonetic_key("JOHN")

    def test_full(self) -> None:
        assert parse_name("smith, john a").full == "JOHN A SMITH"

    @pytest.mark.parametrize("raw", ["", "   ", "!!!", "@#$"])
    def test_unusable_input(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_name(raw)


class TestPhonetic:
    def test_sound_alike_surnames(self) -> None:
        assert phonetic_key("Smith") == phonetic_key("Smyth")

    def test_ignores_non_letters(self) -> None:
        assert phonetic_key("O'Brien") == phonetic_key("OBrien")

    def test_blank(self) -> None:
        assert phonetic_key(None) == ""
        assert phonetic_key("  ") == ""

    def test_name_metaphone_key(self) -> None:
        key = name_metaphone_key("John", "Smith")
        assert key == f"{phonetic_key('John')} {phonetic_key('Smith')}"
        assert name_metaphone_key(None, "Smith") == phonetic_key("Smith")


class TestSimilarity:
    def test_identical_case_insensitive(self) -> None:
        assert similarity("Nurse", " nurse ") == 1.0

    def test_one_edit(self) -> None:
        assert similarity("JOHNSON", "JOHNSTON") == pytest.approx(0.875)

    def test_both_blank(self) -> None:
        assert similarity(None, "") == 1.0

    def test_overall_is_order_insensitive(self) -> None:
        assert overall_name_similarity("Smith John", "john smith") == 1.0


class TestHelpers:
    def test_normalize_text(self) -> None:
        assert normalize_text("  Los   Angeles ") == "los angeles"
        assert normalize_text(None) == ""

    def test_compose_full_name(self) -> None:
        assert compose_full_name(" John Q Smith ", "John", "Smith") == "John Q Smith"
        assert compose_full_name(None, "John", "Smith") == "John Smith"
        assert compose_full_name("", None, "Smith") == "Smith"
        assert compose_full_name(None, None, None) == ""
