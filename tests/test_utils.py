"""Tests for utility functions."""

import logging

import pytest

from arabic_text_extractor.utils import (
    contains_arabic,
    count_arabic_letters,
    is_arabic,
    is_arabic_letter,
    normalize_arabic,
    setup_logging,
    unify_characters,
)


class TestIsArabic:
    def test_arabic_text(self):
        assert is_arabic("مرحبا بالعالم") is True

    def test_english_text(self):
        assert is_arabic("Hello World") is False

    def test_mixed_mostly_arabic(self):
        assert is_arabic("مرحبا Hello بالعالم") is True

    def test_mixed_mostly_english(self):
        assert is_arabic("Hello مرحبا World Test Foo Bar") is False

    def test_empty_string(self):
        assert is_arabic("") is False

    def test_numbers_only(self):
        assert is_arabic("12345") is False


class TestContainsArabic:
    def test_single_letter(self):
        assert contains_arabic("report ب") is True

    def test_arabic_digits_count(self):
        assert contains_arabic("٢٠٢٤") is True

    def test_latin_only(self):
        assert contains_arabic("report 2024") is False

    def test_letter_classes(self):
        assert is_arabic_letter("ب") is True
        assert is_arabic_letter("٢") is False
        assert is_arabic_letter("\u0640") is False
        assert count_arabic_letters("كتاب 2024 book") == 4


class TestNormalizeArabic:
    def test_remove_tashkeel(self):
        assert normalize_arabic("\u0643\u0650\u062A\u064E\u0627\u0628\u064C") == "كتاب"

    def test_normalize_alef(self):
        assert normalize_arabic("أحمد إبراهيم آل") == "احمد ابراهيم ال"

    def test_normalize_alef_maqsura(self):
        assert normalize_arabic("على") == "علي"

    def test_haa_becomes_taa_marbuta(self):
        assert normalize_arabic("مدرسه") == "مدرسة"


class TestUnifyCharacters:
    def test_presentation_forms(self):
        assert unify_characters("\uFEFB") == "لا"
        assert unify_characters("\uFEE3\uFEAE\uFEA3\uFE92\uFE8E") == "مرحبا"

    def test_invisible_characters_removed(self):
        assert unify_characters("\u200Fكتا\u200Bب\uFEFF") == "كتاب"

    def test_tatweel_removed(self):
        assert unify_characters("ك\u0640ت\u0640اب") == "كتاب"

    def test_variants(self):
        assert unify_characters("أإآ ى \u06A9 \u06CC") == "ااا ي ك ي"

    def test_latin_untouched(self):
        assert unify_characters("Report 2024") == "Report 2024"

    @pytest.mark.parametrize(
        "text",
        ["أحمد", "\u0645\u064E\u062F\u0652\u0631\u064E\u0633\u064E\u0629", "\uFEE3\uFEAE\uFEA3"],
    )
    def test_idempotent(self, text):
        once = unify_characters(text)
        assert unify_characters(once) == once


class TestSetupLogging:
    def test_configures_root_logger(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        setup_logging(logging.DEBUG)
        assert calls[0]["level"] == logging.DEBUG
        assert "%(levelname)-7s" in calls[0]["format"]
