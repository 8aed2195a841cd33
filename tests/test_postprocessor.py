"""Tests for Arabic OCR text enhancement."""

import logging

import pytest

from arabic_text_extractor.ocr.postprocessor import (
    ArabicTextEnhancer,
    arabic_similarity,
    extract_arabic_segments,
    load_dictionary,
)

from tests.test_arabic_newspaper import NEWS_ARTICLE, NOISY_OCR_TEXT, OPINION_ARTICLE, SPORTS_ARTICLE


class TestArabicTextEnhancer:
    def setup_method(self):
        # Dictionary correction off so expectations stay exact
        self.enhancer = ArabicTextEnhancer(enable_dictionary_correction=False)

    def test_empty_text(self):
        assert self.enhancer.enhance("") == ""
        assert self.enhancer.enhance("   ") == ""

    def test_normalize_whitespace(self):
        assert self.enhancer.enhance("مرحبا   بالعالم") == "مرحبا بالعالم"

    def test_fix_al_prefix(self):
        assert self.enhancer.enhance("ال كتاب") == "الكتاب"

    def test_remove_noise_characters(self):
        assert self.enhancer.enhance("مرحبا ~ ` | بالعالم") == "مرحبا بالعالم"

    def test_preserve_arabic_text(self):
        result = self.enhancer.enhance("بسم الله الرحمن الرحيم")
        assert result == "بسم الله الرحمن الرحيم"

    def test_latin_comma_between_arabic_words(self):
        assert self.enhancer.enhance("مرحبا,عالم") == "مرحبا، عالم"

    def test_space_before_punctuation_removed(self):
        assert self.enhancer.enhance("مرحبا , عالم") == "مرحبا، عالم"

    def test_question_mark_at_end(self):
        assert self.enhancer.enhance("كيف حالك?") == "كيف حالك؟"

    def test_latin_punctuation_untouched(self):
        assert self.enhancer.enhance("Hello, world") == "Hello, world"

    def test_digits_inside_arabic(self):
        assert self.enhancer.enhance("عام 2024 م") == "عام ٢٠٢٤ م"

    def test_digits_next_to_latin(self):
        assert "19" in self.enhancer.enhance("COVID-19 في")

    def test_persian_digits(self):
        assert self.enhancer.enhance("۱۲۳") == "١٢٣"

    def test_line_breaks(self):
        text = "السطر الاول\nالسطر الثاني\n\n\n\nفقرة جديدة"
        assert self.enhancer.enhance(text) == "السطر الاول السطر الثاني\n\nفقرة جديدة"

    def test_hyphenated_latin_word(self):
        assert self.enhancer.enhance("inter-\nnational") == "international"

    def test_broken_letters_rejoined(self):
        assert self.enhancer.enhance("ا ل ع ر ب ي ة") == "العربية"

    def test_two_letter_word_rejoined(self):
        assert self.enhancer.enhance("م ن البيت") == "من البيت"

    def test_unknown_letter_pair_left_alone(self):
        assert self.enhancer.enhance("ص ض البيت") == "ص ض البيت"

    def test_waw_conjunction_attached(self):
        assert self.enhancer.enhance("و الكتاب") == "والكتاب"

    def test_allah_ligature(self):
        assert self.enhancer.enhance("بسم اللة") == "بسم الله"

    def test_lam_alef_ligature(self):
        assert self.enhancer.enhance("لاا شيء") == "لا شيء"

    def test_presentation_forms(self):
        assert self.enhancer.enhance("\uFEE3\uFEAE\uFEA3\uFE92\uFE8E") == "مرحبا"

    def test_diacritics_removed(self):
        text = "\u0645\u064E\u0631\u0652\u062D\u064E\u0628\u064B\u0627"
        assert self.enhancer.enhance(text) == "مرحبا"

    def test_tatweel_removed(self):
        assert self.enhancer.enhance("مـرحـبا") == "مرحبا"

    def test_persian_kaf_normalized(self):
        assert self.enhancer.enhance("يشکل") == "يشكل"

    def test_alef_variants_unified(self):
        assert self.enhancer.enhance("أحمد إلى آخر") == "احمد الي اخر"

    def test_apostrophe_becomes_hamza(self):
        assert self.enhancer.enhance("جز'ا") == "جزءا"

    def test_failing_stage_is_skipped(self, caplog):
        def broken(text):
            raise RuntimeError("boom")

        self.enhancer.stages[1] = ("digits", broken)
        with caplog.at_level(logging.WARNING):
            result = self.enhancer.enhance("مرحبا   بالعالم")
        assert result == "مرحبا بالعالم"
        assert "digits" in caplog.text


class TestIdempotence:
    def setup_method(self):
        self.enhancer = ArabicTextEnhancer()

    @pytest.mark.parametrize(
        "text",
        [
            NEWS_ARTICLE,
            OPINION_ARTICLE,
            SPORTS_ARTICLE,
            NOISY_OCR_TEXT,
            "مرحبا , عالم ~ | و ال كتاب 2024",
            "ا ل ع ر ب ي ة\nم ن\n\n\nبسم اللة",
            "تقرير خاص: COVID-19 والاقتصاد العربي في 2024",
        ],
    )
    def test_enhance_twice_is_enhance_once(self, text):
        once = self.enhancer.enhance(text)
        assert self.enhancer.enhance(once) == once


class TestDictionaryCorrection:
    def test_known_word_unchanged(self):
        enhancer = ArabicTextEnhancer(dictionary=["كتاب", "قلم"])
        assert enhancer.enhance("كتاب") == "كتاب"

    def test_close_word_replaced(self):
        enhancer = ArabicTextEnhancer(dictionary=["كتاب", "قلم"])
        assert enhancer.closest_word("كتات") == "كتاب"
        assert enhancer.enhance("كتات قلم") == "كتاب قلم"

    def test_distant_word_kept(self):
        enhancer = ArabicTextEnhancer(dictionary=["كتاب", "قلم"])
        assert enhancer.closest_word("كتب") is None

    def test_list_order_breaks_ties(self):
        enhancer = ArabicTextEnhancer(dictionary=["كتاب", "كتان"])
        assert enhancer.closest_word("كتار") == "كتاب"

    def test_taa_marbuta_variant(self):
        enhancer = ArabicTextEnhancer()
        assert enhancer.enhance("مدرسه") == "مدرسة"

    def test_disabled(self):
        enhancer = ArabicTextEnhancer(dictionary=["كتاب"], enable_dictionary_correction=False)
        assert enhancer.enhance("كتات") == "كتات"

    def test_from_file(self, tmp_path):
        path = tmp_path / "words.txt"
        path.write_text("# common words\nكتاب\n\nقلم\nكتاب\n", encoding="utf-8")
        assert load_dictionary(str(path)) == ["كتاب", "قلم", "كتاب"]
        enhancer = ArabicTextEnhancer.from_file(str(path))
        assert enhancer.dictionary == ("كتاب", "قلم")


class TestHelpers:
    def test_similarity_identical(self):
        assert arabic_similarity("كتاب", "كتاب") == 1.0

    def test_similarity_variant_forms(self):
        assert arabic_similarity("أحمد", "احمد") == 0.95

    def test_similarity_positional(self):
        assert arabic_similarity("كتاب", "كتان") == 0.75

    def test_similarity_empty(self):
        assert arabic_similarity("", "كتاب") == 0.0

    def test_extract_arabic_segments(self):
        assert extract_arabic_segments("Report تقرير خاص about COVID") == ["تقرير خاص"]
