"""Tests for Arabic search normalization."""

import sqlite3

import pytest

from arabic_text_extractor.search import (
    highlight_matches,
    normalize_for_index,
    prepare_query,
    suggest_terms,
)
from arabic_text_extractor.search.normalizer import affix_variants, fold, index_tokens


class TestNormalizeForIndex:
    def test_empty(self):
        assert normalize_for_index("") == ""
        assert normalize_for_index("   ") == ""

    def test_hamza_forms_folded(self):
        assert normalize_for_index("أحمد") == "احمد"

    def test_taa_marbuta_folded(self):
        assert normalize_for_index("مدرسة") == "مدرسه"

    def test_hamza_carriers_folded(self):
        assert normalize_for_index("سؤال") == "سءال"

    def test_prefix_variants_appended(self):
        assert normalize_for_index("الكتاب") == "الكتاب كتاب تاب"

    def test_suffix_and_prefix_variants(self):
        assert normalize_for_index("المكتبات") == "المكتبات مكتبات المكتب مكتب"

    def test_arabic_punctuation_removed(self):
        assert normalize_for_index("كتاب، قلم؟") == "كتاب قلم تاب"

    def test_latin_lowercased(self):
        assert normalize_for_index("Quarterly REPORT") == "quarterly report"

    @pytest.mark.parametrize(
        "text",
        ["أحمد", "الكتاب", "المكتبات والمدارس", "ذهب الطالب إلى المدرسة", "Report 2024"],
    )
    def test_idempotent(self, text):
        once = normalize_for_index(text)
        assert normalize_for_index(once) == once


class TestTokens:
    def test_index_tokens_deduplicated(self):
        assert index_tokens("والكتاب الكتاب") == ["والكتاب", "الكتاب", "كتاب", "تاب"]

    def test_short_token_not_expanded(self):
        assert affix_variants("من") == []

    def test_latin_token_not_expanded(self):
        assert affix_variants("books") == []

    def test_variants_never_shorter_than_two(self):
        assert affix_variants("الي") == []

    def test_fold_collapses_whitespace(self):
        assert fold("  كتاب \n\t قلم ") == "كتاب قلم"


class TestPrepareQuery:
    def test_empty(self):
        assert prepare_query("") == ""
        assert prepare_query("  ") == ""

    def test_single_arabic_token(self):
        assert prepare_query("الكتاب") == '"الكتاب" OR "الكتاب"* OR "كتاب" OR "كتاب"*'

    def test_single_token_without_affix(self):
        assert prepare_query("أحمد") == '"احمد" OR "احمد"*'

    def test_latin_token_is_prefix_query(self):
        assert prepare_query("report") == '"report"*'

    def test_quotes_escaped(self):
        assert prepare_query('a"b') == '"a""b"*'

    def test_multiple_tokens(self):
        assert prepare_query("كتاب جديد") == (
            '("كتاب جديد") OR (("كتاب"* OR "كتاب") AND ("جديد"* OR "جديد"))'
        )

    def test_mixed_script_tokens(self):
        assert prepare_query("كتاب report") == (
            '("كتاب report") OR (("كتاب"* OR "كتاب") AND "report"*)'
        )


class TestFullTextRoundTrip:
    DOCUMENTS = [
        "ذهب الطالب إلى المدرسة",
        "The quarterly report",
        "قال أحمد",
    ]

    def setup_method(self):
        self.db = sqlite3.connect(":memory:")
        try:
            self.db.execute("CREATE VIRTUAL TABLE docs USING fts5(body)")
        except sqlite3.OperationalError:
            self.db.close()
            pytest.skip("SQLite built without FTS5")
        self.db.executemany(
            "INSERT INTO docs (rowid, body) VALUES (?, ?)",
            [(i, normalize_for_index(text)) for i, text in enumerate(self.DOCUMENTS)],
        )

    def teardown_method(self):
        self.db.close()

    def search(self, query):
        rows = self.db.execute(
            "SELECT rowid FROM docs WHERE docs MATCH ? ORDER BY rowid", (prepare_query(query),)
        )
        return [row[0] for row in rows]

    def test_taa_marbuta_query(self):
        assert self.search("مدرسة") == [0]

    def test_query_without_article(self):
        assert self.search("طالب") == [0]

    def test_latin_prefix(self):
        assert self.search("rep") == [1]

    def test_query_without_hamza(self):
        assert self.search("احمد") == [2]

    def test_multiple_words_not_adjacent(self):
        assert self.search("الطالب المدرسة") == [0]

    def test_no_match(self):
        assert self.search("سيارة") == []


class TestHighlightMatches:
    def test_hamza_variant_marked_as_written(self):
        assert highlight_matches("قال أحمد كلمته", ["احمد"]) == "قال <mark>أحمد</mark> كلمته"

    def test_diacritics_inside_match(self):
        text = "\u0645\u064F\u062D\u064E\u0645\u0651\u064E\u062F رسول"
        assert highlight_matches(text, ["محمد"]) == f"<mark>{text[:-5]}</mark> رسول"

    def test_taa_marbuta_matches(self):
        assert highlight_matches("في المدرسة", ["مدرسه"]) == "في ال<mark>مدرسة</mark>"

    def test_case_insensitive_latin(self):
        assert highlight_matches("The Quarterly Report", ["report"]) == "The Quarterly <mark>Report</mark>"

    def test_longest_term_first(self):
        assert highlight_matches("الكتاب", ["كتاب", "الكتاب"]) == "<mark>الكتاب</mark>"

    def test_no_terms(self):
        assert highlight_matches("الكتاب", []) == "الكتاب"
        assert highlight_matches("الكتاب", ["", "  "]) == "الكتاب"


class TestSuggestTerms:
    def test_existing_terms_first(self):
        suggestions = suggest_terms("كتاب", ["الكتاب الجديد", "قلم", "كتابة"])
        assert suggestions[:2] == ["الكتاب الجديد", "كتابة"]
        assert suggestions[2] == "الكتاب"
        assert len(suggestions) == 10
        assert len(set(suggestions)) == len(suggestions)

    def test_limit(self):
        assert len(suggest_terms("كتاب", [], limit=3)) == 3

    def test_non_arabic_query(self):
        assert suggest_terms("report", ["report card"]) == []

    def test_empty_query(self):
        assert suggest_terms("", ["كتاب"]) == []
