"""Tests for extracted text quality scoring."""

import pytest

from arabic_text_extractor.quality.scorer import QualityReport, QualityScorer

from tests.test_arabic_newspaper import NEWS_ARTICLE, NOISY_OCR_TEXT


class TestQualityScorer:
    def setup_method(self):
        self.scorer = QualityScorer()

    def test_no_arabic_text(self):
        report = self.scorer.score("Hello world, this is English")
        assert report.score == 0
        assert report.issues == ["No Arabic text detected"]

    def test_empty_text(self):
        report = self.scorer.score("")
        assert report.score == 0
        assert report.issues == ["No Arabic text detected"]

    def test_clean_article_scores_full(self):
        report = self.scorer.score(NEWS_ARTICLE)
        assert report.score == 100
        assert report.issues == []
        assert report.suggestions == []

    def test_broken_words(self):
        report = self.scorer.score(NOISY_OCR_TEXT)
        assert report.score == 75
        assert report.issues == ["Many broken words detected"]
        assert report.suggestions == ["Try higher resolution or better image quality"]

    def test_few_broken_words_tolerated(self):
        report = self.scorer.score("ذهب ا ل ى المدرسة صباحا مع اصدقائه")
        assert report.score == 100

    def test_punctuation_glued_between_words(self):
        report = self.scorer.score("كتاب.قلم دفتر،مسطرة باب؟نافذة")
        assert report.score == 91
        assert report.issues == ["Punctuation spacing issues"]

    def test_mixed_script_boundaries(self):
        report = self.scorer.score("abcكتاب defقلم ghiباب")
        assert report.score == 94
        assert report.issues == ["Mixed script boundary issues"]

    def test_very_short_text(self):
        report = self.scorer.score("كتاب")
        assert report.score == 80
        assert report.issues == ["Very short text extracted"]
        assert report.suggestions == ["Ensure image contains readable text"]

    def test_no_arabic_words_when_requested(self):
        report = self.scorer.score("٢٠٢٤ 2024 report")
        assert report.score == 70
        assert report.issues == ["No Arabic words found"]

    def test_no_arabic_words_not_requested(self):
        report = self.scorer.score("٢٠٢٤ 2024 report", target_script_requested=False)
        assert report.score == 100

    def test_score_clamped_at_zero(self):
        report = self.scorer.score(" ".join(["ا ب ت"] * 25))
        assert report.score == 0.0
        assert "Many broken words detected" in report.issues

    @pytest.mark.parametrize(
        "text",
        ["", "abc", NEWS_ARTICLE, NOISY_OCR_TEXT, "كتاب.قلم،باب؟نافذة abcد"],
    )
    def test_score_within_range(self, text):
        assert 0 <= self.scorer.score(text).score <= 100


class TestQualityReport:
    def test_acceptable(self):
        assert QualityReport(score=80).is_acceptable is True
        assert QualityReport(score=40).is_acceptable is False

    def test_to_dict(self):
        report = QualityReport(score=75, issues=["a"], suggestions=["b"])
        assert report.to_dict() == {"score": 75, "issues": ["a"], "suggestions": ["b"]}
