"""
Text quality scoring for OCR output.

The score is computed from the text alone and is independent of the
engine-reported confidence. It flags the typical signatures of a poor
Arabic recognition:
1. Broken words: runs of standalone single letters
2. Punctuation glued between two Arabic letters
3. Latin and Arabic letters touching without a space
4. Very short output
5. No Arabic words although Arabic was requested
"""

import logging
import re
from dataclasses import dataclass, field

from arabic_text_extractor.utils import ARABIC_LETTERS, contains_arabic

logger = logging.getLogger(__name__)

A = ARABIC_LETTERS

NO_ARABIC_ISSUE = "No Arabic text detected"


@dataclass
class QualityReport:
    """Quality evaluation of one extracted text."""
    score: float  # 0 to 100
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def is_acceptable(self) -> bool:
        return self.score >= QualityScorer.ACCEPTABLE_SCORE

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
        }


class QualityScorer:
    """Start from 100 and subtract a penalty per detected problem, clamped to [0, 100]."""

    ACCEPTABLE_SCORE = 60.0

    BROKEN_WORD_PATTERN = re.compile(f'(?<!\\S)[{A}]\\s+[{A}]\\s+[{A}](?!\\S)')
    PUNCTUATION_PATTERN = re.compile(f'[{A}][.!?,;:،؛؟][{A}]')
    MIXED_SCRIPT_PATTERN = re.compile(f'[a-zA-Z][{A}]|[{A}][a-zA-Z]')
    ARABIC_WORD_PATTERN = re.compile(f'[{A}]')

    def score(self, text: str, target_script_requested: bool = True) -> QualityReport:
        if not contains_arabic(text or ""):
            return QualityReport(
                score=0.0,
                issues=[NO_ARABIC_ISSUE],
                suggestions=["Check the document language or the requested OCR languages"],
            )

        score = 100.0
        issues = []
        suggestions = []

        broken_words = len(self.BROKEN_WORD_PATTERN.findall(text))
        if broken_words > 3:
            score -= broken_words * 5
            issues.append("Many broken words detected")
            suggestions.append("Try higher resolution or better image quality")

        punctuation_errors = len(self.PUNCTUATION_PATTERN.findall(text))
        if punctuation_errors > 2:
            score -= punctuation_errors * 3
            issues.append("Punctuation spacing issues")
            suggestions.append("Check for proper sentence boundaries")

        mixed_issues = len(self.MIXED_SCRIPT_PATTERN.findall(text))
        if mixed_issues > 2:
            score -= mixed_issues * 2
            issues.append("Mixed script boundary issues")
            suggestions.append("May need better language detection")

        if len(text.strip()) < 10:
            score -= 20
            issues.append("Very short text extracted")
            suggestions.append("Ensure image contains readable text")

        if target_script_requested:
            arabic_words = [w for w in text.split() if self.ARABIC_WORD_PATTERN.search(w)]
            if not arabic_words:
                score -= 30
                issues.append("No Arabic words found")
                suggestions.append("Check if image contains Arabic text")

        score = max(0.0, min(100.0, score))
        logger.debug("Quality score %.1f with %d issues", score, len(issues))
        return QualityReport(score=score, issues=issues, suggestions=suggestions)
