"""
Arabic-specific OCR post-processing.

Fixes common OCR errors in Arabic text:
- Presentation forms, alef/yeh variants and stripped-off diacritics
- Western digits inside Arabic sentences
- Punctuation glued to or floating away from words
- Lines and words broken apart by the recognizer
- Misread lam-alef and Allah ligatures
- Near-miss spellings of very common words

Every stage is an ordered rule table or a small pure function, and
``enhance`` is idempotent: running it on its own output changes nothing.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Iterable, Optional

from arabic_text_extractor.utils import (
    ARABIC_LETTERS,
    CHARACTER_UNIFICATION,
    Rule,
    apply_rules,
    is_arabic_letter,
    normalize_arabic,
    unify_characters,
)

logger = logging.getLogger(__name__)

A = ARABIC_LETTERS
PUNCTUATION = r'.,:;!?،؛؟'

COMMON_ARABIC_WORDS = (
    'في', 'من', 'إلى', 'على', 'هذا', 'هذه', 'التي', 'الذي', 'كان', 'كانت',
    'يكون', 'تكون', 'له', 'لها', 'لم', 'لن', 'قد', 'كل', 'بعض', 'عند',
    'عندما', 'حيث', 'حين', 'بين', 'خلال', 'أثناء', 'بعد', 'قبل', 'مع',
    'ضد', 'نحو', 'تجاه', 'حول', 'دون', 'سوى', 'غير', 'إلا', 'لكن',
    'أو', 'أم', 'لا', 'ما', 'لماذا', 'كيف', 'أين', 'متى', 'ماذا',
    'الله', 'رب', 'إسلام', 'مسلم', 'عربي', 'عرب', 'بلد', 'دولة', 'مدينة',
    'قرية', 'بيت', 'منزل', 'مكتب', 'مدرسة', 'جامعة', 'مستشفى', 'مطار',
    'محطة', 'سوق', 'متجر', 'مطعم', 'فندق', 'شارع', 'طريق', 'جسر', 'نهر',
    'بحر', 'جبل', 'صحراء', 'غابة', 'حديقة', 'ميدان', 'ساحة', 'مسجد',
    'كنيسة', 'معبد', 'مكتبة', 'متحف', 'مسرح', 'سينما', 'ملعب', 'حمام',
    'مطبخ', 'غرفة', 'صالة', 'شرفة', 'موقف', 'مرآب', 'مصعد',
)

# Two-letter function words that OCR often splits into two standalone letters
TWO_LETTER_WORDS = frozenset({
    'من', 'في', 'عن', 'ما', 'لا', 'لم', 'لن', 'قد', 'هو', 'هي', 'كل', 'له', 'مع', 'او', 'ان',
})

ARABIC_PUNCTUATION_MAP = {
    ',': '،',   # Latin comma → Arabic comma
    ';': '؛',   # Latin semicolon → Arabic semicolon
    '?': '؟',   # Latin question mark → Arabic question mark
}

PERSIAN_TO_ARABIC_DIGITS = {0x06F0 + i: 0x0660 + i for i in range(10)}
WESTERN_TO_ARABIC_DIGITS = {0x30 + i: 0x0660 + i for i in range(10)}


def _join_letters(match: re.Match) -> str:
    return match.group(0).replace(' ', '')


def _join_two_letter_word(match: re.Match) -> str:
    word = match.group(1) + match.group(2)
    return word if word in TWO_LETTER_WORDS else match.group(0)


def _arabic_punctuation(match: re.Match) -> str:
    return ARABIC_PUNCTUATION_MAP[match.group(1)]


CHARACTER_RULES: list[Rule] = CHARACTER_UNIFICATION + [
    (re.compile(r'\r\n?'), '\n'),
    (re.compile(r'[\t\u00A0\u2000-\u200A\u202F\u205F\u3000]'), ' '),
    (re.compile(r'[|~`¦]'), ''),
    (re.compile(r'[\u201C\u201D\u201E\u201F]'), '"'),
    (re.compile(r'[\u2018\u2019\u201A\u201B]'), "'"),
    # OCR reads a floating hamza as an apostrophe
    (re.compile(f"(?<=[{A}])'(?=[{A}])"), 'ء'),
]

PUNCTUATION_RULES: list[Rule] = [
    (re.compile(f'(?<=[{A}])\\s+(?=[{PUNCTUATION}])'), ''),
    (re.compile(f'(?<=[{A}])([,;?])(?=\\s*(?:[{A}]|$))'), _arabic_punctuation),
    (re.compile(f'(?<=[{PUNCTUATION}])[ ]*(?=[{A}])'), ' '),
    (re.compile(f'(?<=[{PUNCTUATION}]) {{2,}}'), ' '),
    (re.compile(r' {3,}'), '  '),
    (re.compile(r' {2,}'), ' '),
]

LINE_RULES: list[Rule] = [
    (re.compile(r'^[ ]+|[ ]+$', re.MULTILINE), ''),
    (re.compile(r'\n{3,}'), '\n\n'),
    # Latin words hyphenated across a line end
    (re.compile(r'([A-Za-z])-\n(?=[A-Za-z])'), r'\1'),
    (re.compile(r'(?<!\n)\n(?!\n)'), ' '),
]

WORD_BOUNDARY_RULES: list[Rule] = [
    # ا ل ع ر ب ي ة → العربية
    (re.compile(f'(?<!\\S)[{A}](?: [{A}]){{2,}}(?!\\S)'), _join_letters),
    # ا ل → ال
    (re.compile(r'(?<!\S)ا ل(?!\S)'), 'ال'),
    # ال كتاب → الكتاب
    (re.compile(f'(?<!\\S)ال (?=[{A}]{{2}})'), 'ال'),
    # م ن → من
    (re.compile(f'(?<!\\S)([{A}]) ([{A}])(?!\\S)'), _join_two_letter_word),
    # و ب الكتاب → وبالكتاب
    (re.compile(f'(?<!\\S)((?:[وفبلك] )+)(?=[{A}]{{2}})'), _join_letters),
]

LIGATURE_RULES: list[Rule] = [
    (re.compile(r'لاا+'), 'لا'),
    (re.compile(f'(?<![{A}])([وفب]?)اللة(?![{A}])'), r'\1الله'),
    (re.compile(f'(?<![{A}])([وف]?)للة(?![{A}])'), r'\1لله'),
]

_ARABIC_RUN = re.compile(f'[{A}]{{2,}}')
_ARABIC_SEGMENT = re.compile(f'[{A}](?:[{A}\\s]*[{A}])?')
_WESTERN_DIGITS = re.compile(r'[0-9]+')


def arabic_similarity(word1: str, word2: str) -> float:
    """Position-wise character match ratio after normalization (0.95 when only variants differ)."""
    if word1 == word2:
        return 1.0
    if not word1 or not word2:
        return 0.0
    norm1 = normalize_arabic(word1)
    norm2 = normalize_arabic(word2)
    if norm1 == norm2:
        return 0.95
    matches = sum(1 for a, b in zip(norm1, norm2) if a == b)
    return matches / max(len(norm1), len(norm2))


def load_dictionary(path: str) -> list[str]:
    """Read one word per line, ignoring blanks and # comments."""
    words = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            words.append(line)
    return words


def extract_arabic_segments(text: str) -> list[str]:
    """Return the runs of Arabic words in mixed-script text."""
    return [m.group(0).strip() for m in _ARABIC_SEGMENT.finditer(text)]


class ArabicTextEnhancer:
    """
    Post-processes OCR output to fix Arabic-specific errors.

    Pipeline:
    1. Unify character forms (presentation forms, alef/yeh variants, marks)
    2. Convert digits to Arabic-Indic inside Arabic text
    3. Normalize punctuation and spacing
    4. Repair line breaks
    5. Rejoin words split into letters, split articles and prefixes
    6. Correct misread ligatures
    7. Replace near-miss spellings of common words

    A stage that fails is skipped and the text reached so far is kept.
    """

    SIMILARITY_THRESHOLD = 0.7
    MAX_LENGTH_DIFFERENCE = 2

    def __init__(
        self,
        dictionary: Optional[Iterable[str]] = None,
        enable_dictionary_correction: bool = True,
    ):
        words = COMMON_ARABIC_WORDS if dictionary is None else dictionary
        # Dictionary entries go through the same unification as the text
        self.dictionary = tuple(dict.fromkeys(
            unify_characters(w.strip()) for w in words if w and w.strip()
        ))
        self._known = frozenset(self.dictionary)
        self.enable_dictionary_correction = enable_dictionary_correction
        self.stages: list[tuple[str, Callable[[str], str]]] = [
            ("characters", self.unify_characters),
            ("digits", self.correct_digits),
            ("punctuation", self.normalize_punctuation),
            ("line_breaks", self.repair_line_breaks),
            ("word_boundaries", self.repair_word_boundaries),
            ("ligatures", self.correct_ligatures),
        ]
        if enable_dictionary_correction:
            self.stages.append(("dictionary", self.correct_words))

    @classmethod
    def from_file(cls, path: str, **kwargs) -> "ArabicTextEnhancer":
        return cls(dictionary=load_dictionary(path), **kwargs)

    def enhance(self, text: str) -> str:
        """
        Run the full enhancement pipeline on OCR text.

        Args:
            text: Raw OCR output text.

        Returns:
            Cleaned and corrected text.
        """
        if not text or not text.strip():
            return ""

        for name, stage in self.stages:
            try:
                text = stage(text)
            except Exception as e:
                logger.warning("Enhancement stage %s failed, keeping previous text: %s", name, e)

        return text.strip()

    def unify_characters(self, text: str) -> str:
        return apply_rules(text, CHARACTER_RULES)

    def correct_digits(self, text: str) -> str:
        """
        Persian digits always become Arabic-Indic. Western digit runs do
        only when the nearest letter on each side is Arabic or absent,
        and at least one of them is Arabic.
        """
        text = text.translate(PERSIAN_TO_ARABIC_DIGITS)

        def convert(match: re.Match) -> str:
            left = self._nearest_letter(text, match.start() - 1, -1)
            right = self._nearest_letter(text, match.end(), 1)
            if "other" in (left, right) or "arabic" not in (left, right):
                return match.group(0)
            return match.group(0).translate(WESTERN_TO_ARABIC_DIGITS)

        return _WESTERN_DIGITS.sub(convert, text)

    @staticmethod
    def _nearest_letter(text: str, index: int, step: int) -> Optional[str]:
        while 0 <= index < len(text):
            char = text[index]
            if is_arabic_letter(char):
                return "arabic"
            if char.isalpha():
                return "other"
            index += step
        return None

    def normalize_punctuation(self, text: str) -> str:
        return apply_rules(text, PUNCTUATION_RULES)

    def repair_line_breaks(self, text: str) -> str:
        return apply_rules(text, LINE_RULES).strip()

    def repair_word_boundaries(self, text: str) -> str:
        # Each rewrite removes a space, so repeating until stable terminates
        while True:
            repaired = apply_rules(text, WORD_BOUNDARY_RULES)
            if repaired == text:
                return text
            text = repaired

    def correct_ligatures(self, text: str) -> str:
        return apply_rules(text, LIGATURE_RULES)

    def correct_words(self, text: str) -> str:
        def replace(match: re.Match) -> str:
            word = match.group(0)
            if word in self._known:
                return word
            return self.closest_word(word) or word

        return _ARABIC_RUN.sub(replace, text)

    def closest_word(self, word: str) -> Optional[str]:
        """Best dictionary match above the similarity threshold; list order breaks ties."""
        if len(word) < 2:
            return None
        best_match = None
        best_score = 0.0
        for candidate in self.dictionary:
            if abs(len(candidate) - len(word)) > self.MAX_LENGTH_DIFFERENCE:
                continue
            score = arabic_similarity(word, candidate)
            if score > best_score and score > self.SIMILARITY_THRESHOLD:
                best_score = score
                best_match = candidate
        return best_match
