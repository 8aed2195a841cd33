"""
Shared helpers for the Arabic text extraction pipeline.

Holds the logging setup, the Arabic character classes and the character
unification rule table used by both the text enhancer and the search
normalizer.
"""

import logging
import re
import unicodedata
from typing import Callable, Union

logger = logging.getLogger(__name__)

# Any character from the Arabic blocks, including presentation forms
ARABIC_RANGE = r'\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF'

# Letters only (no digits, marks, punctuation or tatweel)
ARABIC_LETTERS = (
    r'\u0621-\u063A\u0641-\u064A\u0671-\u06D3\u06D5\u06EE\u06EF'
    r'\u06FA-\u06FC\u06FF\u0750-\u077F\u08A0-\u08C9'
)

DIACRITICS = r'\u0610-\u061A\u064B-\u065F\u0670\u06D6-\u06ED\u08D3-\u08E1\u08E3-\u08FF'
TATWEEL = '\u0640'

# Zero-width characters, bidi controls, BOM, Arabic letter mark, soft hyphen
INVISIBLE = r'\u200B-\u200F\u202A-\u202E\u2066-\u2069\uFEFF\u061C\u00AD'

_ARABIC_CHAR = re.compile(f'[{ARABIC_RANGE}]')
_ARABIC_LETTER = re.compile(f'[{ARABIC_LETTERS}]')

Replacement = Union[str, Callable[[re.Match], str]]
Rule = tuple[re.Pattern, Replacement]


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def apply_rules(text: str, rules: list[Rule]) -> str:
    """Apply an ordered list of (pattern, replacement) rules in sequence."""
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def _presentation_to_base(match: re.Match) -> str:
    return unicodedata.normalize("NFKC", match.group(0))


# Order matters: presentation forms expand into base letters that may carry
# marks, so the mark stripping has to come after the expansion.
CHARACTER_UNIFICATION: list[Rule] = [
    (re.compile(r'[\uFB50-\uFDFF\uFE70-\uFEFC]+'), _presentation_to_base),
    (re.compile(f'[{INVISIBLE}]'), ''),
    (re.compile(f'[{DIACRITICS}]'), ''),
    (re.compile(TATWEEL), ''),
    (re.compile(r'[\u0622\u0623\u0625\u0671\u0672\u0673]'), '\u0627'),  # alef variants → ا
    (re.compile(r'[\u0649\u06CC\u06D0]'), '\u064A'),  # alef maqsura, Farsi yeh → ي
    (re.compile(r'[\u06A9\u06AA]'), '\u0643'),  # keheh → kaf
    (re.compile(r'[\u06C1\u06D5]'), '\u0647'),  # heh goal, ae → heh
]


def unify_characters(text: str) -> str:
    """Map every positional/alternate letter form to one canonical codepoint."""
    return apply_rules(text, CHARACTER_UNIFICATION)


def contains_arabic(text: str) -> bool:
    """Check if text contains any Arabic character."""
    return bool(_ARABIC_CHAR.search(text))


def count_arabic_letters(text: str) -> int:
    return len(_ARABIC_LETTER.findall(text))


def is_arabic_letter(char: str) -> bool:
    return bool(_ARABIC_LETTER.fullmatch(char))


def is_arabic(text: str) -> bool:
    """Check if text is predominantly Arabic."""
    arabic_chars = len(_ARABIC_CHAR.findall(text))
    total_alpha = sum(1 for c in text if c.isalpha())
    if total_alpha == 0:
        return False
    return (arabic_chars / total_alpha) > 0.3


def normalize_arabic(text: str) -> str:
    """
    Normalize Arabic text for comparison purposes.
    Removes diacritics (tashkeel) and normalizes alef/yaa/taa marbuta variants.
    """
    text = re.sub(f'[{DIACRITICS}]', '', text)

    # Normalize alef variants → plain alef
    text = re.sub(r'[\u0622\u0623\u0625\u0671]', '\u0627', text)

    # Normalize alef maqsura → yaa
    text = text.replace('\u0649', '\u064A')

    # Normalize haa → taa marbuta
    text = text.replace('\u0647', '\u0629')

    return text
