"""
Search normalization for Arabic text.

Index-time and query-time text go through the same folding, so that a
query typed without hamza, diacritics or taa marbuta still finds the
stored word. The output is plain text and FTS5 query strings; the index
itself belongs to the caller.
"""

import logging
import re
from typing import Iterable, Optional

from arabic_text_extractor.utils import DIACRITICS, TATWEEL, contains_arabic, unify_characters

logger = logging.getLogger(__name__)

PREFIXES = ('ال', 'و', 'ف', 'ب', 'ل', 'ك')
SUFFIXES = ('ها', 'ان', 'ات', 'ون', 'ين')

MIN_VARIANT_LENGTH = 2
MIN_EXPANDABLE_LENGTH = 3
MAX_SUGGESTIONS = 10

SEARCH_FOLDING = [
    (re.compile('ة'), 'ه'),
    (re.compile('[ؤئ]'), 'ء'),
    (re.compile('[،؛؟]'), ' '),
]

_PREFIX = re.compile(f"^(?:{'|'.join(PREFIXES)})")
_SUFFIX = re.compile(f"(?:{'|'.join(SUFFIXES)})$")
_WHITESPACE = re.compile(r'\s+')

# Letters that fold together, so a normalized term matches every written form
_EQUIVALENT_LETTERS = {
    'ا': 'اأإآٱ',
    'ي': 'يى',
    'ه': 'هة',
    'ء': 'ءؤئ',
}
_MARKS = f'[{DIACRITICS}{TATWEEL}]*'


def fold(text: str) -> str:
    """Shared unification plus search folding, lowercased, single-spaced."""
    text = unify_characters(text)
    for pattern, replacement in SEARCH_FOLDING:
        text = pattern.sub(replacement, text)
    return _WHITESPACE.sub(' ', text).strip().lower()


def strip_prefix(token: str) -> Optional[str]:
    stripped = _PREFIX.sub('', token, count=1)
    if stripped != token and len(stripped) >= MIN_VARIANT_LENGTH:
        return stripped
    return None


def strip_suffix(token: str) -> Optional[str]:
    stripped = _SUFFIX.sub('', token, count=1)
    if stripped != token and len(stripped) >= MIN_VARIANT_LENGTH:
        return stripped
    return None


def affix_variants(token: str) -> list[str]:
    """
    Every form reachable by repeatedly stripping one prefix or one suffix.

    Only Arabic tokens of at least three letters are expanded, and no
    variant is shorter than two letters.
    """
    variants: list[str] = []
    pending = [token]
    seen = {token}
    while pending:
        current = pending.pop(0)
        if len(current) < MIN_EXPANDABLE_LENGTH or not contains_arabic(current):
            continue
        for stripped in (strip_prefix(current), strip_suffix(current)):
            if stripped and stripped not in seen:
                seen.add(stripped)
                variants.append(stripped)
                pending.append(stripped)
    return variants


def index_tokens(text: str) -> list[str]:
    """Folded tokens followed by their affix variants, without duplicates."""
    tokens = fold(text).split()
    result = dict.fromkeys(tokens)
    for token in tokens:
        for variant in affix_variants(token):
            result.setdefault(variant)
    return list(result)


def normalize_for_index(text: str) -> str:
    """
    Text to store in the full-text index.

    The folded text keeps its word order; affix variants not already
    present are appended after it. Applying it twice gives the same result.
    """
    folded = fold(text)
    if not folded:
        return ''
    tokens = folded.split()
    present = set(tokens)
    extra = [t for t in index_tokens(folded) if t not in present]
    return ' '.join([folded] + extra)


def _quote(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


def prepare_query(query: str) -> str:
    """
    Build an FTS5 MATCH expression for a user query.

    Examples:
        الكتاب      → "الكتاب" OR "الكتاب"* OR "كتاب" OR "كتاب"*
        report      → "report"*
        كتاب جديد   → ("كتاب جديد") OR (("كتاب"* OR "كتاب") AND ("جديد"* OR "جديد"))
    """
    normalized = fold(query or '')
    if not normalized:
        return ''

    tokens = list(dict.fromkeys(normalized.split()))

    if len(tokens) == 1:
        token = tokens[0]
        if not contains_arabic(token):
            return f'{_quote(token)}*'
        clauses = [_quote(token), f'{_quote(token)}*']
        if len(token) >= MIN_EXPANDABLE_LENGTH:
            for variant in (strip_prefix(token), strip_suffix(token)):
                if variant:
                    clauses.extend([_quote(variant), f'{_quote(variant)}*'])
        return ' OR '.join(dict.fromkeys(clauses))

    per_token = []
    for token in tokens:
        if contains_arabic(token):
            per_token.append(f'({_quote(token)}* OR {_quote(token)})')
        else:
            per_token.append(f'{_quote(token)}*')
    return f"({_quote(normalized)}) OR ({' AND '.join(per_token)})"


def _term_pattern(term: str) -> str:
    parts = []
    for char in term:
        letters = _EQUIVALENT_LETTERS.get(char)
        if letters is not None:
            parts.append(f'[{letters}]{_MARKS}')
        elif contains_arabic(char):
            parts.append(f'{re.escape(char)}{_MARKS}')
        elif char == ' ':
            parts.append(r'\s+')
        else:
            parts.append(re.escape(char))
    return ''.join(parts)


def highlight_matches(text: str, terms: Iterable[str]) -> str:
    """
    Wrap occurrences of the search terms in <mark> tags.

    Matching tolerates diacritics, tatweel and the letter variants folded
    at index time, so the marked span is the text as originally written.
    """
    patterns = []
    for term in terms:
        normalized = fold(term or '')
        if normalized:
            patterns.append(normalized)
    if not text or not patterns:
        return text

    # Longest first so a term is not cut short by one of its prefixes
    patterns = sorted(set(patterns), key=len, reverse=True)
    combined = re.compile('|'.join(_term_pattern(p) for p in patterns), re.IGNORECASE)
    return combined.sub(lambda m: f'<mark>{m.group(0)}</mark>', text)


def suggest_terms(query: str, existing_terms: Iterable[str], limit: int = MAX_SUGGESTIONS) -> list[str]:
    """
    Suggest search terms for an Arabic query.

    Existing terms containing the query (or contained in it) come first,
    then the query tokens with each common prefix and suffix attached.
    """
    normalized = fold(query or '')
    if not normalized or not contains_arabic(normalized):
        return []

    suggestions: dict[str, None] = {}
    for term in existing_terms:
        folded = fold(term)
        if folded and (normalized in folded or folded in normalized):
            suggestions.setdefault(term)

    for token in index_tokens(normalized):
        if len(token) < MIN_EXPANDABLE_LENGTH:
            continue
        for prefix in PREFIXES:
            suggestions.setdefault(prefix + token)
        for suffix in SUFFIXES:
            suggestions.setdefault(token + suffix)

    return list(suggestions)[:limit]
