"""
Search normalization: index text and FTS5 query expressions for Arabic.
"""

from arabic_text_extractor.search.normalizer import (
    highlight_matches,
    index_tokens,
    normalize_for_index,
    prepare_query,
    suggest_terms,
)

__all__ = [
    "highlight_matches",
    "index_tokens",
    "normalize_for_index",
    "prepare_query",
    "suggest_terms",
]
