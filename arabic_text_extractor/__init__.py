"""
Arabic Text Extractor
=====================

Turns scanned Arabic document images into clean, searchable text.

Architecture:
    Image → Preprocessing Variants → Multi-Strategy Recognition
        → Arabic Text Enhancement → Quality Scoring → Final Text

Recognition strategies, in order:
    1. Arabic-tuned preprocessing variants
    2. Original image
    3. Alternative page segmentation modes
    4. Language combinations
    5. Alternative engine modes

Search support:
    - Index-time normalization with affix variants
    - FTS5 query expressions, highlighting and suggestions
"""

__version__ = "1.0.0"

from arabic_text_extractor.config import ExtractionConfig, RecognitionConfig
from arabic_text_extractor.exceptions import ConfigurationError, ExtractionError


def __getattr__(name: str):
    """Lazy import for heavy modules that require numpy/cv2."""
    if name in ("ArabicTextExtractor", "ExtractionResult", "extract_text"):
        from arabic_text_extractor import pipeline
        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ArabicTextExtractor",
    "ExtractionResult",
    "extract_text",
    "ExtractionConfig",
    "RecognitionConfig",
    "ConfigurationError",
    "ExtractionError",
]
