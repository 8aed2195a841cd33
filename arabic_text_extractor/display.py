"""
Visual shaping of Arabic text for terminals and renderers without bidi support.

Stored and indexed text always stays in logical order; shaping is only for
display. The shaping libraries are optional: when they are missing,
``shape_for_display`` returns the text unchanged.
"""

import logging

from arabic_text_extractor.utils import contains_arabic

logger = logging.getLogger(__name__)

try:
    import arabic_reshaper
    from bidi.algorithm import get_display
    DISPLAY_SHAPING_AVAILABLE = True
except ImportError:
    DISPLAY_SHAPING_AVAILABLE = False


def shape_for_display(text: str) -> str:
    """Reshape letters into their joined forms and reorder each line visually."""
    if not DISPLAY_SHAPING_AVAILABLE or not text or not contains_arabic(text):
        return text
    return "\n".join(
        get_display(arabic_reshaper.reshape(line)) if contains_arabic(line) else line
        for line in text.split("\n")
    )
