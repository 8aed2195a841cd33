"""
Quality scoring of extracted Arabic text.
"""

from arabic_text_extractor.quality.scorer import QualityReport, QualityScorer

__all__ = ["QualityScorer", "QualityReport"]
