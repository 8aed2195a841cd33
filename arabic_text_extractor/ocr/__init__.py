"""
OCR subsystem for Arabic text extraction from document images.

Image variants tuned for Arabic script, a recognition adapter over
pluggable engines, strategy orchestration and text enhancement.
"""

from arabic_text_extractor.ocr.postprocessor import ArabicTextEnhancer


def __getattr__(name: str):
    if name in ("ImageVariantGenerator", "RawImage"):
        from arabic_text_extractor.ocr import preprocessor
        return getattr(preprocessor, name)
    if name in ("RecognitionAdapter", "RecognitionParameters"):
        from arabic_text_extractor.ocr import engine
        return getattr(engine, name)
    if name in ("StrategyOrchestrator", "CancellationToken"):
        from arabic_text_extractor.ocr import strategy
        return getattr(strategy, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ArabicTextEnhancer",
    "CancellationToken",
    "ImageVariantGenerator",
    "RawImage",
    "RecognitionAdapter",
    "RecognitionParameters",
    "StrategyOrchestrator",
]
