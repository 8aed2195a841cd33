"""
Main pipeline for Arabic text extraction.

This is the primary entry point that ties together:
1. Image variants → multi-strategy recognition
2. Arabic text enhancement
3. Quality scoring (diagnostic only)
4. PDF page rendering, output formatting and reporting
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from arabic_text_extractor.config import ExtractionConfig
from arabic_text_extractor.display import shape_for_display
from arabic_text_extractor.ocr.engine import RecognitionAdapter
from arabic_text_extractor.ocr.postprocessor import ArabicTextEnhancer
from arabic_text_extractor.ocr.preprocessor import ImageVariantGenerator, RawImage, render_pdf_page
from arabic_text_extractor.ocr.strategy import CancellationToken, OrchestrationResult, StrategyOrchestrator
from arabic_text_extractor.quality.scorer import QualityReport, QualityScorer

logger = logging.getLogger(__name__)

ConfigLike = Union[ExtractionConfig, Mapping[str, Any]]


def coerce_config(config: Optional[ConfigLike]) -> ExtractionConfig:
    """Accept an ExtractionConfig or a plain mapping; validate either way."""
    if config is None:
        config = ExtractionConfig()
    elif not isinstance(config, ExtractionConfig):
        config = ExtractionConfig.from_dict(config)
    config.validate()
    return config


@dataclass
class ExtractionResult:
    """Final text of one image plus the diagnostics of how it was obtained."""
    text: str
    raw_text: str
    confidence: float
    strategy: str
    languages: list[str] = field(default_factory=list)
    quality: Optional[QualityReport] = None
    attempts: list[dict] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    stages: list[str] = field(default_factory=list)
    cancelled: bool = False
    display_text: Optional[str] = None
    processing_time_seconds: float = 0.0

    @property
    def is_successful(self) -> bool:
        return bool(self.text)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "raw_text": self.raw_text,
            "confidence": self.confidence,
            "strategy": self.strategy,
            "languages": self.languages,
            "quality": self.quality.to_dict() if self.quality else None,
            "attempts": self.attempts,
            "skipped": self.skipped,
            "stages": self.stages,
            "cancelled": self.cancelled,
            "processing_time_seconds": self.processing_time_seconds,
        }


@dataclass
class PageResult:
    """Result for a single PDF page."""
    page_number: int
    text: str
    confidence: float
    strategy: str
    quality_score: float = 0.0
    issues: list[str] = field(default_factory=list)
    error: Optional[str] = None
    processing_time_seconds: float = 0.0


@dataclass
class DocumentResult:
    """Complete result for an entire PDF document."""
    source_file: str
    total_pages: int
    pages: list[PageResult] = field(default_factory=list)
    full_text: str = ""
    total_processing_time: float = 0.0
    summary: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to a serializable dictionary."""
        return {
            "source_file": self.source_file,
            "total_pages": self.total_pages,
            "pages": [
                {
                    "page_number": p.page_number,
                    "text": p.text,
                    "confidence": p.confidence,
                    "strategy": p.strategy,
                    "quality_score": p.quality_score,
                    "issues": p.issues,
                    "error": p.error,
                    "processing_time_seconds": p.processing_time_seconds,
                }
                for p in self.pages
            ],
            "full_text": self.full_text,
            "total_processing_time": self.total_processing_time,
            "summary": self.summary,
        }


class ArabicTextExtractor:
    """
    Complete Arabic text extraction pipeline.

    Usage:
        extractor = ArabicTextExtractor({"maxPreprocessingAttempts": 2})
        result = extractor.extract(Path("scan.png").read_bytes())
        print(result.text, result.confidence, result.strategy)
    """

    def __init__(
        self,
        config: Optional[ConfigLike] = None,
        adapter: Optional[RecognitionAdapter] = None,
        enhancer: Optional[ArabicTextEnhancer] = None,
        scorer: Optional[QualityScorer] = None,
    ):
        self.config = coerce_config(config)
        self.adapter = adapter or RecognitionAdapter.from_config(self.config.recognition)
        self.enhancer = enhancer or self._build_enhancer(self.config)
        self.scorer = scorer or QualityScorer()

        logger.info(
            "ArabicTextExtractor initialized: engine %s, languages %s",
            self.adapter.backend.name,
            "+".join(self.config.languages),
        )

    @staticmethod
    def _build_enhancer(config: ExtractionConfig) -> ArabicTextEnhancer:
        if config.dictionary_path:
            return ArabicTextEnhancer.from_file(
                config.dictionary_path,
                enable_dictionary_correction=config.enable_dictionary_correction,
            )
        return ArabicTextEnhancer(enable_dictionary_correction=config.enable_dictionary_correction)

    def _components_for(self, config: ExtractionConfig) -> tuple[RecognitionAdapter, ArabicTextEnhancer]:
        """Adapter and enhancer matching a per-call config; rebuilt only where its settings differ."""
        adapter = self.adapter
        if config.recognition != self.config.recognition:
            adapter = RecognitionAdapter.from_config(config.recognition)
        enhancer = self.enhancer
        if (config.enable_dictionary_correction, config.dictionary_path) != (
            self.config.enable_dictionary_correction,
            self.config.dictionary_path,
        ):
            enhancer = self._build_enhancer(config)
        return adapter, enhancer

    def extract(
        self,
        image: bytes,
        languages: Optional[Sequence[str]] = None,
        config: Optional[ConfigLike] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        """
        Extract text from an encoded image.

        Args:
            image: Encoded image bytes (PNG, JPEG, TIFF, ...).
            languages: Language codes; defaults to the configured languages.
            config: Per-call configuration replacing the extractor's own.
            cancellation: Optional stop signal checked before every attempt.

        Returns:
            ExtractionResult. An image nothing could be read from gives
            empty text, confidence 0 and strategy "none".

        Raises:
            ConfigurationError: the configuration is malformed.
        """
        start_time = time.time()
        config = coerce_config(config) if config is not None else self.config
        languages = list(languages or config.languages)
        adapter, enhancer = self._components_for(config)

        orchestrator = StrategyOrchestrator(
            adapter,
            ImageVariantGenerator.from_config(config),
            config,
        )
        outcome = orchestrator.run(RawImage.from_bytes(image), languages, cancellation)

        raw_text = outcome.text
        text = enhancer.enhance(raw_text)
        quality = self.scorer.score(text, config.requests_target_script(languages))

        result = ExtractionResult(
            text=text,
            raw_text=raw_text,
            confidence=outcome.confidence,
            strategy=outcome.strategy,
            languages=languages,
            quality=quality,
            attempts=self._attempt_log(outcome),
            skipped=[
                {"strategy": s.strategy, "stage": s.stage.value, "reason": s.reason}
                for s in outcome.skipped
            ],
            stages=[s.value for s in outcome.stages],
            cancelled=outcome.cancelled,
            processing_time_seconds=time.time() - start_time,
        )
        if config.shape_for_display:
            result.display_text = shape_for_display(text)

        logger.info(
            "Extraction complete: %d chars, confidence %.1f via %s, quality %.0f, %.1fs",
            len(text),
            result.confidence,
            result.strategy,
            quality.score,
            result.processing_time_seconds,
        )
        return result

    def extract_text(
        self,
        image: bytes,
        languages: Optional[Sequence[str]] = None,
        config: Optional[ConfigLike] = None,
    ) -> str:
        """Extract and return only the final text."""
        return self.extract(image, languages, config).text

    def extract_file(self, path: str, languages: Optional[Sequence[str]] = None) -> ExtractionResult:
        path = str(Path(path).resolve())
        if not os.path.exists(path):
            raise FileNotFoundError(f"Image file not found: {path}")
        return self.extract(Path(path).read_bytes(), languages)

    def extract_pdf(
        self,
        pdf_path: str,
        pages: Optional[list[int]] = None,
        dpi: int = 300,
        languages: Optional[Sequence[str]] = None,
        output_path: Optional[str] = None,
    ) -> DocumentResult:
        """
        Extract text from every requested page of a PDF.

        Args:
            pdf_path: Path to the PDF file.
            pages: Optional list of page numbers (0-indexed). All pages if None.
            dpi: Rendering resolution.
            languages: Language codes; defaults to the configured languages.
            output_path: Optional path to save the result (.txt, .json or .md).

        Returns:
            DocumentResult with per-page text and a summary.
        """
        start_time = time.time()
        pdf_path = str(Path(pdf_path).resolve())

        if not os.path.exists(pdf_path):
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")

        logger.info("Starting extraction of: %s", pdf_path)

        try:
            import fitz
        except ImportError:
            raise ImportError("PyMuPDF required: pip install PyMuPDF")
        with fitz.open(pdf_path) as doc:
            total_pages = len(doc)

        if pages is None:
            pages = list(range(total_pages))
        else:
            pages = [p for p in pages if 0 <= p < total_pages]

        logger.info("Processing %d pages out of %d total", len(pages), total_pages)

        result = DocumentResult(source_file=pdf_path, total_pages=total_pages)

        for page_num in pages:
            page_result = self._process_page(pdf_path, page_num, dpi, languages)
            result.pages.append(page_result)
            logger.info(
                "Page %d/%d complete: %s, confidence %.1f, %.1fs",
                page_num + 1,
                total_pages,
                page_result.strategy,
                page_result.confidence,
                page_result.processing_time_seconds,
            )

        result.full_text = "\n\n".join(
            f"--- Page {p.page_number + 1} ---\n{p.text}"
            for p in result.pages
            if p.text
        )
        result.total_processing_time = time.time() - start_time
        result.summary = self._generate_summary(result)

        logger.info(
            "Extraction complete: %d pages, %.1fs total",
            len(result.pages),
            result.total_processing_time,
        )

        if output_path:
            save_output(result, output_path)

        return result

    def _process_page(
        self,
        pdf_path: str,
        page_num: int,
        dpi: int,
        languages: Optional[Sequence[str]],
    ) -> PageResult:
        page_start = time.time()
        try:
            image = render_pdf_page(pdf_path, page_num, dpi=dpi)
        except (ValueError, RuntimeError, OSError) as e:
            logger.error("Failed to render page %d: %s", page_num, e)
            return PageResult(
                page_number=page_num,
                text="",
                confidence=0.0,
                strategy="error",
                error=f"Error rendering page: {e}",
                processing_time_seconds=time.time() - page_start,
            )

        extraction = self.extract(image, languages)
        if not extraction.text:
            logger.warning("Page %d: no text extracted", page_num)

        return PageResult(
            page_number=page_num,
            text=extraction.text,
            confidence=extraction.confidence,
            strategy=extraction.strategy,
            quality_score=extraction.quality.score if extraction.quality else 0.0,
            issues=list(extraction.quality.issues) if extraction.quality else [],
            processing_time_seconds=time.time() - page_start,
        )

    @staticmethod
    def _attempt_log(outcome: OrchestrationResult) -> list[dict]:
        return [
            {
                "strategy": a.strategy,
                "stage": a.stage.value,
                "languages": list(a.languages),
                "parameters": a.parameters.describe(),
                "confidence": a.confidence,
                "chars": len(a.text),
                "error": a.error,
                "language_fallback": a.language_fallback,
                "preprocessing_seconds": a.preprocessing_seconds,
                "recognition_seconds": a.recognition_seconds,
            }
            for a in outcome.attempts
        ]

    def _generate_summary(self, result: DocumentResult) -> dict:
        """Generate a processing summary."""
        strategies_used: dict[str, int] = {}
        total_confidence = 0.0
        pages_with_text = 0

        for page in result.pages:
            if page.text:
                strategies_used[page.strategy] = strategies_used.get(page.strategy, 0) + 1
                total_confidence += page.confidence
                pages_with_text += 1

        return {
            "total_pages_processed": len(result.pages),
            "pages_with_text": pages_with_text,
            "average_confidence": (
                total_confidence / pages_with_text if pages_with_text > 0 else 0
            ),
            "strategies_used": strategies_used,
            "total_characters": sum(len(p.text) for p in result.pages),
            "total_processing_time_seconds": result.total_processing_time,
            "average_time_per_page": (
                result.total_processing_time / len(result.pages)
                if result.pages
                else 0
            ),
        }


def save_output(result: Union[DocumentResult, ExtractionResult], output_path: str) -> None:
    """Save an extraction result as .json, .md or plain text."""
    output_path = str(Path(output_path).resolve())
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

    if output_path.endswith(".json"):
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)
    elif output_path.endswith(".md"):
        with open(output_path, "w", encoding="utf-8") as f:
            if isinstance(result, DocumentResult):
                f.write(f"# Extracted text: {os.path.basename(result.source_file)}\n\n")
                for page in result.pages:
                    f.write(f"## Page {page.page_number + 1}\n\n")
                    f.write(f"{page.text or page.error or ''}\n\n")
                    f.write(f"*Strategy: {page.strategy} | ")
                    f.write(f"OCR confidence: {page.confidence:.1f} | ")
                    f.write(f"Quality: {page.quality_score:.0f}*\n\n")
                f.write("---\n\n")
                f.write(f"**Processing summary:** {json.dumps(result.summary, indent=2)}\n")
            else:
                f.write("# Extracted text\n\n")
                f.write(f"{result.text}\n\n")
                f.write(f"*Strategy: {result.strategy} | OCR confidence: {result.confidence:.1f}*\n")
    else:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(result.full_text if isinstance(result, DocumentResult) else result.text)

    logger.info("Output saved to: %s", output_path)


def extract_text(
    image: bytes,
    languages: Optional[Sequence[str]] = None,
    config: Optional[ConfigLike] = None,
) -> str:
    """
    One-shot extraction with a default engine.

    Args:
        image: Encoded image bytes.
        languages: Language codes such as ["ara"] or ["ara", "eng"].
        config: ExtractionConfig or a mapping such as
            {"maxPreprocessingAttempts": 3, "enableAdvancedPreprocessing": True}.
    """
    return ArabicTextExtractor(config).extract_text(image, languages)
