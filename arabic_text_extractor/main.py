"""
CLI entry point for Arabic text extraction.

Usage:
    # Extract text from a scanned image
    python -m arabic_text_extractor scan.png

    # Mixed Arabic/English page, more preprocessing attempts
    python -m arabic_text_extractor scan.png --languages ara,eng --max-attempts 5

    # Extract specific PDF pages
    python -m arabic_text_extractor document.pdf --pages 1,3,5-10 --dpi 400

    # Save output in different formats
    python -m arabic_text_extractor document.pdf -o output.json
    python -m arabic_text_extractor document.pdf -o output.md
    python -m arabic_text_extractor document.pdf -o output.txt
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from arabic_text_extractor import __version__
from arabic_text_extractor.config import (
    ExtractionConfig,
    OCREngine,
    RecognitionConfig,
)
from arabic_text_extractor.exceptions import ConfigurationError
from arabic_text_extractor.pipeline import ArabicTextExtractor, save_output
from arabic_text_extractor.utils import setup_logging


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="arabic-text-extractor",
        description=(
            "Arabic Text Extractor: recognize Arabic text in scanned images and PDFs "
            "using multiple preprocessing variants and recognition strategies."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s scan.png
  %(prog)s scan.png --languages ara,eng -o text.md
  %(prog)s document.pdf --pages 1,3,5-10 --dpi 400
  %(prog)s scan.png --threshold variants=90 --threshold original=80

Stages accepted by --threshold:
  variants, original, segmentation, languages, engine_modes

Environment variables:
  TESSERACT_CMD                - Path to the tesseract binary
  TESSDATA_PREFIX              - Directory holding the traineddata files
  ARABIC_OCR_DEFAULT_LANGUAGE  - Fallback language (default: eng)
        """,
    )

    # Required arguments
    parser.add_argument(
        "input_path",
        type=str,
        help="Path to an image (PNG, JPEG, TIFF, ...) or a PDF document",
    )

    # Output options
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="Output file path (.txt, .json, .md). Default: stdout",
    )

    # Recognition options
    parser.add_argument(
        "--languages",
        type=str,
        default="ara",
        help="Language codes (comma- or plus-separated, default: ara)",
    )
    parser.add_argument(
        "--engine",
        type=str,
        choices=[e.value for e in OCREngine],
        default=OCREngine.TESSERACT.value,
        help="Recognition engine (default: tesseract)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=3,
        help="Maximum number of preprocessing variants to try (default: 3)",
    )
    parser.add_argument(
        "--threshold",
        type=str,
        action="append",
        default=[],
        metavar="STAGE=VALUE",
        help="Confidence threshold for a stage, may be repeated",
    )
    parser.add_argument(
        "--variants",
        type=str,
        default=None,
        help="Preprocessing variants in priority order (comma-separated)",
    )
    parser.add_argument(
        "--no-advanced-preprocessing",
        action="store_true",
        help="Skip the preprocessing variants and start from the original image",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop starting new attempts after this many seconds",
    )

    # PDF options
    parser.add_argument(
        "--pages",
        type=str,
        default=None,
        help="PDF pages to extract (comma-separated, 1-indexed). E.g., '1,3,5-10'",
    )
    parser.add_argument(
        "--dpi",
        type=int,
        default=300,
        help="PDF rendering DPI (default: 300, use 400+ for poor quality scans)",
    )

    # Text options
    parser.add_argument(
        "--no-dictionary",
        action="store_true",
        help="Disable common-word correction",
    )
    parser.add_argument(
        "--dictionary",
        type=str,
        default=None,
        help="Word list (one word per line) used for correction",
    )
    parser.add_argument(
        "--shape-output",
        action="store_true",
        help="Print visually shaped text for terminals without bidi support",
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def parse_pages(pages_str: str) -> list[int]:
    """Parse page specification like '1,3,5-10' into a list of 0-indexed page numbers."""
    pages = []
    for part in pages_str.split(","):
        part = part.strip()
        if "-" in part:
            start, end = part.split("-", 1)
            pages.extend(range(int(start) - 1, int(end)))
        else:
            pages.append(int(part) - 1)
    return sorted(set(pages))


def parse_thresholds(values: Sequence[str]) -> dict[str, float]:
    """Parse ['variants=90', 'original=80'] into a stage → threshold mapping."""
    thresholds = {}
    for value in values:
        stage, sep, number = value.partition("=")
        if not sep or not stage.strip():
            raise ConfigurationError(f"Threshold must look like STAGE=VALUE, got {value!r}")
        try:
            thresholds[stage.strip()] = float(number)
        except ValueError:
            raise ConfigurationError(f"Threshold value is not a number: {value!r}") from None
    return thresholds


def build_config(args: argparse.Namespace) -> ExtractionConfig:
    data = {
        "languages": args.languages,
        "maxPreprocessingAttempts": args.max_attempts,
        "confidenceThresholds": parse_thresholds(args.threshold),
        "enableAdvancedPreprocessing": not args.no_advanced_preprocessing,
        "enableDictionaryCorrection": not args.no_dictionary,
        "shape_for_display": args.shape_output,
        "recognition": RecognitionConfig(engine=OCREngine(args.engine)),
    }
    if args.variants:
        data["variants"] = [v.strip() for v in args.variants.split(",") if v.strip()]
    if args.timeout:
        data["deadlineSeconds"] = args.timeout
    if args.dictionary:
        data["dictionaryPath"] = args.dictionary
    return ExtractionConfig.from_dict(data)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    input_path = Path(args.input_path)
    if not input_path.exists():
        print(f"Error: input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Arabic Text Extractor v{__version__}")
    print(f"Input: {input_path}")
    print(f"Languages: {'+'.join(config.languages)}")
    print(f"Engine: {config.recognition.engine.value}")
    print(f"Preprocessing variants: {'enabled' if config.enable_advanced_preprocessing else 'disabled'}")
    print()

    is_pdf = input_path.suffix.lower() == ".pdf"
    pages = parse_pages(args.pages) if args.pages else None

    try:
        extractor = ArabicTextExtractor(config)
        if is_pdf:
            result = extractor.extract_pdf(
                str(input_path),
                pages=pages,
                dpi=args.dpi,
                output_path=args.output,
            )
        else:
            result = extractor.extract_file(str(input_path))
            if args.output:
                save_output(result, args.output)
    except Exception as e:
        print(f"Error during extraction: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    if args.output:
        print(f"\nOutput saved to: {args.output}")
    else:
        print("=" * 70)
        print("EXTRACTED TEXT")
        print("=" * 70)
        if is_pdf:
            print(result.full_text)
        else:
            print(result.display_text if result.display_text is not None else result.text)
        print()

    print("=" * 70)
    print("PROCESSING SUMMARY")
    print("=" * 70)
    if is_pdf:
        summary = result.summary
        print(f"  Pages processed:      {summary.get('total_pages_processed', 0)}")
        print(f"  Pages with text:      {summary.get('pages_with_text', 0)}")
        print(f"  Avg OCR confidence:   {summary.get('average_confidence', 0):.1f}")
        print(f"  Strategies used:      {summary.get('strategies_used', {})}")
        print(f"  Total chars:          {summary.get('total_characters', 0)}")
        print(f"  Total time:           {summary.get('total_processing_time_seconds', 0):.1f}s")
        print(f"  Avg time/page:        {summary.get('average_time_per_page', 0):.1f}s")
        for page in result.pages:
            if page.issues:
                print(f"\n  Page {page.page_number + 1} issues: {', '.join(page.issues)}")
    else:
        print(f"  OCR confidence:       {result.confidence:.1f}")
        print(f"  Strategy:             {result.strategy}")
        print(f"  Attempts:             {len(result.attempts)}")
        print(f"  Quality score:        {result.quality.score:.0f}")
        print(f"  Total time:           {result.processing_time_seconds:.1f}s")
        if result.cancelled:
            print("  Stopped early:        deadline reached")
        for issue, suggestion in zip(result.quality.issues, result.quality.suggestions):
            print(f"  - {issue}: {suggestion}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
