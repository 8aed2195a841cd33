"""
Configuration management for the Arabic text extraction pipeline.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from arabic_text_extractor.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class OCREngine(Enum):
    TESSERACT = "tesseract"
    EASYOCR = "easyocr"


class SegmentationMode(Enum):
    """Page segmentation modes, numbered as Tesseract numbers them (--psm)."""
    AUTO = 3
    SINGLE_COLUMN = 4
    SINGLE_BLOCK = 6
    SPARSE_TEXT = 11


class EngineMode(Enum):
    """Recognition engine families, numbered as Tesseract numbers them (--oem)."""
    LEGACY = 0
    LSTM_ONLY = 1
    COMBINED = 2
    DEFAULT = 3


class Stage(Enum):
    """Phases of the orchestrator's fixed attempt sequence."""
    NOT_STARTED = "not_started"
    PREPROCESSED_VARIANTS = "variants"
    ORIGINAL = "original"
    SEGMENTATION_MODES = "segmentation"
    LANGUAGE_COMBINATIONS = "languages"
    ENGINE_MODES = "engine_modes"
    DONE = "done"


ATTEMPT_STAGES = (
    Stage.PREPROCESSED_VARIANTS,
    Stage.ORIGINAL,
    Stage.SEGMENTATION_MODES,
    Stage.LANGUAGE_COMBINATIONS,
    Stage.ENGINE_MODES,
)


class ThresholdPolicy(Enum):
    """How the binarization threshold is derived when a variant does not fix one."""
    MEAN_SCALED = "mean_scaled"          # clamp(mean * 1.1, 100, 180)
    MEAN_MINUS_STD = "mean_minus_std"    # clamp(mean - 0.3 * std, 80, 200)


# Names accepted in ExtractionConfig.variants
VARIANT_NAMES = (
    "original",
    "denoised",
    "enhanced_upscaled",
    "high_contrast",
    "arabic_high_contrast",
    "arabic_adaptive",
    "arabic_noise_reduced",
    "arabic_minimal",
    "arabic_conservative",
    "arabic_document",
)

DEFAULT_THRESHOLDS = {
    Stage.PREPROCESSED_VARIANTS: 85.0,
    Stage.ORIGINAL: 75.0,
    Stage.SEGMENTATION_MODES: 75.0,
    Stage.LANGUAGE_COMBINATIONS: 70.0,
    Stage.ENGINE_MODES: 70.0,
}

# Keys accepted for each stage in confidenceThresholds mappings
STAGE_ALIASES = {
    "variants": Stage.PREPROCESSED_VARIANTS,
    "preprocessed_variants": Stage.PREPROCESSED_VARIANTS,
    "preprocessedVariants": Stage.PREPROCESSED_VARIANTS,
    "preprocessing": Stage.PREPROCESSED_VARIANTS,
    "original": Stage.ORIGINAL,
    "segmentation": Stage.SEGMENTATION_MODES,
    "segmentation_modes": Stage.SEGMENTATION_MODES,
    "segmentationModes": Stage.SEGMENTATION_MODES,
    "languages": Stage.LANGUAGE_COMBINATIONS,
    "language_combinations": Stage.LANGUAGE_COMBINATIONS,
    "languageCombinations": Stage.LANGUAGE_COMBINATIONS,
    "engine_modes": Stage.ENGINE_MODES,
    "engineModes": Stage.ENGINE_MODES,
}


@dataclass
class RecognitionConfig:
    """Recognition engine configuration."""
    engine: OCREngine = OCREngine.TESSERACT
    # Baseline language used when the requested set is rejected
    default_language: Optional[str] = None
    # Language codes that switch on the Arabic-specific handling
    target_languages: list[str] = field(default_factory=lambda: ["ara", "ar"])
    # Tesseract-specific
    tesseract_cmd: Optional[str] = None
    tessdata_dir: Optional[str] = None
    tesseract_timeout: float = 0  # seconds, 0 disables
    # EasyOCR-specific
    easyocr_gpu: bool = False
    easyocr_model_dir: Optional[str] = None

    def __post_init__(self):
        """Load engine locations from environment variables if not provided."""
        if not self.default_language:
            self.default_language = os.environ.get("ARABIC_OCR_DEFAULT_LANGUAGE", "eng")
        if not self.tesseract_cmd:
            self.tesseract_cmd = os.environ.get("TESSERACT_CMD")
        if not self.tessdata_dir:
            self.tessdata_dir = os.environ.get("TESSDATA_PREFIX")


@dataclass
class ExtractionConfig:
    """Extraction pipeline configuration."""
    languages: list[str] = field(default_factory=lambda: ["ara"])

    # Strategy orchestration
    max_preprocessing_attempts: int = 3
    confidence_thresholds: dict[Stage, float] = field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS)
    )
    enable_advanced_preprocessing: bool = True
    enabled_stages: list[Stage] = field(default_factory=lambda: list(ATTEMPT_STAGES))
    variants: list[str] = field(
        default_factory=lambda: [
            "arabic_high_contrast",
            "arabic_adaptive",
            "arabic_noise_reduced",
            "enhanced_upscaled",
            "high_contrast",
            "denoised",
        ]
    )
    # Used for the variant and original-image stages
    base_segmentation_mode: SegmentationMode = SegmentationMode.AUTO
    base_engine_mode: EngineMode = EngineMode.LSTM_ONLY
    segmentation_modes: list[SegmentationMode] = field(
        default_factory=lambda: [
            SegmentationMode.AUTO,
            SegmentationMode.SINGLE_BLOCK,
            SegmentationMode.SINGLE_COLUMN,
            SegmentationMode.SPARSE_TEXT,
        ]
    )
    language_combinations: list[list[str]] = field(
        default_factory=lambda: [["ara"], ["ara", "eng"], ["eng", "ara"]]
    )
    engine_modes: list[EngineMode] = field(
        default_factory=lambda: [
            EngineMode.LSTM_ONLY,
            EngineMode.COMBINED,
            EngineMode.DEFAULT,
        ]
    )
    # Cancel the remaining attempts once this many seconds have elapsed
    deadline_seconds: Optional[float] = None

    # Image variants
    min_width: int = 100
    min_height: int = 50
    max_dimension: int = 6000
    threshold_policy: ThresholdPolicy = ThresholdPolicy.MEAN_MINUS_STD

    # Text enhancement
    enable_dictionary_correction: bool = True
    dictionary_path: Optional[str] = None
    shape_for_display: bool = False

    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)

    def threshold_for(self, stage: Stage) -> float:
        return self.confidence_thresholds.get(stage, DEFAULT_THRESHOLDS[stage])

    def is_stage_enabled(self, stage: Stage) -> bool:
        return stage in self.enabled_stages

    def requests_target_script(self, languages: Optional[list[str]] = None) -> bool:
        """Return True if any requested language is one of the target-script codes."""
        target = set(self.recognition.target_languages)
        return any(lang in target for lang in (languages or self.languages))

    def validate(self) -> None:
        """Raise ConfigurationError if the configuration cannot be used."""
        if not self.languages or not all(isinstance(l, str) and l for l in self.languages):
            raise ConfigurationError("languages must be a non-empty list of language codes")
        if not isinstance(self.max_preprocessing_attempts, int) or self.max_preprocessing_attempts < 0:
            raise ConfigurationError(
                f"max_preprocessing_attempts must be a non-negative integer, "
                f"got {self.max_preprocessing_attempts!r}"
            )
        for stage, value in self.confidence_thresholds.items():
            if stage not in DEFAULT_THRESHOLDS:
                raise ConfigurationError(f"No confidence threshold applies to stage {stage!r}")
            if not isinstance(value, (int, float)) or not 0 <= value <= 100:
                raise ConfigurationError(
                    f"Confidence threshold for {stage.value} must be within [0, 100], got {value!r}"
                )
        for stage in self.enabled_stages:
            if stage not in ATTEMPT_STAGES:
                raise ConfigurationError(f"Stage {stage!r} cannot be enabled")
        unknown = [v for v in self.variants if v not in VARIANT_NAMES]
        if unknown:
            raise ConfigurationError(
                f"Unknown preprocessing variants: {unknown}. Known: {list(VARIANT_NAMES)}"
            )
        if not isinstance(self.base_segmentation_mode, SegmentationMode):
            raise ConfigurationError(
                f"base_segmentation_mode must be a SegmentationMode, got {self.base_segmentation_mode!r}"
            )
        if not isinstance(self.base_engine_mode, EngineMode):
            raise ConfigurationError(f"base_engine_mode must be an EngineMode, got {self.base_engine_mode!r}")
        bad_modes = [m for m in self.segmentation_modes if not isinstance(m, SegmentationMode)]
        if bad_modes:
            raise ConfigurationError(f"segmentation_modes must hold SegmentationMode values, got {bad_modes!r}")
        bad_modes = [m for m in self.engine_modes if not isinstance(m, EngineMode)]
        if bad_modes:
            raise ConfigurationError(f"engine_modes must hold EngineMode values, got {bad_modes!r}")
        for combo in self.language_combinations:
            if not combo:
                raise ConfigurationError("language_combinations must not contain empty sets")
        if self.min_width <= 0 or self.min_height <= 0:
            raise ConfigurationError("min_width and min_height must be positive")
        if self.max_dimension < max(self.min_width, self.min_height):
            raise ConfigurationError("max_dimension must not be smaller than the minimum size")
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ConfigurationError("deadline_seconds must be positive when set")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractionConfig":
        """
        Build a config from a plain mapping.

        Accepts both the camelCase keys used by the ingestion service
        (maxPreprocessingAttempts, confidenceThresholds,
        enableAdvancedPreprocessing, ...) and the dataclass field names.
        """
        key_map = {
            "maxPreprocessingAttempts": "max_preprocessing_attempts",
            "confidenceThresholds": "confidence_thresholds",
            "enableAdvancedPreprocessing": "enable_advanced_preprocessing",
            "enabledStages": "enabled_stages",
            "segmentationModes": "segmentation_modes",
            "languageCombinations": "language_combinations",
            "engineModes": "engine_modes",
            "baseSegmentationMode": "base_segmentation_mode",
            "baseEngineMode": "base_engine_mode",
            "deadlineSeconds": "deadline_seconds",
            "minWidth": "min_width",
            "minHeight": "min_height",
            "maxDimension": "max_dimension",
            "thresholdPolicy": "threshold_policy",
            "enableDictionaryCorrection": "enable_dictionary_correction",
            "dictionaryPath": "dictionary_path",
        }
        known = set(cls.__dataclass_fields__)
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = key_map.get(key, key)
            if name not in known:
                logger.warning("Ignoring unknown configuration key: %s", key)
                continue
            kwargs[name] = value

        try:
            if "languages" in kwargs:
                kwargs["languages"] = _parse_languages(kwargs["languages"])
            if "confidence_thresholds" in kwargs:
                thresholds = dict(DEFAULT_THRESHOLDS)
                for stage_key, value in kwargs["confidence_thresholds"].items():
                    thresholds[_parse_stage(stage_key)] = float(value)
                kwargs["confidence_thresholds"] = thresholds
            if "enabled_stages" in kwargs:
                kwargs["enabled_stages"] = [_parse_stage(s) for s in kwargs["enabled_stages"]]
            if "segmentation_modes" in kwargs:
                kwargs["segmentation_modes"] = [
                    _parse_enum(SegmentationMode, m) for m in kwargs["segmentation_modes"]
                ]
            if "engine_modes" in kwargs:
                kwargs["engine_modes"] = [_parse_enum(EngineMode, m) for m in kwargs["engine_modes"]]
            if "base_segmentation_mode" in kwargs:
                kwargs["base_segmentation_mode"] = _parse_enum(
                    SegmentationMode, kwargs["base_segmentation_mode"]
                )
            if "base_engine_mode" in kwargs:
                kwargs["base_engine_mode"] = _parse_enum(EngineMode, kwargs["base_engine_mode"])
            if "language_combinations" in kwargs:
                kwargs["language_combinations"] = [
                    _parse_languages(c) for c in kwargs["language_combinations"]
                ]
            if "threshold_policy" in kwargs:
                kwargs["threshold_policy"] = ThresholdPolicy(kwargs["threshold_policy"])
            if isinstance(kwargs.get("recognition"), Mapping):
                recognition = dict(kwargs["recognition"])
                if "engine" in recognition:
                    recognition["engine"] = OCREngine(recognition["engine"])
                kwargs["recognition"] = RecognitionConfig(**recognition)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        config = cls(**kwargs)
        config.validate()
        return config


def _parse_languages(value: Any) -> list[str]:
    """Accept ['ara', 'eng'] or Tesseract-style 'ara+eng'."""
    if isinstance(value, str):
        return [part.strip() for part in value.replace(",", "+").split("+") if part.strip()]
    return [str(v) for v in value]


def _parse_stage(value: Any) -> Stage:
    if isinstance(value, Stage):
        return value
    if value in STAGE_ALIASES:
        return STAGE_ALIASES[value]
    try:
        return Stage[str(value).upper()]
    except KeyError:
        raise ConfigurationError(f"Unknown stage: {value!r}") from None


def _parse_enum(enum_cls, value: Any):
    """Accept an enum member, its name, or its numeric value."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str) and not value.isdigit():
        return enum_cls[value.upper()]
    return enum_cls(int(value))
