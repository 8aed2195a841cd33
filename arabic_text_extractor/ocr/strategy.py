"""
Strategy orchestration for multi-attempt Arabic OCR.

Attempts run strictly one after another in a fixed stage order:

    variants → original → segmentation modes → language combinations → engine modes

The run stops as soon as an attempt reaches the threshold of the stage it
belongs to, or when the best result so far already meets the threshold of
the next stage. A failed attempt is recorded and skipped, never fatal.
"""

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from arabic_text_extractor.config import ATTEMPT_STAGES, ExtractionConfig, Stage
from arabic_text_extractor.ocr.engine import (
    RecognitionAdapter,
    RecognitionAttempt,
    RecognitionParameters,
)
from arabic_text_extractor.ocr.preprocessor import ImageVariantGenerator, RawImage

logger = logging.getLogger(__name__)

NO_RESULT = RecognitionAttempt(
    strategy="none",
    stage=Stage.NOT_STARTED,
    languages=(),
    parameters=RecognitionParameters(),
)


class CancellationToken:
    """External stop signal with an optional deadline, checked before every attempt."""

    def __init__(self, deadline_seconds: Optional[float] = None, event: Optional[threading.Event] = None):
        self.event = event or threading.Event()
        self.deadline = time.monotonic() + deadline_seconds if deadline_seconds else None

    def cancel(self) -> None:
        self.event.set()

    @property
    def deadline_exceeded(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def is_cancelled(self) -> bool:
        return self.event.is_set() or self.deadline_exceeded


@dataclass(frozen=True)
class SkippedAttempt:
    strategy: str
    stage: Stage
    reason: str


@dataclass
class OrchestrationResult:
    best: RecognitionAttempt = NO_RESULT
    attempts: list[RecognitionAttempt] = field(default_factory=list)
    skipped: list[SkippedAttempt] = field(default_factory=list)
    stages: list[Stage] = field(default_factory=list)
    cancelled: bool = False

    @property
    def text(self) -> str:
        return self.best.text

    @property
    def confidence(self) -> float:
        return self.best.confidence

    @property
    def strategy(self) -> str:
        return self.best.strategy


@dataclass(frozen=True)
class _Plan:
    strategy: str
    languages: tuple[str, ...]
    parameters: RecognitionParameters
    variant: Optional[str] = None


class StrategyOrchestrator:
    """
    Supervises recognition attempts for one image and keeps the best result.

    Usage:
        orchestrator = StrategyOrchestrator(adapter, generator, config)
        result = orchestrator.run(RawImage.from_bytes(data))
        print(result.text, result.confidence, result.strategy)
    """

    def __init__(
        self,
        adapter: RecognitionAdapter,
        generator: Optional[ImageVariantGenerator] = None,
        config: Optional[ExtractionConfig] = None,
    ):
        self.config = config or ExtractionConfig()
        self.config.validate()
        self.adapter = adapter
        self.generator = generator or ImageVariantGenerator.from_config(self.config)

    def run(
        self,
        image: RawImage,
        languages: Optional[Sequence[str]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> OrchestrationResult:
        languages = tuple(languages or self.config.languages)
        token = cancellation or CancellationToken(self.config.deadline_seconds)
        result = OrchestrationResult()
        tried: set[tuple] = set()

        logger.info("Starting OCR strategies for languages %s", "+".join(languages))

        for stage in ATTEMPT_STAGES:
            if not self._stage_applies(stage, languages):
                logger.debug("Stage %s disabled, skipping", stage.value)
                continue

            threshold = self.config.threshold_for(stage)
            if result.best.confidence >= threshold:
                logger.info(
                    "Best confidence %.1f meets %s threshold %.1f, stopping",
                    result.best.confidence,
                    stage.value,
                    threshold,
                )
                break

            result.stages.append(stage)
            if self._run_stage(stage, threshold, image, languages, token, result, tried):
                break
            if result.cancelled:
                break

        result.stages.append(Stage.DONE)
        logger.info(
            "OCR finished: best strategy %s, confidence %.1f, %d attempts%s",
            result.best.strategy,
            result.best.confidence,
            len(result.attempts),
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def _run_stage(
        self,
        stage: Stage,
        threshold: float,
        image: RawImage,
        languages: tuple[str, ...],
        token: CancellationToken,
        result: OrchestrationResult,
        tried: set[tuple],
    ) -> bool:
        """Run one stage's attempts. Returns True when the threshold was reached."""
        for plan in self._plans(stage, languages):
            if token.is_cancelled:
                reason = "deadline exceeded" if token.deadline_exceeded else "cancelled"
                logger.warning("OCR %s before %s, returning best result so far", reason, plan.strategy)
                result.cancelled = True
                return False

            data, preprocessing_seconds = self._image_for(plan, image)
            signature = (data, plan.languages, plan.parameters)
            if signature in tried:
                result.skipped.append(SkippedAttempt(plan.strategy, stage, "duplicate of an earlier attempt"))
                continue
            tried.add(signature)

            attempt = self.adapter.attempt(
                data,
                plan.languages,
                plan.parameters,
                strategy=plan.strategy,
                stage=stage,
                preprocessing_seconds=preprocessing_seconds,
            )
            result.attempts.append(attempt)
            if attempt.error is not None:
                result.skipped.append(SkippedAttempt(plan.strategy, stage, attempt.error))

            # Strictly greater: ties keep the earlier, higher-priority attempt
            if attempt.confidence > result.best.confidence:
                result.best = attempt

            if attempt.confidence >= threshold:
                logger.info(
                    "%s reached %.1f (threshold %.1f), stopping early",
                    plan.strategy,
                    attempt.confidence,
                    threshold,
                )
                return True
        return False

    def _stage_applies(self, stage: Stage, languages: tuple[str, ...]) -> bool:
        if not self.config.is_stage_enabled(stage):
            return False
        target_script = self.config.requests_target_script(list(languages))
        if stage is Stage.PREPROCESSED_VARIANTS:
            return (
                self.config.enable_advanced_preprocessing
                and target_script
                and self.config.max_preprocessing_attempts > 0
            )
        if stage is Stage.SEGMENTATION_MODES:
            return target_script
        return True

    def _base_parameters(self) -> RecognitionParameters:
        return RecognitionParameters(
            segmentation_mode=self.config.base_segmentation_mode,
            engine_mode=self.config.base_engine_mode,
        )

    def _plans(self, stage: Stage, languages: tuple[str, ...]) -> Iterator[_Plan]:
        base = self._base_parameters()
        if stage is Stage.PREPROCESSED_VARIANTS:
            for name in self.config.variants[: self.config.max_preprocessing_attempts]:
                yield _Plan(f"variant:{name}", languages, base, variant=name)
        elif stage is Stage.ORIGINAL:
            yield _Plan("original", languages, base)
        elif stage is Stage.SEGMENTATION_MODES:
            for mode in self.config.segmentation_modes:
                yield _Plan(
                    f"segmentation:{mode.name.lower()}",
                    languages,
                    dataclasses.replace(base, segmentation_mode=mode),
                )
        elif stage is Stage.LANGUAGE_COMBINATIONS:
            for combo in self.config.language_combinations:
                yield _Plan(f"languages:{'+'.join(combo)}", tuple(combo), base)
        elif stage is Stage.ENGINE_MODES:
            for mode in self.config.engine_modes:
                yield _Plan(
                    f"engine_mode:{mode.name.lower()}",
                    languages,
                    dataclasses.replace(base, engine_mode=mode),
                )

    def _image_for(self, plan: _Plan, image: RawImage) -> tuple[bytes, float]:
        if plan.variant is None:
            return image.data, 0.0
        variant = self.generator.generate_variant(image, plan.variant)
        return variant.data, variant.elapsed_seconds
