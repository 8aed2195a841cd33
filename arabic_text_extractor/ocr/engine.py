"""
Recognition adapter over pluggable OCR backends.

The adapter owns the engine lifecycle: one engine instance per
recognition call, configured with the requested languages and
parameters, and released on every exit path. Backends (Tesseract,
EasyOCR) only need to implement the two small protocols below.
"""

import io
import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Mapping, Optional, Protocol, Sequence

from arabic_text_extractor.config import (
    EngineMode,
    OCREngine,
    RecognitionConfig,
    SegmentationMode,
    Stage,
)
from arabic_text_extractor.exceptions import (
    EngineInitializationError,
    ExtractionError,
    RecognitionError,
)

logger = logging.getLogger(__name__)

# Tesseract tuning for Arabic pages: aggressive noise removal keeps stray
# specks from being read as dots, and softer dictionary penalties stop the
# language model from rejecting valid but uncommon words.
NOISE_HEURISTICS = {
    "textord_heavy_nr": "1",
    "textord_really_old_xheight": "0",
    "textord_tabfind_force_vertical_text": "0",
    "textord_min_linesize": "1.0",
    "textord_noise_area_ratio": "0.7",
    "textord_noise_cert_basechar": "-8.0",
    "textord_noise_cert_disjoint": "-10.0",
    "textord_noise_cert_punc": "-5.0",
    "textord_noise_cert_factor": "0.5",
}

DICTIONARY_PENALTIES = {
    "language_model_penalty_non_freq_dict_word": "0.1",
    "language_model_penalty_non_dict_word": "0.15",
    "segment_penalty_dict_nonword": "1.25",
    "segment_penalty_garbage": "1.50",
}


@dataclass(frozen=True)
class RecognitionParameters:
    """Recognition options passed through to the engine."""
    segmentation_mode: SegmentationMode = SegmentationMode.AUTO
    engine_mode: EngineMode = EngineMode.LSTM_ONLY
    preserve_interword_spaces: bool = True
    noise_heuristics: bool = True
    dictionary_penalties: bool = True
    # Raw engine variables, applied last
    extra: tuple[tuple[str, str], ...] = ()

    def to_engine_variables(self, target_script: bool = True) -> dict[str, str]:
        """Render the parameters as engine variables; values are not interpreted."""
        variables = {
            "tessedit_pageseg_mode": str(self.segmentation_mode.value),
            "preserve_interword_spaces": "1" if self.preserve_interword_spaces else "0",
        }
        if target_script:
            if self.noise_heuristics:
                variables.update(NOISE_HEURISTICS)
            if self.dictionary_penalties:
                variables.update(DICTIONARY_PENALTIES)
        variables.update(dict(self.extra))
        return variables

    def describe(self) -> str:
        return f"psm={self.segmentation_mode.name.lower()} oem={self.engine_mode.name.lower()}"


@dataclass(frozen=True)
class RecognitionOutput:
    text: str
    confidence: float  # 0 to 100
    word_count: int = 0


@dataclass(frozen=True)
class RecognitionAttempt:
    """Result of one recognition attempt, successful or not."""
    strategy: str
    stage: Stage
    languages: tuple[str, ...]
    parameters: RecognitionParameters
    text: str = ""
    confidence: float = 0.0
    preprocessing_seconds: float = 0.0
    recognition_seconds: float = 0.0
    error: Optional[str] = None
    language_fallback: bool = False

    @property
    def is_successful(self) -> bool:
        return self.error is None and bool(self.text.strip())


class EngineInstance(Protocol):
    def set_parameters(self, parameters: Mapping[str, str]) -> None:
        ...

    def recognize(self, image: bytes) -> RecognitionOutput:
        ...

    def release(self) -> None:
        ...


class RecognitionBackend(Protocol):
    name: str

    def create_instance(self, languages: Sequence[str], engine_mode: EngineMode) -> EngineInstance:
        """Raise EngineInitializationError if the language set or mode is unsupported."""
        ...


def clamp_confidence(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 100.0)


class TesseractInstance:
    """One configured Tesseract session. pytesseract runs a process per call."""

    def __init__(self, pytesseract, languages: Sequence[str], engine_mode: EngineMode, config: RecognitionConfig):
        self.pytesseract = pytesseract
        self.languages = list(languages)
        self.engine_mode = engine_mode
        self.config = config
        self.variables: dict[str, str] = {}
        self.released = False

    def set_parameters(self, parameters: Mapping[str, str]) -> None:
        self.variables = dict(parameters)

    def build_config(self) -> str:
        """Render the Tesseract command-line config string."""
        variables = dict(self.variables)
        psm = variables.pop("tessedit_pageseg_mode", str(SegmentationMode.AUTO.value))
        parts = [f"--oem {self.engine_mode.value}", f"--psm {psm}"]
        if self.config.tessdata_dir:
            parts.append(f'--tessdata-dir "{self.config.tessdata_dir}"')
        for key, value in variables.items():
            if value == "":
                continue
            parts.append(f"-c {key}={value}")
        return " ".join(parts)

    def recognize(self, image: bytes) -> RecognitionOutput:
        if self.released:
            raise RecognitionError("Tesseract instance used after release")
        from PIL import Image, UnidentifiedImageError

        try:
            with Image.open(io.BytesIO(image)) as img:
                img.load()
                data = self.pytesseract.image_to_data(
                    img,
                    lang="+".join(self.languages),
                    config=self.build_config(),
                    output_type=self.pytesseract.Output.DICT,
                    timeout=self.config.tesseract_timeout,
                )
        except (self.pytesseract.TesseractError, RuntimeError, OSError, UnidentifiedImageError) as e:
            raise RecognitionError(f"Tesseract failed: {e}") from e

        return self._collect(data)

    def _collect(self, data: dict) -> RecognitionOutput:
        """Rebuild lines from block/paragraph/line numbers and average word confidences."""
        lines: dict[tuple[int, int, int], list[str]] = {}
        confidences = []
        for i, word in enumerate(data["text"]):
            word = str(word).strip()
            if not word:
                continue
            try:
                conf = float(data["conf"][i])
            except (TypeError, ValueError):
                conf = -1.0
            if conf < 0:
                continue
            key = (
                int(data["block_num"][i]),
                int(data["par_num"][i]),
                int(data["line_num"][i]),
            )
            lines.setdefault(key, []).append(word)
            confidences.append(conf)

        text_parts = []
        previous = None
        for key in sorted(lines):
            if previous is not None:
                # New block or paragraph → blank line between them
                text_parts.append("\n\n" if key[:2] != previous[:2] else "\n")
            text_parts.append(" ".join(lines[key]))
            previous = key

        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0
        logger.debug(
            "Tesseract: %d words, avg confidence %.1f",
            len(confidences),
            avg_confidence,
        )
        return RecognitionOutput(
            text="".join(text_parts),
            confidence=avg_confidence,
            word_count=len(confidences),
        )

    def release(self) -> None:
        self.released = True


class TesseractBackend:
    """Tesseract via pytesseract, validating languages against installed traineddata."""

    name = "tesseract"

    def __init__(self, config: Optional[RecognitionConfig] = None):
        try:
            import pytesseract
            self.pytesseract = pytesseract
        except ImportError:
            raise ImportError(
                "pytesseract is required. Install with: pip install pytesseract\n"
                "Also install Tesseract binary: sudo apt-get install tesseract-ocr tesseract-ocr-ara"
            )
        self.config = config or RecognitionConfig()
        if self.config.tesseract_cmd:
            self.pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        self._languages: Optional[set[str]] = None

    def available_languages(self) -> set[str]:
        if self._languages is None:
            config = f'--tessdata-dir "{self.config.tessdata_dir}"' if self.config.tessdata_dir else ""
            try:
                self._languages = set(self.pytesseract.get_languages(config=config))
            except (self.pytesseract.TesseractNotFoundError, self.pytesseract.TesseractError, OSError) as e:
                raise EngineInitializationError(f"Tesseract is not available: {e}") from e
        return self._languages

    def create_instance(self, languages: Sequence[str], engine_mode: EngineMode) -> TesseractInstance:
        missing = [lang for lang in languages if lang not in self.available_languages()]
        if missing:
            raise EngineInitializationError(
                f"Tesseract language data not installed: {', '.join(missing)}",
                languages,
            )
        return TesseractInstance(self.pytesseract, languages, engine_mode, self.config)


class EasyOCRInstance:
    """EasyOCR reader bound to one language set."""

    def __init__(self, reader):
        self.reader = reader
        self.variables: dict[str, str] = {}

    def set_parameters(self, parameters: Mapping[str, str]) -> None:
        # EasyOCR has no Tesseract-style variables; kept for diagnostics only
        self.variables = dict(parameters)

    def recognize(self, image: bytes) -> RecognitionOutput:
        if self.reader is None:
            raise RecognitionError("EasyOCR instance used after release")
        import numpy as np
        from PIL import Image, UnidentifiedImageError

        try:
            with Image.open(io.BytesIO(image)) as img:
                array = np.array(img.convert("L"))
            # detail=1, paragraph=False keeps the per-box confidences
            results = self.reader.readtext(array, detail=1, paragraph=False)
        except (RuntimeError, ValueError, OSError, UnidentifiedImageError) as e:
            raise RecognitionError(f"EasyOCR failed: {e}") from e

        texts = []
        confidences = []
        for item in results:
            if len(item) != 3:
                continue
            _bbox, text, conf = item
            text = str(text).strip()
            if text:
                texts.append(text)
                confidences.append(float(conf) * 100.0)

        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return RecognitionOutput(
            text="\n".join(texts),
            confidence=avg_confidence,
            word_count=len(texts),
        )

    def release(self) -> None:
        self.reader = None


class EasyOCRBackend:
    """EasyOCR backend. Engine modes do not apply and are ignored."""

    name = "easyocr"

    LANGUAGE_CODES = {
        "ara": "ar",
        "eng": "en",
        "fas": "fa",
        "urd": "ur",
        "fra": "fr",
    }

    def __init__(self, config: Optional[RecognitionConfig] = None):
        try:
            import easyocr
            self.easyocr = easyocr
        except ImportError:
            raise ImportError(
                "easyocr is required. Install with: pip install easyocr"
            )
        self.config = config or RecognitionConfig()

    def create_instance(self, languages: Sequence[str], engine_mode: EngineMode) -> EasyOCRInstance:
        codes = [self.LANGUAGE_CODES.get(lang, lang) for lang in languages]
        try:
            reader = self.easyocr.Reader(
                codes,
                gpu=self.config.easyocr_gpu,
                model_storage_directory=self.config.easyocr_model_dir,
                verbose=False,
            )
        except (ValueError, RuntimeError, OSError) as e:
            raise EngineInitializationError(f"EasyOCR rejected languages {codes}: {e}", languages) from e
        return EasyOCRInstance(reader)


BACKENDS = {
    OCREngine.TESSERACT: TesseractBackend,
    OCREngine.EASYOCR: EasyOCRBackend,
}


class RecognitionAdapter:
    """
    Runs one recognition call against a backend.

    Guarantees:
    - exactly one engine instance per call, released on every exit path
    - one retry with the default language when the requested set is rejected
    - confidence reported within [0, 100]
    """

    def __init__(
        self,
        backend: RecognitionBackend,
        default_language: str = "eng",
        target_languages: Sequence[str] = ("ara", "ar"),
    ):
        self.backend = backend
        self.default_language = default_language
        self.target_languages = set(target_languages)
        self.live_instances = 0

    @classmethod
    def from_config(cls, config: RecognitionConfig) -> "RecognitionAdapter":
        backend_cls = BACKENDS.get(config.engine)
        if backend_cls is None:
            raise EngineInitializationError(f"Unknown OCR engine: {config.engine}")
        return cls(
            backend_cls(config),
            default_language=config.default_language,
            target_languages=config.target_languages,
        )

    def _create(self, languages: Sequence[str], engine_mode: EngineMode) -> tuple[EngineInstance, list[str]]:
        try:
            return self.backend.create_instance(languages, engine_mode), list(languages)
        except EngineInitializationError as e:
            if list(languages) == [self.default_language]:
                raise
            logger.warning(
                "Engine rejected languages %s (%s), retrying with %s",
                "+".join(languages),
                e,
                self.default_language,
            )
        try:
            instance = self.backend.create_instance([self.default_language], engine_mode)
        except EngineInitializationError as e:
            raise EngineInitializationError(
                f"Default language {self.default_language} also failed: {e}",
                languages,
            ) from e
        return instance, [self.default_language]

    @contextmanager
    def acquire(self, languages: Sequence[str], engine_mode: EngineMode) -> Iterator[tuple[EngineInstance, list[str]]]:
        """Scoped engine instance; released however the block exits."""
        instance, used = self._create(languages, engine_mode)
        self.live_instances += 1
        try:
            yield instance, used
        finally:
            try:
                instance.release()
            except Exception as e:
                logger.warning("Failed to release %s engine instance: %s", self.backend.name, e)
            self.live_instances -= 1

    def _run(
        self,
        image: bytes,
        languages: Sequence[str],
        parameters: RecognitionParameters,
    ) -> tuple[RecognitionOutput, list[str]]:
        with self.acquire(languages, parameters.engine_mode) as (instance, used):
            target_script = any(lang in self.target_languages for lang in used)
            try:
                instance.set_parameters(parameters.to_engine_variables(target_script))
                output = instance.recognize(image)
            except ExtractionError:
                raise
            except Exception as e:
                raise RecognitionError(f"{self.backend.name} failed: {e}") from e
        return output, used

    def recognize(
        self,
        image: bytes,
        languages: Sequence[str],
        parameters: Optional[RecognitionParameters] = None,
    ) -> tuple[str, float]:
        """
        Recognize text in an image.

        Returns:
            Tuple of (text, confidence 0-100).

        Raises:
            EngineInitializationError: language set and default language both rejected.
            RecognitionError: the engine failed while reading.
        """
        output, _used = self._run(image, languages, parameters or RecognitionParameters())
        return output.text, clamp_confidence(output.confidence)

    def attempt(
        self,
        image: bytes,
        languages: Sequence[str],
        parameters: RecognitionParameters,
        strategy: str,
        stage: Stage,
        preprocessing_seconds: float = 0.0,
    ) -> RecognitionAttempt:
        """Recognize and record the outcome; failures are captured, never raised."""
        start = time.time()
        try:
            output, used = self._run(image, languages, parameters)
        except (EngineInitializationError, RecognitionError) as e:
            logger.warning("Attempt %s failed: %s", strategy, e)
            return RecognitionAttempt(
                strategy=strategy,
                stage=stage,
                languages=tuple(languages),
                parameters=parameters,
                preprocessing_seconds=preprocessing_seconds,
                recognition_seconds=time.time() - start,
                error=str(e),
            )

        confidence = clamp_confidence(output.confidence)
        logger.info(
            "Attempt %s [%s, %s]: %d chars, confidence %.1f",
            strategy,
            "+".join(used),
            parameters.describe(),
            len(output.text),
            confidence,
        )
        return RecognitionAttempt(
            strategy=strategy,
            stage=stage,
            languages=tuple(used),
            parameters=parameters,
            text=output.text,
            confidence=confidence,
            preprocessing_seconds=preprocessing_seconds,
            recognition_seconds=time.time() - start,
            language_fallback=list(used) != list(languages),
        )
