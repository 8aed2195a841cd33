"""Shared fixtures: an in-memory recognition backend and generated test images."""

import io
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np
import pytest
from PIL import Image

from arabic_text_extractor.config import EngineMode
from arabic_text_extractor.exceptions import EngineInitializationError
from arabic_text_extractor.ocr.engine import RecognitionAdapter, RecognitionOutput
from arabic_text_extractor.ocr.preprocessor import VARIANTS, PreprocessingVariant

ARABIC_LINE = "أعلنت الأمم المتحدة أن التغير المناخي يشكل تهديداً وجودياً"


@dataclass
class RecognitionCall:
    image: bytes
    languages: list[str]
    engine_mode: EngineMode
    parameters: dict = field(default_factory=dict)

    @property
    def segmentation_mode(self) -> str:
        return self.parameters.get("tessedit_pageseg_mode", "")


class FakeInstance:
    def __init__(self, backend: "FakeBackend", languages, engine_mode):
        self.backend = backend
        self.languages = list(languages)
        self.engine_mode = engine_mode
        self.parameters: dict = {}
        self.released = False

    def set_parameters(self, parameters):
        self.parameters = dict(parameters)

    def recognize(self, image: bytes) -> RecognitionOutput:
        call = RecognitionCall(image, self.languages, self.engine_mode, self.parameters)
        index = len(self.backend.calls)
        self.backend.calls.append(call)
        if index in self.backend.fail_calls:
            raise RuntimeError(f"engine crashed on call {index}")
        text, confidence = self.backend.respond(index, call)
        return RecognitionOutput(text=text, confidence=confidence, word_count=len(text.split()))

    def release(self):
        self.released = True
        self.backend.live -= 1
        if self.backend.fail_release:
            raise RuntimeError("release failed")


class FakeBackend:
    """
    Scripted recognition backend.

    Confidences are handed out in call order; once the script runs out the
    last value repeats. ``score`` overrides the script entirely.
    """

    name = "fake"

    def __init__(
        self,
        confidences=(50.0,),
        text: str = ARABIC_LINE,
        unsupported=(),
        fail_calls=(),
        fail_release: bool = False,
        score: Optional[Callable[[int, RecognitionCall], tuple[str, float]]] = None,
    ):
        self.confidences = list(confidences)
        self.text = text
        self.unsupported = set(unsupported)
        self.fail_calls = set(fail_calls)
        self.fail_release = fail_release
        self.score = score
        self.calls: list[RecognitionCall] = []
        self.create_calls: list[list[str]] = []
        self.live = 0

    def create_instance(self, languages, engine_mode):
        self.create_calls.append(list(languages))
        rejected = [lang for lang in languages if lang in self.unsupported]
        if rejected:
            raise EngineInitializationError(f"unsupported: {rejected}", languages)
        self.live += 1
        return FakeInstance(self, languages, engine_mode)

    def respond(self, index: int, call: RecognitionCall) -> tuple[str, float]:
        if self.score is not None:
            return self.score(index, call)
        confidence = self.confidences[min(index, len(self.confidences) - 1)]
        return (self.text if confidence > 0 else ""), confidence


class FakeGenerator:
    """Variant generator that labels each variant instead of transforming pixels."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.requested: list[str] = []

    def generate_variant(self, image, variant_name, options=None):
        self.requested.append(variant_name)
        spec = VARIANTS[variant_name]
        if variant_name in self.failing:
            return PreprocessingVariant(
                name=variant_name, spec=spec, data=image.data, fell_back=True, error="injected"
            )
        return PreprocessingVariant(name=variant_name, spec=spec, data=f"variant:{variant_name}".encode())


def png_bytes(img: Image.Image, dpi: Optional[int] = None) -> bytes:
    buffer = io.BytesIO()
    if dpi:
        img.save(buffer, format="PNG", dpi=(dpi, dpi))
    else:
        img.save(buffer, format="PNG")
    return buffer.getvalue()


def text_like_image(width: int = 400, height: int = 120) -> Image.Image:
    """White page with dark horizontal strokes standing in for lines of text."""
    array = np.full((height, width), 235, dtype=np.uint8)
    for top in range(20, height - 20, 30):
        for left in range(20, width - 40, 60):
            array[top:top + 8, left:left + 45] = 30
    return Image.fromarray(array)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def adapter(backend):
    return RecognitionAdapter(backend, default_language="eng")


@pytest.fixture
def text_png():
    return png_bytes(text_like_image(), dpi=300)


@pytest.fixture
def small_png():
    return png_bytes(text_like_image(40, 20))


@pytest.fixture
def blank_png():
    return png_bytes(Image.new("L", (300, 100), color=255))


@pytest.fixture
def color_png():
    img = Image.new("RGB", (200, 80), color=(250, 240, 220))
    array = np.array(img)
    array[30:40, 20:180] = (20, 20, 90)
    return png_bytes(Image.fromarray(array))
