"""
Raster primitives used to build preprocessing variants.

Every function takes and returns a numpy uint8 array (single channel once
``to_grayscale`` has run) and raises PreprocessingError on failure, so the
variant generator can fall back to the untouched image.
"""

import io
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from arabic_text_extractor.config import ThresholdPolicy
from arabic_text_extractor.exceptions import PreprocessingError

logger = logging.getLogger(__name__)

GAMMA_MIN = 0.1
GAMMA_MAX = 3.0

_INTERPOLATION = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "lanczos": cv2.INTER_LANCZOS4,
    "area": cv2.INTER_AREA,
}


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    dpi: Optional[float] = None
    mode: str = ""
    format: Optional[str] = None


def transform(step: str) -> Callable:
    """Decorator turning any failure inside a raster step into PreprocessingError."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except PreprocessingError:
                raise
            except (
                cv2.error,
                ValueError,
                TypeError,
                OSError,
                UnidentifiedImageError,
                Image.DecompressionBombError,
            ) as e:
                raise PreprocessingError(f"{step} failed: {e}", step=step) from e

        return wrapper

    return decorator


@transform("metadata")
def read_metadata(data: bytes) -> ImageMetadata:
    """Read size, resolution and format without decoding the pixels."""
    with Image.open(io.BytesIO(data)) as img:
        dpi = img.info.get("dpi")
        resolution = None
        if dpi:
            # Pillow reports (x, y); some encoders write 0 or 1 for "unknown"
            x_dpi = float(dpi[0]) if isinstance(dpi, (tuple, list)) else float(dpi)
            resolution = x_dpi if x_dpi > 1 else None
        return ImageMetadata(
            width=img.width,
            height=img.height,
            dpi=resolution,
            mode=img.mode,
            format=img.format,
        )


@transform("decode")
def decode(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into an RGB or grayscale array."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        if img.mode in ("L", "RGB"):
            converted = img
        elif img.mode in ("1", "I;16", "I", "F"):
            converted = img.convert("L")
        else:
            converted = img.convert("RGB")
        return np.array(converted)


@transform("encode")
def encode_png(img: np.ndarray) -> bytes:
    """Encode a single-channel array as lossless PNG."""
    if img.ndim != 2:
        raise ValueError(f"expected a single-channel image, got shape {img.shape}")
    buffer = io.BytesIO()
    Image.fromarray(img.astype(np.uint8)).save(buffer, format="PNG")
    return buffer.getvalue()


@transform("grayscale")
def to_grayscale(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)


@transform("resize")
def resize(img: np.ndarray, width: int, height: int, interpolation: str = "cubic") -> np.ndarray:
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid target size {width}x{height}")
    return cv2.resize(img, (int(width), int(height)), interpolation=_INTERPOLATION[interpolation])


@transform("normalize")
def normalize(img: np.ndarray) -> np.ndarray:
    """Stretch the 1st-99th percentile luminance range to the full 0-255 range."""
    low, high = np.percentile(img, (1, 99))
    if high <= low:
        return img
    stretched = (img.astype(np.float32) - low) * (255.0 / (high - low))
    return np.clip(stretched, 0, 255).astype(np.uint8)


def clamp_gamma(value: float) -> float:
    return min(max(value, GAMMA_MIN), GAMMA_MAX)


@transform("gamma")
def gamma(img: np.ndarray, value: float) -> np.ndarray:
    """Gamma correction; out-of-range values are clamped to [0.1, 3.0]."""
    value = clamp_gamma(value)
    table = np.array(
        [((i / 255.0) ** (1.0 / value)) * 255 for i in range(256)]
    ).clip(0, 255).astype(np.uint8)
    return cv2.LUT(img, table)


@transform("linear")
def linear(img: np.ndarray, multiplier: float, offset: Optional[float] = None) -> np.ndarray:
    """Linear contrast stretch around mid-grey unless an explicit offset is given."""
    if offset is None:
        offset = 128 - 128 * multiplier
    return cv2.convertScaleAbs(img, alpha=multiplier, beta=offset)


@transform("brightness")
def brightness(img: np.ndarray, factor: float) -> np.ndarray:
    return np.clip(img.astype(np.float32) * factor, 0, 255).astype(np.uint8)


@transform("sharpen")
def sharpen(img: np.ndarray, sigma: float = 1.0, amount: float = 1.0) -> np.ndarray:
    """Unsharp mask."""
    blurred = cv2.GaussianBlur(img, (0, 0), sigma)
    return cv2.addWeighted(img, 1 + amount, blurred, -amount, 0)


@transform("blur")
def blur(img: np.ndarray, sigma: float = 0.5) -> np.ndarray:
    return cv2.GaussianBlur(img, (0, 0), sigma)


@transform("median")
def median(img: np.ndarray, size: int = 3) -> np.ndarray:
    return cv2.medianBlur(img, size)


@transform("denoise")
def denoise(img: np.ndarray, strength: float = 8) -> np.ndarray:
    """
    Non-local means denoising.

    The default strength is gentler than OpenCV's 10 so thin strokes and
    the dots of Arabic letters survive.
    """
    return cv2.fastNlMeansDenoising(img, h=strength, templateWindowSize=7, searchWindowSize=21)


@transform("clahe")
def clahe(img: np.ndarray, clip_limit: float = 2.0, tile_size: int = 8) -> np.ndarray:
    """Contrast Limited Adaptive Histogram Equalization."""
    equalizer = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(tile_size, tile_size))
    return equalizer.apply(img)


@transform("deskew")
def deskew(img: np.ndarray) -> np.ndarray:
    """Detect and correct skew using the Hough line transform."""
    edges = cv2.Canny(img, 50, 150, apertureSize=3)
    lines = cv2.HoughLinesP(
        edges,
        rho=1,
        theta=np.pi / 180,
        threshold=100,
        minLineLength=img.shape[1] // 4,
        maxLineGap=20,
    )
    if lines is None:
        logger.debug("No lines detected for deskewing, skipping")
        return img

    angles = []
    for line in lines:
        x1, y1, x2, y2 = line[0]
        angle = np.degrees(np.arctan2(y2 - y1, x2 - x1))
        if abs(angle) < 45:  # near-horizontal lines only
            angles.append(angle)
    if not angles:
        return img

    median_angle = float(np.median(angles))
    if abs(median_angle) < 0.5:
        return img

    logger.debug("Correcting skew angle: %.2f°", median_angle)
    h, w = img.shape[:2]
    rotation_matrix = cv2.getRotationMatrix2D((w // 2, h // 2), median_angle, 1.0)
    return cv2.warpAffine(
        img,
        rotation_matrix,
        (w, h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_REPLICATE,
    )


@transform("crop")
def crop_borders(img: np.ndarray, min_size: int = 200, margin: int = 10) -> np.ndarray:
    """Crop uniform page borders around the content, keeping a small margin."""
    h, w = img.shape[:2]
    if h <= min_size or w <= min_size:
        return img
    _, ink = cv2.threshold(img, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    points = cv2.findNonZero(ink)
    if points is None:
        return img
    x, y, cw, ch = cv2.boundingRect(points)
    x0, y0 = max(0, x - margin), max(0, y - margin)
    x1, y1 = min(w, x + cw + margin), min(h, y + ch + margin)
    if (x1 - x0) < min_size // 2 or (y1 - y0) < min_size // 2:
        return img
    return img[y0:y1, x0:x1]


@transform("threshold")
def threshold(img: np.ndarray, value: int) -> np.ndarray:
    _, binary = cv2.threshold(img, int(value), 255, cv2.THRESH_BINARY)
    return binary


@transform("adaptive_threshold")
def adaptive_threshold(img: np.ndarray, block_size: int = 31, c: int = 10) -> np.ndarray:
    """Gaussian adaptive threshold; a large block handles uneven scan lighting."""
    return cv2.adaptiveThreshold(
        img,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        blockSize=block_size,
        C=c,
    )


@transform("morphology")
def morphological_cleanup(img: np.ndarray) -> np.ndarray:
    """Open then close with a 2x2 kernel so isolated specks go but dots stay."""
    kernel = np.ones((2, 2), np.uint8)
    cleaned = cv2.morphologyEx(img, cv2.MORPH_OPEN, kernel, iterations=1)
    return cv2.morphologyEx(cleaned, cv2.MORPH_CLOSE, kernel, iterations=1)


@transform("statistics")
def statistics(img: np.ndarray) -> tuple[float, float]:
    """Return (mean, standard deviation) of the luminance."""
    mean, std = cv2.meanStdDev(img)
    return float(mean[0][0]), float(std[0][0])


def auto_threshold(img: np.ndarray, policy: ThresholdPolicy) -> int:
    """Derive a binarization threshold from the image statistics."""
    mean, std = statistics(img)
    if policy is ThresholdPolicy.MEAN_SCALED:
        return int(round(min(max(mean * 1.1, 100), 180)))
    return int(round(min(max(mean - 0.3 * std, 80), 200)))
