"""
Error taxonomy for the extraction pipeline.

Only ConfigurationError is meant to reach callers of the pipeline. The
others are raised by individual components and recovered at the attempt
boundary by the strategy orchestrator.
"""

from typing import Optional, Sequence


class ExtractionError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ExtractionError, ValueError):
    """Malformed or inconsistent configuration, detected before any work starts."""


class PreprocessingError(ExtractionError):
    """An image transform step failed."""

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step


class EngineInitializationError(ExtractionError):
    """The recognition engine rejected the requested language set or engine mode."""

    def __init__(self, message: str, languages: Sequence[str] = ()):
        super().__init__(message)
        self.languages = tuple(languages)


class RecognitionError(ExtractionError):
    """The recognition engine failed while reading an image."""
