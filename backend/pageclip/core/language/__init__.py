"""Language detection."""

from .detector import (
    LANGUAGE_NAMES,
    LanguageDetector,
    detect_language_by_characters,
    detect_source_language,
)

__all__ = [
    "LANGUAGE_NAMES",
    "LanguageDetector",
    "detect_language_by_characters",
    "detect_source_language",
]
