"""Middleware clients that talk to external services."""

from .extraction import ContentExtractor, ExtractionError, FileSignals, gather_file_signals
from .language import (
    LanguageIdentificationError,
    LanguageIdentifier,
    LanguageResult,
    UnknownLanguageError,
    UnsupportedLanguageError,
)

__all__ = [
    "ContentExtractor",
    "ExtractionError",
    "FileSignals",
    "LanguageIdentificationError",
    "LanguageIdentifier",
    "LanguageResult",
    "UnknownLanguageError",
    "UnsupportedLanguageError",
    "gather_file_signals",
]
