"""Language identification backed by ``langdetect``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

__all__ = [
    "DEFAULT_CERTAINTY_THRESHOLD",
    "LanguageIdentificationError",
    "LanguageIdentifier",
    "LanguageResult",
    "UnknownLanguageError",
    "UnsupportedLanguageError",
]

logger = logging.getLogger(__name__)

DEFAULT_CERTAINTY_THRESHOLD = 0.9

# langdetect samples randomly; a fixed seed keeps classification reproducible.
DetectorFactory.seed = 0


class LanguageIdentificationError(RuntimeError):
    """Base class for files skipped because of their language."""


class UnknownLanguageError(LanguageIdentificationError):
    """Raised when the language cannot be identified with enough confidence."""


class UnsupportedLanguageError(LanguageIdentificationError):
    """Raised when the identified language has no analyzer."""


@dataclass(frozen=True, slots=True)
class LanguageResult:
    """Most probable language of a text and whether it clears the threshold."""

    language: str
    probability: float
    is_reasonably_certain: bool


class LanguageIdentifier:
    """Wraps ``langdetect.detect_langs`` with a certainty threshold."""

    def __init__(
        self,
        *,
        threshold: float = DEFAULT_CERTAINTY_THRESHOLD,
        detector: Callable[[str], Sequence] = detect_langs,
    ) -> None:
        self.threshold = threshold
        self._detector = detector

    def identify(self, text: str) -> LanguageResult:
        """Return the most probable language of ``text``.

        Text without any detectable features yields an ``"unknown"`` result
        that is never reasonably certain.
        """

        try:
            candidates = list(self._detector(text))
        except LangDetectException as exc:
            logger.debug("Language detection failed: %s", exc)
            return LanguageResult(language="unknown", probability=0.0, is_reasonably_certain=False)
        if not candidates:
            return LanguageResult(language="unknown", probability=0.0, is_reasonably_certain=False)
        best = max(candidates, key=lambda candidate: candidate.prob)
        probability = float(best.prob)
        return LanguageResult(
            language=str(best.lang),
            probability=probability,
            is_reasonably_certain=probability >= self.threshold,
        )
