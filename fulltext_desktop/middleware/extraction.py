"""Plain-text extraction with converter routing by file type."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from fulltext_desktop.foundation.conversion import (
    build_conversion_plan,
    convert_with_docling,
    convert_with_markitdown,
    create_docling_converter,
    create_markitdown_converter,
)

__all__ = ["ContentExtractor", "ExtractionError", "FileSignals", "gather_file_signals", "plan_order"]

logger = logging.getLogger(__name__)

_DOCLING_FORWARD_SUFFIXES: set[str] = {
    ".pdf",
    ".ppt",
    ".pptx",
    ".xls",
    ".xlsx",
    ".doc",
    ".docx",
    ".odt",
    ".rtf",
}

LARGE_FILE_THRESHOLD_MB = 8.0


class ExtractionError(RuntimeError):
    """Raised when a file cannot be turned into plain text."""


@dataclass(slots=True)
class FileSignals:
    """Metadata collected from the source file to guide routing."""

    path: Path
    suffix: str
    size_bytes: int
    mime_type: str | None = None

    @property
    def size_megabytes(self) -> float:
        return self.size_bytes / 1_000_000 if self.size_bytes else 0.0


def gather_file_signals(path: Path) -> FileSignals:
    """Collect the statistics that influence converter selection."""

    stat = path.stat()
    mime_type, _ = mimetypes.guess_type(str(path))
    return FileSignals(
        path=path,
        suffix=path.suffix.lower(),
        size_bytes=stat.st_size,
        mime_type=mime_type,
    )


def plan_order(signals: FileSignals) -> list[str]:
    """Prefer Docling for large office/PDF documents, MarkItDown otherwise."""

    if signals.suffix in _DOCLING_FORWARD_SUFFIXES and signals.size_megabytes >= LARGE_FILE_THRESHOLD_MB:
        return ["docling", "markitdown"]
    return ["markitdown", "docling"]


class ContentExtractor:
    """Turns files into plain text, trying converters in routed order."""

    def __init__(
        self,
        *,
        markitdown_converter: Any | None = None,
        docling_converter: Any | None = None,
        markitdown_factory: Callable[[], Any] = create_markitdown_converter,
        docling_factory: Callable[[], Any] = create_docling_converter,
    ) -> None:
        self._converters: dict[str, Any] = {}
        if markitdown_converter is not None:
            self._converters["markitdown"] = markitdown_converter
        if docling_converter is not None:
            self._converters["docling"] = docling_converter
        self._factories: dict[str, Callable[[], Any]] = {
            "markitdown": markitdown_factory,
            "docling": docling_factory,
        }

    def extract(self, path: Path | str) -> str:
        """Return the plain text of ``path`` or raise ``ExtractionError``."""

        source_path = Path(path)
        try:
            signals = gather_file_signals(source_path)
        except OSError as exc:
            raise ExtractionError(f"Unable to read {source_path}: {exc}") from exc

        errors: list[str] = []
        plan = build_conversion_plan(plan_order(signals))
        for converter_name in plan.ordered_converters:
            try:
                converter = self._converter(converter_name)
                if converter_name == "markitdown":
                    text = convert_with_markitdown(source_path, converter=converter)
                else:
                    text = convert_with_docling(source_path, converter=converter)
            except Exception as exc:
                errors.append(f"{converter_name}: {exc}")
                logger.debug("%s failed on %s: %s", converter_name, source_path, exc)
                continue
            if not text:
                errors.append(f"{converter_name}: returned no text")
                continue
            logger.debug("Extracted %s using %s", source_path, converter_name)
            return text

        raise ExtractionError(f"Unable to extract text from {source_path} ({'; '.join(errors)})")

    def _converter(self, name: str) -> Any:
        if name not in self._converters:
            self._converters[name] = self._factories[name]()
        return self._converters[name]
