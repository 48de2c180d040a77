"""Low-level helpers for running MarkItDown and Docling conversions."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

KNOWN_CONVERTERS: tuple[str, ...] = ("markitdown", "docling")


@dataclass(slots=True)
class ConversionPlan:
    """Defines the ordered converters to attempt for a file."""

    ordered_converters: Sequence[str]


def build_conversion_plan(preferred: Sequence[str] | None = None) -> ConversionPlan:
    """Return a plan ensuring both converters are represented once."""

    plan: list[str] = []
    for name in preferred or []:
        if name in KNOWN_CONVERTERS and name not in plan:
            plan.append(name)
    for fallback in KNOWN_CONVERTERS:
        if fallback not in plan:
            plan.append(fallback)
    return ConversionPlan(tuple(plan))


def extract_text_from_markitdown(result: Any) -> str | None:
    """Pull text content from MarkItDown outputs."""
    for attr in ("text_content", "markdown", "text"):
        value = getattr(result, attr, None)
        if isinstance(value, str) and value.strip():
            return value
    if isinstance(result, str) and result.strip():
        return result
    return None


def extract_text_from_docling(result: Any) -> str | None:
    """Pull a plain-text export from Docling results."""
    document = getattr(result, "document", None)
    for candidate in (document, result):
        if candidate is None:
            continue
        for exporter in ("export_to_text", "export_to_markdown"):
            export = getattr(candidate, exporter, None)
            if export is None:
                continue
            text = export()
            if isinstance(text, str) and text.strip():
                return text
    return None


def create_markitdown_converter() -> Any:
    from markitdown import MarkItDown

    return MarkItDown()


def create_docling_converter() -> Any:
    # Docling is an optional extra; the import error surfaces as a failed attempt.
    from docling.document_converter import DocumentConverter

    return DocumentConverter()


def convert_with_markitdown(source_path: Path, *, converter: Any) -> str | None:
    """Invoke MarkItDown for ``source_path`` and return its text."""
    result = converter.convert(str(source_path))
    return extract_text_from_markitdown(result)


def convert_with_docling(source_path: Path, *, converter: Any) -> str | None:
    """Invoke Docling for ``source_path`` and return its text."""
    result = converter.convert(str(source_path))
    return extract_text_from_docling(result)
