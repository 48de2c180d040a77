"""Tests for converter routing and text extraction."""

from __future__ import annotations

import pytest

from fulltext_desktop.foundation.conversion import (
    build_conversion_plan,
    extract_text_from_docling,
    extract_text_from_markitdown,
)
from fulltext_desktop.middleware.extraction import (
    ContentExtractor,
    ExtractionError,
    FileSignals,
    gather_file_signals,
    plan_order,
)


class StubMarkItDown:
    def __init__(self, text: str | None = "plain text") -> None:
        self.text = text
        self.calls: list[str] = []

    def convert(self, source: str) -> object:
        self.calls.append(source)

        class Result:
            text_content = self.text

        return Result()


class StubDocling:
    def __init__(self, text: str = "docling text") -> None:
        self.text = text
        self.calls: list[str] = []

    def convert(self, source: str) -> object:
        self.calls.append(source)
        text = self.text

        class Document:
            def export_to_text(self) -> str:
                return text

        class Result:
            document = Document()

        return Result()


class FailingConverter:
    def convert(self, source: str) -> object:
        raise RuntimeError("cannot parse")


def test_build_conversion_plan_includes_all_converters() -> None:
    assert build_conversion_plan(["docling"]).ordered_converters == ("docling", "markitdown")
    assert build_conversion_plan(["bogus"]).ordered_converters == ("markitdown", "docling")


def test_plan_order_prefers_docling_for_large_documents(tmp_path) -> None:
    small = FileSignals(path=tmp_path / "a.pdf", suffix=".pdf", size_bytes=1_000)
    large = FileSignals(path=tmp_path / "a.pdf", suffix=".pdf", size_bytes=20_000_000)
    large_text = FileSignals(path=tmp_path / "a.txt", suffix=".txt", size_bytes=20_000_000)

    assert plan_order(small)[0] == "markitdown"
    assert plan_order(large)[0] == "docling"
    assert plan_order(large_text)[0] == "markitdown"


def test_gather_file_signals_reads_metadata(tmp_path) -> None:
    path = tmp_path / "Note.TXT"
    path.write_text("hello", encoding="utf-8")

    signals = gather_file_signals(path)

    assert signals.suffix == ".txt"
    assert signals.size_bytes == 5
    assert signals.mime_type == "text/plain"


def test_extract_uses_markitdown_first(tmp_path) -> None:
    path = tmp_path / "a.txt"
    path.write_text("hello", encoding="utf-8")
    markitdown, docling = StubMarkItDown(), StubDocling()

    text = ContentExtractor(markitdown_converter=markitdown, docling_converter=docling).extract(path)

    assert text == "plain text"
    assert markitdown.calls == [str(path)]
    assert docling.calls == []


def test_extract_falls_back_when_converter_fails(tmp_path) -> None:
    path = tmp_path / "a.docx"
    path.write_bytes(b"PK")
    docling = StubDocling()

    extractor = ContentExtractor(markitdown_converter=FailingConverter(), docling_converter=docling)

    assert extractor.extract(path) == "docling text"
    assert docling.calls == [str(path)]


def test_extract_builds_converters_lazily(tmp_path) -> None:
    path = tmp_path / "a.txt"
    path.write_text("hello", encoding="utf-8")
    built: list[str] = []

    def factory():
        built.append("markitdown")
        return StubMarkItDown()

    extractor = ContentExtractor(markitdown_factory=factory)
    extractor.extract(path)
    extractor.extract(path)

    assert built == ["markitdown"]


def test_extract_raises_when_no_converter_yields_text(tmp_path) -> None:
    path = tmp_path / "blank.txt"
    path.write_text("", encoding="utf-8")

    extractor = ContentExtractor(
        markitdown_converter=StubMarkItDown(text="   "), docling_converter=FailingConverter()
    )

    with pytest.raises(ExtractionError, match="cannot parse"):
        extractor.extract(path)
    with pytest.raises(ExtractionError, match="Unable to read"):
        extractor.extract(tmp_path / "missing.txt")


def test_text_helpers_accept_plain_strings() -> None:
    assert extract_text_from_markitdown("body") == "body"
    assert extract_text_from_markitdown(None) is None
    assert extract_text_from_docling(object()) is None
