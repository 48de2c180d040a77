"""Shared fixtures: a real Lance index in ``tmp_path`` with stubbed extraction."""

from __future__ import annotations

from pathlib import Path

import pytest

from fulltext_desktop.data import LanceIndexStore
from fulltext_desktop.middleware import ExtractionError, LanguageResult
from fulltext_desktop.services.sync import SyncEngine


class StubExtractor:
    """Reads files as UTF-8; files containing ``!binary`` cannot be extracted."""

    def __init__(self) -> None:
        self.calls: list[Path] = []

    def extract(self, path: Path | str) -> str:
        self.calls.append(Path(path))
        text = Path(path).read_text(encoding="utf-8")
        if "!binary" in text:
            raise ExtractionError(f"Unable to extract text from {path}")
        return text


class StubIdentifier:
    """Tags ``[pl]`` text as Polish, ``[??]`` as uncertain, ``[de]`` as German."""

    def identify(self, text: str) -> LanguageResult:
        if "[??]" in text:
            return LanguageResult(language="en", probability=0.4, is_reasonably_certain=False)
        if "[pl]" in text:
            return LanguageResult(language="pl", probability=0.99, is_reasonably_certain=True)
        if "[de]" in text:
            return LanguageResult(language="de", probability=0.99, is_reasonably_certain=True)
        return LanguageResult(language="en", probability=0.99, is_reasonably_certain=True)


@pytest.fixture()
def store(tmp_path) -> LanceIndexStore:
    return LanceIndexStore(tmp_path / "index")


@pytest.fixture()
def engine(store) -> SyncEngine:
    return SyncEngine(store, extractor=StubExtractor(), identifier=StubIdentifier())


@pytest.fixture()
def docs(tmp_path) -> Path:
    root = tmp_path / "docs"
    root.mkdir()
    return root.resolve()
