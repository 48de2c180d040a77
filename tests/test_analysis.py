"""Tests for the language analyzers."""

from __future__ import annotations

import pytest

from fulltext_desktop.foundation.analysis import (
    EnglishAnalyzer,
    PolishAnalyzer,
    analyzer_for_language,
)


def test_english_analyzer_drops_stop_words_but_keeps_positions() -> None:
    tokens = list(EnglishAnalyzer().tokens("The quick fox"))

    assert [token.term for token in tokens] == ["quick", "fox"]
    assert [token.position for token in tokens] == [1, 2]
    assert (tokens[0].start, tokens[0].end) == (4, 9)


def test_english_analyzer_stems_and_strips_possessives() -> None:
    analyzer = EnglishAnalyzer()

    assert analyzer.terms("running runs") == analyzer.terms("run run")
    assert analyzer.terms("fox's") == ["fox"]
    assert analyzer.terms("Lighthouse") == analyzer.terms("lighthouse")


def test_polish_analyzer_lowercases_before_stemming() -> None:
    seen: list[str] = []

    def stemmer(word: str) -> str | None:
        seen.append(word)
        return None if word == "jaźń" else word[:-1]

    analyzer = PolishAnalyzer(stemmer=stemmer)

    assert analyzer.terms("Zażółć gęślą JAŹŃ Kot") == ["zażół", "gęśl", "jaźń", "kot"]
    # Short words never reach the stemmer; an unknown word is kept as written.
    assert seen == ["zażółć", "gęślą", "jaźń"]


def test_polish_analyzer_reduces_inflected_forms() -> None:
    analyzer = PolishAnalyzer()

    assert analyzer.terms("lisy") == analyzer.terms("lis") == ["lis"]
    tokens = list(analyzer.tokens("Szybki lis biegnie przez las"))
    assert [token.position for token in tokens] == [0, 1, 2, 3, 4]
    assert (tokens[1].term, tokens[4].term) == ("lis", "las")


def test_analyzer_for_language_rejects_unknown_language() -> None:
    assert isinstance(analyzer_for_language("pl"), PolishAnalyzer)
    with pytest.raises(ValueError, match="de"):
        analyzer_for_language("de")
