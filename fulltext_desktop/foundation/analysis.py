"""Language analyzers that turn raw text into positioned index terms."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterator

import snowballstemmer
from pystempel import Stemmer as StempelStemmer

__all__ = [
    "Analyzer",
    "EnglishAnalyzer",
    "ENGLISH_STOP_WORDS",
    "PolishAnalyzer",
    "Token",
    "analyzer_for_language",
    "polish_stemmer",
]

_WORD_PATTERN = re.compile(r"\w+(?:['’]\w+)*")

# Same stop set the classic English analyzers ship with.
ENGLISH_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if",
        "in", "into", "is", "it", "no", "not", "of", "on", "or", "such",
        "that", "the", "their", "then", "there", "these", "they", "this",
        "to", "was", "will", "with",
    }
)


@dataclass(frozen=True, slots=True)
class Token:
    """A single analyzed term with its position and character offsets."""

    term: str
    position: int
    start: int
    end: int


class Analyzer:
    """Tokenize on word boundaries and lower-case every term.

    Positions count every word seen by the tokenizer, so terms removed by a
    filter leave a gap that phrase matching respects.
    """

    language: str = ""

    def tokens(self, text: str) -> Iterator[Token]:
        position = -1
        for match in _WORD_PATTERN.finditer(text or ""):
            position += 1
            term = self.normalize(match.group(0))
            if term:
                yield Token(term, position, match.start(), match.end())

    def terms(self, text: str) -> list[str]:
        return [token.term for token in self.tokens(text)]

    def normalize(self, word: str) -> str | None:
        return word.lower()


class EnglishAnalyzer(Analyzer):
    """Possessive stripping, lower-casing, stop words and Snowball stemming."""

    language = "en"

    def __init__(self, *, stop_words: frozenset[str] = ENGLISH_STOP_WORDS) -> None:
        self.stop_words = stop_words
        self._stemmer = snowballstemmer.stemmer("english")

    def normalize(self, word: str) -> str | None:
        word = word.lower().replace("’", "'")
        if word.endswith("'s"):
            word = word[:-2]
        if not word or word in self.stop_words:
            return None
        return self._stemmer.stemWord(word)


class PolishAnalyzer(Analyzer):
    """Lower-casing and Stempel stemming, so inflected forms share one term.

    Words of three letters or fewer are kept as written; Stempel leaves a
    word unchanged when it has no rule for it.
    """

    language = "pl"
    min_stem_length = 3

    def __init__(self, *, stemmer: Callable[[str], str | None] | None = None) -> None:
        self._stemmer = stemmer or polish_stemmer()

    def normalize(self, word: str) -> str | None:
        word = word.lower()
        if len(word) <= self.min_stem_length:
            return word
        return self._stemmer(word) or word


@lru_cache(maxsize=1)
def polish_stemmer() -> Callable[[str], str | None]:
    """Load the Stempel tables trained on the Polimorf dictionary once per process."""

    return StempelStemmer.polimorf()


_ANALYZERS: dict[str, type[Analyzer]] = {
    "en": EnglishAnalyzer,
    "pl": PolishAnalyzer,
}


def analyzer_for_language(language: str) -> Analyzer:
    """Return a fresh analyzer for ``language``."""

    try:
        return _ANALYZERS[language]()
    except KeyError as exc:
        raise ValueError(f"No analyzer available for language '{language}'") from exc
