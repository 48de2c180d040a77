"""Structured queries evaluated against an ``IndexReader``.

Scoring follows BM25 with the usual ``k1=1.2`` / ``b=0.75`` parameters over
the postings stored at indexing time. Every query exposes two operations:

* ``scores(reader)`` returns ``{document key: score}`` for every match.
* ``highlight_spans(field, tokens)`` returns the character spans of ``tokens``
  (already analyzed text of ``field``) that the query would match, which the
  highlighter uses to mark up excerpts.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Mapping, Sequence

from rapidfuzz import process
from rapidfuzz.distance import OSA

from fulltext_desktop.foundation.analysis import Token

if TYPE_CHECKING:  # pragma: no cover - import cycle guard for type checkers only.
    from fulltext_desktop.data.index import IndexReader, Posting

__all__ = [
    "BM25_B",
    "BM25_K1",
    "BooleanQuery",
    "DEFAULT_MAX_EDITS",
    "FuzzyQuery",
    "PhraseQuery",
    "Query",
    "TermQuery",
]

BM25_K1 = 1.2
BM25_B = 0.75
DEFAULT_MAX_EDITS = 2

Span = tuple[int, int]


def _idf(reader: IndexReader, field: str, doc_freq: int) -> float:
    doc_count = reader.doc_count(field)
    return math.log(1.0 + (doc_count - doc_freq + 0.5) / (doc_freq + 0.5))


def _tf_norm(reader: IndexReader, field: str, length: int, freq: float) -> float:
    average = reader.average_length(field) or 1.0
    return freq / (freq + BM25_K1 * (1.0 - BM25_B + BM25_B * length / average))


def _term_scores(
    reader: IndexReader, field: str, postings: Mapping[str, Posting], boost: float = 1.0
) -> dict[str, float]:
    if not postings:
        return {}
    idf = _idf(reader, field, len(postings))
    return {
        key: boost * idf * _tf_norm(reader, field, posting.length, len(posting.positions))
        for key, posting in postings.items()
    }


class Query:
    """Base class for structured queries."""

    def scores(self, reader: IndexReader) -> dict[str, float]:
        raise NotImplementedError

    def highlight_spans(self, field: str, tokens: Sequence[Token]) -> list[Span]:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class TermQuery(Query):
    """Exact match of one analyzed term in one field."""

    field: str
    term: str
    boost: float = 1.0

    def scores(self, reader: IndexReader) -> dict[str, float]:
        return _term_scores(reader, self.field, reader.postings(self.field, self.term), self.boost)

    def highlight_spans(self, field: str, tokens: Sequence[Token]) -> list[Span]:
        if field != self.field:
            return []
        return [(token.start, token.end) for token in tokens if token.term == self.term]


@dataclass(frozen=True, slots=True)
class PhraseQuery(Query):
    """Terms that must appear at the given relative positions.

    ``terms`` holds ``(offset, term)`` pairs; offsets are relative to the first
    term so gaps left by removed stop words are preserved.
    """

    field: str
    terms: tuple[tuple[int, str], ...]

    def scores(self, reader: IndexReader) -> dict[str, float]:
        if not self.terms:
            return {}
        by_term = reader.postings_many(self.field, [term for _, term in self.terms])
        postings = [by_term.get(term, {}) for _, term in self.terms]
        candidates = set(postings[0])
        for entry in postings[1:]:
            candidates &= set(entry)
        if not candidates:
            return {}
        idf = sum(_idf(reader, self.field, len(entry)) for entry in postings)
        results: dict[str, float] = {}
        for key in candidates:
            positions = [set(entry[key].positions) for entry in postings]
            freq = sum(1 for _ in self._match_starts(positions))
            if freq:
                length = postings[0][key].length
                results[key] = idf * _tf_norm(reader, self.field, length, freq)
        return results

    def highlight_spans(self, field: str, tokens: Sequence[Token]) -> list[Span]:
        if field != self.field or not self.terms:
            return []
        by_position: dict[int, Token] = {token.position: token for token in tokens}
        positions = [
            {token.position for token in tokens if token.term == term} for _, term in self.terms
        ]
        spans: list[Span] = []
        for start in self._match_starts(positions):
            for offset, _ in self.terms:
                token = by_position[start + offset]
                spans.append((token.start, token.end))
        return spans

    def _match_starts(self, positions: list[set[int]]) -> Iterator[int]:
        first_offset = self.terms[0][0]
        for candidate in sorted(positions[0]):
            start = candidate - first_offset
            if all(
                start + offset in term_positions
                for (offset, _), term_positions in zip(self.terms, positions)
            ):
                yield start


@dataclass(frozen=True, slots=True)
class FuzzyQuery(Query):
    """Matches indexed terms within an edit distance of ``term``."""

    field: str
    term: str
    max_edits: int = DEFAULT_MAX_EDITS
    prefix_length: int = 0

    @property
    def allowed_edits(self) -> int:
        # A term can never be fully rewritten: "ab" must not match "xy".
        return max(0, min(self.max_edits, len(self.term) - 1))

    def similarity(self, candidate: str) -> float | None:
        """Return the match boost for ``candidate`` or ``None`` when too distant."""

        prefix = self.term[: self.prefix_length]
        if prefix and not candidate.startswith(prefix):
            return None
        distance = OSA.distance(self.term, candidate)
        if distance > self.allowed_edits:
            return None
        shortest = min(len(self.term), len(candidate)) or 1
        return max(0.0, 1.0 - distance / shortest)

    def expand(self, vocabulary: Sequence[str]) -> dict[str, float]:
        """Return the boost of every term in ``vocabulary`` close enough to match."""

        close = process.extract(
            self.term,
            vocabulary,
            scorer=OSA.distance,
            score_cutoff=self.allowed_edits,
            limit=None,
        )
        boosts: dict[str, float] = {}
        for candidate, _, _ in close:
            boost = self.similarity(candidate)
            if boost:
                boosts[candidate] = boost
        return boosts

    def scores(self, reader: IndexReader) -> dict[str, float]:
        boosts = self.expand(reader.terms(self.field))
        if not boosts:
            return {}
        results: dict[str, float] = defaultdict(float)
        for candidate, postings in reader.postings_many(self.field, list(boosts)).items():
            for key, score in _term_scores(reader, self.field, postings, boosts[candidate]).items():
                results[key] += score
        return dict(results)

    def highlight_spans(self, field: str, tokens: Sequence[Token]) -> list[Span]:
        if field != self.field:
            return []
        return [(token.start, token.end) for token in tokens if self.similarity(token.term)]


@dataclass(frozen=True, slots=True)
class BooleanQuery(Query):
    """Any-match combination: a document matches when any clause does."""

    clauses: tuple[Query, ...]

    def scores(self, reader: IndexReader) -> dict[str, float]:
        results: dict[str, float] = defaultdict(float)
        for clause in self.clauses:
            for key, score in clause.scores(reader).items():
                results[key] += score
        return dict(results)

    def highlight_spans(self, field: str, tokens: Sequence[Token]) -> list[Span]:
        spans: set[Span] = set()
        for clause in self.clauses:
            spans.update(clause.highlight_spans(field, tokens))
        return sorted(spans)
