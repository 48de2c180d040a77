"""Turns session settings and raw input into structured queries and renders hits."""

from __future__ import annotations

import enum
import logging
import sys
from dataclasses import dataclass, field, replace
from typing import TextIO

from fulltext_desktop.data import LanceIndexStore
from fulltext_desktop.data.queries import (
    BooleanQuery,
    FuzzyQuery,
    PhraseQuery,
    Query,
    TermQuery,
)
from fulltext_desktop.data.schema import (
    FIELD_FULL_PATH,
    SUPPORTED_LANGUAGES,
    LanguageFields,
    fields_for_language,
)
from fulltext_desktop.foundation.analysis import Analyzer, analyzer_for_language
from fulltext_desktop.services.highlight import (
    ANSI_BOLD,
    ANSI_RESET,
    COLOR_MARKERS,
    DEFAULT_MAX_FRAGMENTS,
    PLAIN_MARKERS,
    Highlighter,
)

__all__ = [
    "InvalidSettingError",
    "NoTermError",
    "QueryMode",
    "QueryTranslator",
    "SearchHit",
    "SearchResults",
    "SearchSession",
]

logger = logging.getLogger(__name__)

_SWITCHES = {"on": True, "off": False}


class InvalidSettingError(ValueError):
    """Raised when a session setting receives a malformed value."""


class NoTermError(ValueError):
    """Raised when the query text produces no searchable term."""


class QueryMode(str, enum.Enum):
    TERM = "term"
    PHRASE = "phrase"
    FUZZY = "fuzzy"


def _parse_switch(name: str, value: str) -> bool:
    try:
        return _SWITCHES[value]
    except KeyError:
        raise InvalidSettingError(f"{name} must be 'on' or 'off', got {value!r}") from None


@dataclass(frozen=True, slots=True)
class SearchSession:
    """Immutable search settings; every setter returns a new session."""

    language: str = "en"
    mode: QueryMode = QueryMode.TERM
    limit: int = 0
    details: bool = False
    color: bool = False

    @property
    def fields(self) -> LanguageFields:
        return fields_for_language(self.language)

    def with_language(self, value: str) -> SearchSession:
        if value not in SUPPORTED_LANGUAGES:
            raise InvalidSettingError(
                f"Language must be one of {', '.join(SUPPORTED_LANGUAGES)}, got {value!r}"
            )
        logger.info("Setting language to %s", value)
        return replace(self, language=value)

    def with_mode(self, value: QueryMode | str) -> SearchSession:
        try:
            mode = QueryMode(value)
        except ValueError:
            raise InvalidSettingError(f"Unknown query mode {value!r}") from None
        logger.info("Setting query mode to %s", mode.value)
        return replace(self, mode=mode)

    def with_limit(self, value: int | str) -> SearchSession:
        """``0`` removes the limit."""
        try:
            limit = int(value)
        except (TypeError, ValueError):
            raise InvalidSettingError(f"Limit must be an integer, got {value!r}") from None
        if limit < 0:
            raise InvalidSettingError(f"Limit must not be negative, got {limit}")
        logger.info("Setting limit to %d", limit)
        return replace(self, limit=limit)

    def with_details(self, value: str) -> SearchSession:
        details = _parse_switch("details", value)
        logger.info("Setting details to %s", details)
        return replace(self, details=details)

    def with_color(self, value: str) -> SearchSession:
        color = _parse_switch("color", value)
        logger.info("Setting color to %s", color)
        return replace(self, color=color)


@dataclass(slots=True)
class SearchHit:
    doc_id: str
    score: float
    full_path: str
    body: str | None = None


@dataclass(slots=True)
class SearchResults:
    total_hits: int
    hits: list[SearchHit] = field(default_factory=list)


class QueryTranslator:
    """Builds, executes and renders searches against the index store."""

    def __init__(self, store: LanceIndexStore, *, output: TextIO | None = None) -> None:
        self.store = store
        self.output = output
        self._analyzers: dict[str, Analyzer] = {}

    def analyzer(self, language: str) -> Analyzer:
        if language not in self._analyzers:
            self._analyzers[language] = analyzer_for_language(language)
        return self._analyzers[language]

    def build_query(self, session: SearchSession, raw_input: str) -> Query:
        fields = session.fields
        analyzer = self.analyzer(session.language)
        if session.mode is QueryMode.PHRASE:
            return BooleanQuery(
                tuple(self._phrase_clause(analyzer, name, raw_input) for name in fields.all)
            )
        term = self._first_term(analyzer, raw_input)
        if session.mode is QueryMode.FUZZY:
            return BooleanQuery(tuple(FuzzyQuery(name, term) for name in fields.all))
        return BooleanQuery(tuple(TermQuery(name, term) for name in fields.all))

    def execute(self, session: SearchSession, query: Query, limit: int | None = None) -> SearchResults:
        """Run ``query`` and return hits capped at ``limit`` (0/None = unbounded)."""

        body_field = session.fields.body
        with self.store.read_session() as reader:
            top = reader.search(query, limit)
            stored_rows = reader.documents(score_doc.doc_id for score_doc in top.score_docs)
            hits = []
            for score_doc in top.score_docs:
                stored = stored_rows.get(score_doc.doc_id)
                if stored is None:
                    # Removed between ranking and loading.
                    continue
                hits.append(
                    SearchHit(
                        doc_id=score_doc.doc_id,
                        score=score_doc.score,
                        full_path=str(stored.get(FIELD_FULL_PATH)),
                        body=stored.get(body_field),
                    )
                )
        logger.info("Query matched %d documents", top.total_hits)
        return SearchResults(total_hits=top.total_hits, hits=hits)

    def render_results(
        self,
        results: SearchResults,
        session: SearchSession,
        query: Query | None = None,
        *,
        output: TextIO | None = None,
    ) -> None:
        stream = output or self.output or sys.stdout
        print(f"File count: {results.total_hits}", file=stream)
        if not session.details or query is None:
            for hit in results.hits:
                print(file=stream)
                print(hit.full_path, file=stream)
            return

        analyzer = self.analyzer(session.language)
        highlighter = Highlighter(markers=COLOR_MARKERS if session.color else PLAIN_MARKERS)
        body_field = session.fields.body
        for hit in results.hits:
            print(file=stream)
            print(f"{ANSI_BOLD}{hit.full_path}{ANSI_RESET}", file=stream)
            if not hit.body:
                continue
            tokens = list(analyzer.tokens(hit.body))
            spans = query.highlight_spans(body_field, tokens)
            for fragment in highlighter.best_fragments(
                hit.body, tokens, spans, DEFAULT_MAX_FRAGMENTS
            ):
                print(fragment, file=stream)

    def search(
        self, session: SearchSession, raw_input: str, *, output: TextIO | None = None
    ) -> SearchResults:
        """Build, execute and render a query for ``raw_input``."""

        query = self.build_query(session, raw_input)
        results = self.execute(session, query, session.limit)
        self.render_results(results, session, query, output=output)
        return results

    @staticmethod
    def _first_term(analyzer: Analyzer, raw_input: str) -> str:
        # Only the first analyzed word is searched in term and fuzzy modes.
        for token in analyzer.tokens(raw_input):
            logger.info("Term reduced to %s", token.term)
            return token.term
        raise NoTermError(f"No searchable term in {raw_input!r}")

    @staticmethod
    def _phrase_clause(analyzer: Analyzer, field_name: str, raw_input: str) -> Query:
        tokens = list(analyzer.tokens(raw_input))
        if not tokens:
            raise NoTermError(f"No searchable term in {raw_input!r}")
        if len(tokens) == 1:
            return TermQuery(field_name, tokens[0].term)
        first = tokens[0].position
        return PhraseQuery(
            field_name, tuple((token.position - first, token.term) for token in tokens)
        )
