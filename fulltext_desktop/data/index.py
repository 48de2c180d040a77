"""Lance-backed full-text index: write sessions, reads and search.

Two tables live under the index directory:

* ``documents`` holds one row per indexed file (stored text, analyzed field
  lengths) plus the root marker rows.
* ``postings`` is the inverted index written at indexing time: one row per
  text field, analyzed term and document with the term's positions.

Queries read the postings of the terms they name and never re-analyze
stored text.
"""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Sequence, TypeVar

import pyarrow as pa
import pyarrow.compute as pc

from fulltext_desktop.data.queries import Query
from fulltext_desktop.data.schema import (
    DOCUMENT_SCHEMA,
    FIELD_FULL_PATH,
    FIELD_INDEXED_AT,
    FIELD_STORED_PATH,
    LENGTH_COLUMNS,
    POSTING_FIELD,
    POSTING_FIELD_LENGTH,
    POSTING_KEY,
    POSTING_POSITIONS,
    POSTING_TERM,
    POSTINGS_SCHEMA,
    TEXT_FIELDS,
    language_of_field,
    length_column,
)
from fulltext_desktop.foundation.analysis import Analyzer, analyzer_for_language
from fulltext_desktop.foundation.lance import (
    LanceTable,
    column_values,
    delete_values,
    delete_where,
    ensure_scalar_index,
    in_clauses,
    insert_missing,
    open_or_create_table,
    optimize_table,
    quote,
    replace_partition,
    scan,
    upsert_rows,
)

__all__ = [
    "DEFAULT_CLEANUP_AGE",
    "DEFAULT_INDEX_ROOT",
    "DEFAULT_OPTIMIZE_EVERY",
    "DEFAULT_POSTINGS_TABLE",
    "DEFAULT_TABLE_NAME",
    "IndexAccessError",
    "IndexReader",
    "IndexWriter",
    "LanceIndexStore",
    "Posting",
    "ScoreDoc",
    "TopDocs",
    "matches_prefix",
]

logger = logging.getLogger(__name__)

DEFAULT_INDEX_ROOT = "~/.index"
DEFAULT_TABLE_NAME = "documents"
DEFAULT_POSTINGS_TABLE = "postings"
DEFAULT_OPTIMIZE_EVERY = 100
DEFAULT_CLEANUP_AGE = timedelta(minutes=10)

# Upserts are merged in batches small enough for a single IN predicate.
_WRITE_BATCH = 256

T = TypeVar("T")


class IndexAccessError(RuntimeError):
    """Raised when the index storage cannot be opened, read or written."""


def matches_prefix(key: str, prefix: str) -> bool:
    """Return True when ``key`` is ``prefix`` itself or a path beneath it."""

    if key == prefix:
        return True
    base = prefix.rstrip("/" + os.sep)
    return key == base or key.startswith(base + os.sep)


def _batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass(frozen=True, slots=True)
class Posting:
    """Positions of one term in one document field plus that field's length."""

    positions: tuple[int, ...]
    length: int


@dataclass(slots=True)
class ScoreDoc:
    doc_id: str
    score: float


@dataclass(slots=True)
class TopDocs:
    """Ranked hits capped at the requested limit plus the uncapped match count."""

    total_hits: int
    score_docs: list[ScoreDoc] = field(default_factory=list)


class IndexWriter:
    """Buffered write session; nothing reaches storage until ``commit``.

    Pending changes are folded per key and applied table by table. The
    postings and the stored row of upserted documents are each replaced by a
    merge, so a concurrent reader sees either the old or the new version of a
    document and never a gap. Commit is not atomic across tables: a failure
    part way raises ``IndexAccessError`` with earlier steps already applied.
    """

    def __init__(self, store: LanceIndexStore) -> None:
        self._store = store
        self._purge = False
        self._upserts: dict[str, dict[str, Any]] = {}
        self._deletes: set[str] = set()
        self._root_adds: set[str] = set()
        self._root_deletes: set[str] = set()
        self._analyzers: dict[str, Analyzer] = {}
        self._closed = False

    def __enter__(self) -> IndexWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    def upsert_document(self, document: dict[str, Any]) -> None:
        """Replace the whole row stored under ``document['full_path']``."""

        key = document[FIELD_FULL_PATH]
        row = dict(document)
        row.setdefault(FIELD_INDEXED_AT, datetime.now(timezone.utc).isoformat())
        self._deletes.discard(key)
        self._upserts[key] = row

    def delete_document(self, full_path: str) -> None:
        self._upserts.pop(full_path, None)
        self._deletes.add(full_path)

    def delete_documents(self, full_paths: Iterable[str]) -> None:
        for full_path in full_paths:
            self.delete_document(full_path)

    def delete_prefix(self, prefix: str) -> int:
        """Queue deletion of every document at or below ``prefix``.

        Matching keys are resolved against the stored documents and this
        session's pending upserts; the number of matches is returned.
        """

        candidates = set(self._store.document_keys()) | set(self._upserts)
        keys = sorted(key for key in candidates if matches_prefix(key, prefix))
        self.delete_documents(keys)
        return len(keys)

    def add_root(self, path: str) -> None:
        self._root_deletes.discard(path)
        self._root_adds.add(path)

    def delete_root(self, path: str) -> None:
        self._root_adds.discard(path)
        self._root_deletes.add(path)

    def delete_all(self) -> None:
        self._upserts.clear()
        self._deletes.clear()
        self._root_adds.clear()
        self._root_deletes.clear()
        self._purge = True

    def commit(self) -> None:
        if self._closed:
            raise IndexAccessError("Write session is already closed.")
        self._closed = True
        documents, postings = self._store.table, self._store.postings_table
        try:
            if self._purge:
                delete_where(postings, f"{FIELD_FULL_PATH} IS NOT NULL")
                delete_where(
                    documents, f"{FIELD_FULL_PATH} IS NOT NULL OR {FIELD_STORED_PATH} IS NOT NULL"
                )
            if self._deletes:
                delete_values(postings, FIELD_FULL_PATH, self._deletes)
                delete_values(documents, FIELD_FULL_PATH, self._deletes)
            if self._root_deletes:
                delete_values(documents, FIELD_STORED_PATH, self._root_deletes)
            if self._root_adds:
                insert_missing(
                    documents,
                    DOCUMENT_SCHEMA,
                    FIELD_STORED_PATH,
                    [{FIELD_STORED_PATH: path} for path in sorted(self._root_adds)],
                )
            for batch in _batched(sorted(self._upserts), _WRITE_BATCH):
                self._write_batch(documents, postings, batch)
        except Exception as exc:
            raise IndexAccessError(f"Unable to write index at {self._store.root}: {exc}") from exc
        logger.debug(
            "Committed %d upserts, %d deletions, %d root changes",
            len(self._upserts),
            len(self._deletes),
            len(self._root_adds) + len(self._root_deletes),
        )
        self._store.note_commit()

    def rollback(self) -> None:
        self._upserts.clear()
        self._deletes.clear()
        self._root_adds.clear()
        self._root_deletes.clear()
        self._purge = False
        self._closed = True

    def _write_batch(self, documents: LanceTable, postings: LanceTable, keys: Sequence[str]) -> None:
        rows: list[dict[str, Any]] = []
        posting_rows: list[dict[str, Any]] = []
        for key in keys:
            row, document_postings = self._analyze(self._upserts[key])
            rows.append(row)
            posting_rows.extend(document_postings)
        # Postings first: a stored row is only reachable through its postings.
        (partition,) = in_clauses(FIELD_FULL_PATH, keys)
        replace_partition(postings, POSTINGS_SCHEMA, POSTING_KEY, partition, posting_rows)
        upsert_rows(documents, DOCUMENT_SCHEMA, FIELD_FULL_PATH, rows)

    def _analyze(self, document: dict[str, Any]) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        row = dict(document)
        key = row[FIELD_FULL_PATH]
        posting_rows: list[dict[str, Any]] = []
        for field_name in TEXT_FIELDS:
            text = row.get(field_name)
            if text is None:
                row[length_column(field_name)] = None
                continue
            positions: dict[str, list[int]] = defaultdict(list)
            length = 0
            for token in self._analyzer(field_name).tokens(text):
                positions[token.term].append(token.position)
                length += 1
            row[length_column(field_name)] = length
            posting_rows.extend(
                {
                    POSTING_FIELD: field_name,
                    POSTING_TERM: term,
                    FIELD_FULL_PATH: key,
                    POSTING_POSITIONS: term_positions,
                    POSTING_FIELD_LENGTH: length,
                }
                for term, term_positions in positions.items()
            )
        return row, posting_rows

    def _analyzer(self, field_name: str) -> Analyzer:
        language = language_of_field(field_name)
        if language not in self._analyzers:
            self._analyzers[language] = analyzer_for_language(language)
        return self._analyzers[language]


class IndexReader:
    """Read view over the stored documents and postings.

    Every call reads the latest committed version. Field statistics and
    term dictionaries are cached by the store per table version.
    """

    def __init__(self, store: LanceIndexStore) -> None:
        self._store = store
        self._analyzers: dict[str, Analyzer] = {}

    @property
    def num_docs(self) -> int:
        return self._store.count_documents()

    def analyzer(self, field_name: str) -> Analyzer:
        language = language_of_field(field_name)
        if language not in self._analyzers:
            self._analyzers[language] = analyzer_for_language(language)
        return self._analyzers[language]

    def roots(self) -> set[str]:
        return self._store.root_paths()

    def document(self, doc_id: str) -> dict[str, Any]:
        """Return the stored fields of the document keyed ``doc_id``."""

        found = self.documents([doc_id])
        if doc_id not in found:
            raise KeyError(f"No document stored under {doc_id!r}")
        return found[doc_id]

    def documents(self, doc_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Return the stored fields of every listed document that exists."""

        found: dict[str, dict[str, Any]] = {}
        for clause in in_clauses(FIELD_FULL_PATH, doc_ids):
            for row in self._store.fetch(self._store.table, where=clause).to_pylist():
                found[row[FIELD_FULL_PATH]] = row
        return found

    def postings(self, field_name: str, term: str) -> dict[str, Posting]:
        return self.postings_many(field_name, [term]).get(term, {})

    def postings_many(self, field_name: str, terms: Iterable[str]) -> dict[str, dict[str, Posting]]:
        """Return ``{term: {document key: Posting}}`` for the listed terms of one field."""

        self._check_field(field_name)
        result: dict[str, dict[str, Posting]] = {}
        for clause in in_clauses(POSTING_TERM, terms):
            rows = self._store.fetch(
                self._store.postings_table,
                columns=[POSTING_TERM, FIELD_FULL_PATH, POSTING_POSITIONS, POSTING_FIELD_LENGTH],
                where=f"{POSTING_FIELD} = {quote(field_name)} AND {clause}",
            )
            for row in rows.to_pylist():
                result.setdefault(row[POSTING_TERM], {})[row[FIELD_FULL_PATH]] = Posting(
                    positions=tuple(row[POSTING_POSITIONS] or ()),
                    length=row[POSTING_FIELD_LENGTH] or 0,
                )
        return result

    def terms(self, field_name: str) -> list[str]:
        self._check_field(field_name)
        return self._store.vocabulary(field_name)

    def doc_freq(self, field_name: str, term: str) -> int:
        return len(self.postings(field_name, term))

    def doc_count(self, field_name: str) -> int:
        self._check_field(field_name)
        return self._store.field_statistics()[field_name][0]

    def average_length(self, field_name: str) -> float:
        self._check_field(field_name)
        return self._store.field_statistics()[field_name][1]

    def search(self, query: Query, limit: int | None = None) -> TopDocs:
        """Rank matches by score (ties by key); ``limit`` of 0/None is unbounded."""

        scores = query.scores(self)
        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        if limit:
            ranked = ranked[:limit]
        return TopDocs(
            total_hits=len(scores),
            score_docs=[ScoreDoc(doc_id=doc_id, score=score) for doc_id, score in ranked],
        )

    @staticmethod
    def _check_field(field_name: str) -> None:
        if field_name not in TEXT_FIELDS:
            raise ValueError(f"'{field_name}' is not a searchable field")


class LanceIndexStore:
    """Owns the Lance tables that hold documents, root markers and postings."""

    def __init__(
        self,
        root: Path | str = DEFAULT_INDEX_ROOT,
        table_name: str = DEFAULT_TABLE_NAME,
        postings_table_name: str = DEFAULT_POSTINGS_TABLE,
        *,
        optimize_every: int = DEFAULT_OPTIMIZE_EVERY,
        cleanup_older_than: timedelta = DEFAULT_CLEANUP_AGE,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.table_name = table_name
        self.optimize_every = optimize_every
        self.cleanup_older_than = cleanup_older_than
        self._commits_since_optimize = 0
        self._statistics: tuple[tuple[int, int], dict[str, tuple[int, float]]] | None = None
        self._vocabularies: dict[str, tuple[tuple[int, int], list[str]]] = {}
        try:
            self.table = open_or_create_table(self.root, table_name, DOCUMENT_SCHEMA)
            self.postings_table = open_or_create_table(self.root, postings_table_name, POSTINGS_SCHEMA)
        except Exception as exc:
            raise IndexAccessError(f"Unable to open index at {self.root}: {exc}") from exc
        logger.debug("Opened index tables %s and %s at %s", table_name, postings_table_name, self.root)

    def write_session(self) -> IndexWriter:
        return IndexWriter(self)

    @contextmanager
    def read_session(self) -> Iterator[IndexReader]:
        yield IndexReader(self)

    def fetch(
        self,
        table: LanceTable,
        *,
        columns: Sequence[str] | None = None,
        where: str | None = None,
    ) -> pa.Table:
        return self._read(lambda: scan(table, columns=columns, where=where))

    def count_documents(self) -> int:
        return self._read(lambda: self.table.count_rows(f"{FIELD_FULL_PATH} IS NOT NULL"))

    def document_keys(self) -> list[str]:
        return self._read(lambda: column_values(self.table, FIELD_FULL_PATH))

    def root_paths(self) -> set[str]:
        return set(self._read(lambda: column_values(self.table, FIELD_STORED_PATH)))

    def versions(self) -> tuple[int, int]:
        return self._read(lambda: (self.table.version, self.postings_table.version))

    def field_statistics(self) -> dict[str, tuple[int, float]]:
        """Return ``{field: (documents with the field, average analyzed length)}``."""

        versions = self.versions()
        if self._statistics is not None and self._statistics[0] == versions:
            return self._statistics[1]
        lengths = self.fetch(
            self.table, columns=list(LENGTH_COLUMNS), where=f"{FIELD_FULL_PATH} IS NOT NULL"
        )
        statistics: dict[str, tuple[int, float]] = {}
        for field_name in TEXT_FIELDS:
            column = lengths.column(length_column(field_name))
            average = pc.mean(column).as_py() if lengths.num_rows else None
            statistics[field_name] = (pc.count(column).as_py(), float(average or 0.0))
        self._statistics = (versions, statistics)
        return statistics

    def vocabulary(self, field_name: str) -> list[str]:
        """Return the distinct analyzed terms stored for ``field_name``."""

        versions = self.versions()
        cached = self._vocabularies.get(field_name)
        if cached is not None and cached[0] == versions:
            return cached[1]
        terms = self.fetch(
            self.postings_table,
            columns=[POSTING_TERM],
            where=f"{POSTING_FIELD} = {quote(field_name)}",
        )
        vocabulary = pc.unique(terms.column(POSTING_TERM)).to_pylist() if terms.num_rows else []
        self._vocabularies[field_name] = (versions, vocabulary)
        return vocabulary

    def note_commit(self) -> None:
        self._commits_since_optimize += 1
        if self.optimize_every and self._commits_since_optimize >= self.optimize_every:
            self._commits_since_optimize = 0
            self.optimize()

    def optimize(self) -> None:
        """Index lookup columns, compact fragments and drop old table versions."""

        logger.debug("Optimizing index at %s", self.root)
        try:
            ensure_scalar_index(self.postings_table, POSTING_TERM)
            ensure_scalar_index(self.postings_table, FIELD_FULL_PATH)
            ensure_scalar_index(self.table, FIELD_FULL_PATH)
            for table in (self.table, self.postings_table):
                optimize_table(table, cleanup_older_than=self.cleanup_older_than)
        except Exception as exc:
            raise IndexAccessError(f"Unable to optimize index at {self.root}: {exc}") from exc
        self._commits_since_optimize = 0

    def _read(self, action: Callable[[], T]) -> T:
        try:
            return action()
        except Exception as exc:
            raise IndexAccessError(f"Unable to read index at {self.root}: {exc}") from exc
