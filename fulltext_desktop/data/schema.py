"""Field naming conventions shared by the indexer and the searcher."""

from __future__ import annotations

from dataclasses import dataclass

import pyarrow as pa

__all__ = [
    "DOCUMENT_SCHEMA",
    "FIELD_FULL_PATH",
    "FIELD_INDEXED_AT",
    "FIELD_STORED_PATH",
    "LENGTH_COLUMNS",
    "LanguageFields",
    "POSTINGS_SCHEMA",
    "POSTING_FIELD",
    "POSTING_FIELD_LENGTH",
    "POSTING_KEY",
    "POSTING_POSITIONS",
    "POSTING_TERM",
    "SUPPORTED_LANGUAGES",
    "TEXT_FIELDS",
    "fields_for_language",
    "language_of_field",
    "length_column",
]

SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "pl")

FIELD_FULL_PATH = "full_path"
FIELD_STORED_PATH = "stored_path"
FIELD_INDEXED_AT = "indexed_at"


@dataclass(frozen=True, slots=True)
class LanguageFields:
    """Body and name column names for one language."""

    language: str
    body: str
    name: str

    @property
    def all(self) -> tuple[str, str]:
        return (self.body, self.name)


def fields_for_language(language: str) -> LanguageFields:
    """Return the column names that hold text analyzed as ``language``."""

    if language not in SUPPORTED_LANGUAGES:
        raise ValueError(f"Unsupported language '{language}'")
    return LanguageFields(language=language, body=f"body_{language}", name=f"name_{language}")


TEXT_FIELDS: tuple[str, ...] = tuple(
    field for language in SUPPORTED_LANGUAGES for field in fields_for_language(language).all
)


def language_of_field(field: str) -> str:
    """Return the language suffix of a text column such as ``body_pl``."""

    if field not in TEXT_FIELDS:
        raise ValueError(f"'{field}' is not a language-specific text field")
    return field.rsplit("_", 1)[1]


def length_column(field: str) -> str:
    """Return the column holding the analyzed token count of ``field``."""

    return f"{field}_length"


LENGTH_COLUMNS: tuple[str, ...] = tuple(length_column(field) for field in TEXT_FIELDS)

DOCUMENT_SCHEMA = pa.schema(
    [
        pa.field(FIELD_FULL_PATH, pa.string()),
        pa.field(FIELD_STORED_PATH, pa.string()),
        *(pa.field(field, pa.string()) for field in TEXT_FIELDS),
        *(pa.field(column, pa.int32()) for column in LENGTH_COLUMNS),
        pa.field(FIELD_INDEXED_AT, pa.string()),
    ]
)

# One row per (text field, analyzed term, document): the persisted inverted index.
POSTING_FIELD = "field_name"
POSTING_TERM = "term"
POSTING_POSITIONS = "positions"
POSTING_FIELD_LENGTH = "field_length"
POSTING_KEY: tuple[str, ...] = (POSTING_FIELD, POSTING_TERM, FIELD_FULL_PATH)

POSTINGS_SCHEMA = pa.schema(
    [
        pa.field(POSTING_FIELD, pa.string()),
        pa.field(POSTING_TERM, pa.string()),
        pa.field(FIELD_FULL_PATH, pa.string()),
        pa.field(POSTING_POSITIONS, pa.list_(pa.int32())),
        pa.field(POSTING_FIELD_LENGTH, pa.int32()),
    ]
)
