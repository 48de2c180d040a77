"""Full-text desktop search: keeps a Lance index in step with watched folders."""

from .data import IndexAccessError, LanceIndexStore
from .middleware import (
    ContentExtractor,
    ExtractionError,
    LanguageIdentifier,
    UnknownLanguageError,
    UnsupportedLanguageError,
)
from .services import (
    InvalidSettingError,
    NoTermError,
    NotRegisteredError,
    PathNotFoundError,
    QueryMode,
    QueryTranslator,
    RootNotADirectoryError,
    SearchSession,
    SyncEngine,
    WatchLoop,
    WatchRegistry,
)

__all__ = [
    "ContentExtractor",
    "ExtractionError",
    "IndexAccessError",
    "InvalidSettingError",
    "LanceIndexStore",
    "LanguageIdentifier",
    "NoTermError",
    "NotRegisteredError",
    "PathNotFoundError",
    "QueryMode",
    "QueryTranslator",
    "RootNotADirectoryError",
    "SearchSession",
    "SyncEngine",
    "UnknownLanguageError",
    "UnsupportedLanguageError",
    "WatchLoop",
    "WatchRegistry",
]
