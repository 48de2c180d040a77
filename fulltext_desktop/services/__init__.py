"""Business logic layer for synchronization, watching and search."""

from .query import (
    InvalidSettingError,
    NoTermError,
    QueryMode,
    QueryTranslator,
    SearchHit,
    SearchResults,
    SearchSession,
)
from .sync import (
    FileDocument,
    NotRegisteredError,
    PathNotFoundError,
    RootNotADirectoryError,
    SyncEngine,
)
from .watching import ChangeEvent, ChangeKind, WatchLoop, WatchRegistry, watch_roots

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "FileDocument",
    "InvalidSettingError",
    "NoTermError",
    "NotRegisteredError",
    "PathNotFoundError",
    "QueryMode",
    "QueryTranslator",
    "RootNotADirectoryError",
    "SearchHit",
    "SearchResults",
    "SearchSession",
    "SyncEngine",
    "WatchLoop",
    "WatchRegistry",
    "watch_roots",
]
