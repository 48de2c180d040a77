"""Keeps the index consistent with the watched directory trees."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

from tqdm import tqdm

from fulltext_desktop.data import LanceIndexStore
from fulltext_desktop.data.schema import (
    FIELD_FULL_PATH,
    FIELD_INDEXED_AT,
    SUPPORTED_LANGUAGES,
    fields_for_language,
)
from fulltext_desktop.middleware import (
    ContentExtractor,
    ExtractionError,
    LanguageIdentificationError,
    LanguageIdentifier,
    UnknownLanguageError,
    UnsupportedLanguageError,
)
from fulltext_desktop.services.tree import iter_files

__all__ = [
    "DEFAULT_SESSION_SIZE",
    "FileDocument",
    "NotRegisteredError",
    "PathNotFoundError",
    "RootNotADirectoryError",
    "SyncEngine",
    "SyncError",
    "canonicalize",
]

logger = logging.getLogger(__name__)


class SyncError(RuntimeError):
    """Base class for synchronization failures reported to callers."""


class PathNotFoundError(SyncError, FileNotFoundError):
    """Raised when a path to add or remove does not exist."""


class RootNotADirectoryError(SyncError, NotADirectoryError):
    """Raised when a watched root is not a directory."""


class NotRegisteredError(SyncError, LookupError):
    """Raised when removing a root that was never added."""


# Files indexed per write session during tree walks.
DEFAULT_SESSION_SIZE = 256

# Failures that only concern a single file; tree walks log them and move on.
PER_FILE_ERRORS: tuple[type[BaseException], ...] = (
    ExtractionError,
    LanguageIdentificationError,
    PathNotFoundError,
    OSError,
)


def canonicalize(path: Path | str, *, require_directory: bool = False) -> Path:
    """Return the absolute, symlink-resolved form of an existing ``path``."""

    candidate = Path(path).expanduser()
    if not candidate.exists():
        raise PathNotFoundError(f"Path {candidate} does not exist.")
    resolved = candidate.resolve(strict=True)
    if require_directory and not resolved.is_dir():
        raise RootNotADirectoryError(f"Path {resolved} is not a directory.")
    return resolved


@dataclass(frozen=True, slots=True)
class FileDocument:
    """One indexed file with its text stored under language-specific fields."""

    full_path: str
    language: str
    body: str
    name: str

    def to_record(self) -> dict[str, Any]:
        fields = fields_for_language(self.language)
        return {
            FIELD_FULL_PATH: self.full_path,
            fields.body: self.body,
            fields.name: self.name,
            FIELD_INDEXED_AT: datetime.now(timezone.utc).isoformat(),
        }


class SyncEngine:
    """Adds, removes and lists watched roots and the files beneath them.

    Each mutation is committed before the method returns. Tree walks write
    ``session_size`` files per write session. The engine holds no lock;
    callers serialize mutations.
    """

    def __init__(
        self,
        store: LanceIndexStore,
        *,
        extractor: ContentExtractor | None = None,
        identifier: LanguageIdentifier | None = None,
        show_progress: bool = False,
        session_size: int = DEFAULT_SESSION_SIZE,
    ) -> None:
        self.store = store
        self.extractor = extractor or ContentExtractor()
        self.identifier = identifier or LanguageIdentifier()
        self.show_progress = show_progress
        self.session_size = max(1, session_size)

    def add_tree(self, path: Path | str, *, register_as_root: bool = False) -> list[Path]:
        """Index every file under ``path``, optionally registering it as a root.

        Files that cannot be indexed are logged and skipped. Returns the sorted
        canonical paths that were written to the index. Registering a root
        compacts the index afterwards.
        """

        base_path = canonicalize(path, require_directory=register_as_root)
        if register_as_root:
            logger.info("Adding root %s (derived from %s)", base_path, path)

        files: Iterable[Path] = iter_files(base_path)
        if self.show_progress:
            files = tqdm(files, desc=f"Indexing {base_path.name}", unit="file", leave=False)

        indexed: list[Path] = []
        pending: list[FileDocument] = []
        for document in self._prepare_all(files):
            pending.append(document)
            if len(pending) >= self.session_size:
                self._upsert(pending)
                indexed.extend(Path(item.full_path) for item in pending)
                pending = []
        # The root marker shares the last session so an empty tree still registers.
        self._upsert(pending, root=str(base_path) if register_as_root else None)
        indexed.extend(Path(item.full_path) for item in pending)

        if register_as_root:
            self.store.optimize()
        indexed.sort()
        return indexed

    def add_file(self, path: Path | str) -> FileDocument:
        """Extract, classify and upsert a single file."""

        document = self.prepare_file(path)
        self._upsert([document])
        return document

    def prepare_file(self, path: Path | str) -> FileDocument:
        """Extract and classify a file without touching the index."""

        source_path = canonicalize(path)
        body = self.extractor.extract(source_path)
        identification = self.identifier.identify(body)
        if not identification.is_reasonably_certain:
            raise UnknownLanguageError(
                f"Not reasonably certain of the language of {source_path} "
                f"(probably {identification.language}, p={identification.probability:.2f})"
            )
        if identification.language not in SUPPORTED_LANGUAGES:
            raise UnsupportedLanguageError(
                f"Language {identification.language} of {source_path} is not supported"
            )
        return FileDocument(
            full_path=str(source_path),
            language=identification.language,
            body=body,
            name=source_path.name,
        )

    def remove_tree(self, path: Path | str) -> None:
        """Unregister a root and drop the documents of the files still beneath it.

        The root marker and every document are removed in one write session.
        Files that vanish during the walk are skipped.
        """

        base_path = canonicalize(path, require_directory=True)
        if str(base_path) not in self.list_roots():
            raise NotRegisteredError(f"Path {base_path} has not been added as a root.")

        logger.info("Removing root %s (derived from %s)", base_path, path)
        keys: list[str] = []
        for source_file in iter_files(base_path):
            try:
                key = canonicalize(source_file)
            except PathNotFoundError as exc:
                logger.info("Skipping %s during removal: %s", source_file, exc)
                continue
            logger.debug("Removing %s", key)
            keys.append(str(key))

        with self.store.write_session() as writer:
            writer.delete_root(str(base_path))
            writer.delete_documents(keys)

    def remove_by_prefix(self, raw_path: Path | str) -> int:
        """Drop every document at or below ``raw_path`` without canonicalizing it."""

        prefix = str(raw_path)
        with self.store.write_session() as writer:
            removed = writer.delete_prefix(prefix)
        logger.info("Removed %d documents under %s", removed, prefix)
        return removed

    def list_roots(self) -> set[str]:
        return self.store.root_paths()

    def purge_all(self) -> None:
        """Delete every document and root marker."""

        logger.info("Purging index at %s", self.store.root)
        with self.store.write_session() as writer:
            writer.delete_all()
        self.store.optimize()

    def reindex(self) -> list[Path]:
        """Rebuild the index from scratch for every registered root."""

        roots = sorted(self.list_roots())
        self.purge_all()
        indexed: list[Path] = []
        for root in roots:
            try:
                indexed.extend(self.add_tree(root, register_as_root=True))
            except (PathNotFoundError, RootNotADirectoryError) as exc:
                logger.warning("Dropping root %s: %s", root, exc)
        return indexed

    def _prepare_all(self, files: Iterable[Path]) -> Iterator[FileDocument]:
        for source_file in files:
            try:
                yield self.prepare_file(source_file)
            except PER_FILE_ERRORS as exc:
                logger.warning("Did not index %s: %s", source_file, exc)

    def _upsert(self, documents: list[FileDocument], *, root: str | None = None) -> None:
        if not documents and root is None:
            return
        with self.store.write_session() as writer:
            if root is not None:
                writer.add_root(root)
            for document in documents:
                logger.info("Adding %s to index (language %s)", document.full_path, document.language)
                writer.upsert_document(document.to_record())
