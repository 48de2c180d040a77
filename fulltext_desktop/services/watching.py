"""Live filesystem monitoring that keeps the index in step with watched roots."""

from __future__ import annotations

import enum
import logging
import os
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Hashable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from fulltext_desktop.data import IndexAccessError
from fulltext_desktop.services.sync import SyncEngine, canonicalize
from fulltext_desktop.services.tree import iter_directories

__all__ = [
    "ChangeEvent",
    "ChangeEventHandler",
    "ChangeKind",
    "UnknownWatchError",
    "WatchLoop",
    "WatchRegistry",
    "watch_roots",
]

logger = logging.getLogger(__name__)

WatchHandle = Hashable


class UnknownWatchError(KeyError):
    """Raised when an event refers to a watch handle that is no longer bound."""


class ChangeKind(str, enum.Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A change to ``name`` inside the directory covered by ``handle``."""

    kind: ChangeKind
    handle: WatchHandle
    name: str


class WatchRegistry:
    """Bidirectional table between watch handles and the directories they cover."""

    def __init__(self, observer: Any, events: queue.Queue) -> None:
        self.observer = observer
        self.events = events
        self.handler = ChangeEventHandler(self, events)
        self._directories: dict[WatchHandle, Path] = {}
        self._handles: dict[Path, WatchHandle] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def register_tree(self, path: Path | str) -> list[Path]:
        """Watch ``path`` and every directory below it; returns the directories covered."""

        base = canonicalize(path)
        registered: list[Path] = []
        for directory in iter_directories(base):
            self.register_directory(directory)
            registered.append(directory)
        return registered

    def register_directory(self, directory: Path) -> WatchHandle:
        handle = self.observer.schedule(self.handler, str(directory), recursive=False)
        with self._lock:
            previous = self._handles.get(directory)
            if previous is None:
                logger.info("register: %s", directory)
            elif previous != handle:
                logger.info("update: %s -> new watch", directory)
                self._directories.pop(previous, None)
            stale = self._directories.get(handle)
            if stale is not None and stale != directory:
                logger.info("update: %s -> %s", stale, directory)
                self._handles.pop(stale, None)
            self._directories[handle] = directory
            self._handles[directory] = handle
        return handle

    def unregister_tree(self, path: Path | str) -> list[Path]:
        """Stop watching ``path`` and every directory below it."""

        base = Path(path)
        with self._lock:
            doomed = [
                directory
                for directory in self._handles
                if directory == base or base in directory.parents
            ]
            handles = [self._handles.pop(directory) for directory in doomed]
            for handle in handles:
                self._directories.pop(handle, None)
        for directory, handle in zip(doomed, handles):
            try:
                self.observer.unschedule(handle)
            except KeyError:
                logger.debug("Watch for %s was already gone", directory)
            logger.info("unregister: %s", directory)
        return doomed

    def handle_for(self, directory: Path | str) -> WatchHandle | None:
        with self._lock:
            return self._handles.get(Path(directory))

    def resolve_event(self, handle: WatchHandle, relative_name: str) -> Path:
        """Return the absolute path of ``relative_name`` inside the watched directory."""

        with self._lock:
            directory = self._directories.get(handle)
        if directory is None:
            raise UnknownWatchError(f"No directory is bound to watch {handle!r}")
        return directory / relative_name


class ChangeEventHandler(FileSystemEventHandler):
    """Translates watchdog notifications into ``ChangeEvent`` items on a queue."""

    def __init__(self, registry: WatchRegistry, events: queue.Queue) -> None:
        super().__init__()
        self.registry = registry
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type == EVENT_TYPE_MOVED:
            self._enqueue(ChangeKind.DELETE, event.src_path)
            self._enqueue(ChangeKind.CREATE, event.dest_path)
        elif event.event_type == EVENT_TYPE_CREATED:
            self._enqueue(ChangeKind.CREATE, event.src_path)
        elif event.event_type == EVENT_TYPE_DELETED:
            self._enqueue(ChangeKind.DELETE, event.src_path)
        elif event.event_type == EVENT_TYPE_MODIFIED and not event.is_directory:
            self._enqueue(ChangeKind.MODIFY, event.src_path)

    def _enqueue(self, kind: ChangeKind, raw_path: str | bytes) -> None:
        path = os.fsdecode(raw_path)
        directory, name = os.path.split(path)
        handle = self.registry.handle_for(directory)
        if handle is None or not name:
            logger.debug("Ignoring %s event outside watched directories: %s", kind.value, path)
            return
        self.events.put(ChangeEvent(kind=kind, handle=handle, name=name))


class WatchLoop:
    """Single sequential consumer of change-event batches."""

    def __init__(
        self,
        engine: SyncEngine,
        registry: WatchRegistry,
        events: queue.Queue,
        *,
        poll_interval: float = 0.5,
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.events = events
        self.poll_interval = poll_interval

    def run(self, stop: threading.Event | None = None) -> None:
        """Process batches until ``stop`` is set or the process is interrupted."""

        while stop is None or not stop.is_set():
            batch = self.next_batch(timeout=None if stop is None else self.poll_interval)
            self.process_batch(batch)

    def next_batch(self, timeout: float | None = None) -> list[ChangeEvent]:
        """Block for one event, then drain whatever else is already queued."""

        try:
            batch = [self.events.get(timeout=timeout)]
        except queue.Empty:
            return []
        while True:
            try:
                batch.append(self.events.get_nowait())
            except queue.Empty:
                return batch

    def process_batch(self, batch: list[ChangeEvent]) -> None:
        for event in batch:
            try:
                self.handle_event(event)
            except IndexAccessError:
                raise
            except Exception:
                logger.exception("Error processing %s event for %s", event.kind.value, event.name)
            else:
                logger.debug("Processed %s event for %s", event.kind.value, event.name)

    def handle_event(self, event: ChangeEvent) -> None:
        path = self.registry.resolve_event(event.handle, event.name)
        if event.kind is ChangeKind.CREATE:
            if path.is_dir():
                self.registry.register_tree(path)
            self.engine.add_tree(path, register_as_root=False)
        elif event.kind is ChangeKind.MODIFY:
            self.engine.add_tree(path, register_as_root=False)
        else:
            self.registry.unregister_tree(path)
            self.engine.remove_by_prefix(str(path))


def watch_roots(engine: SyncEngine, *, observer: Any | None = None, stop: threading.Event | None = None) -> None:
    """Watch every registered root and keep the index in step until interrupted."""

    observer = observer or Observer()
    events: queue.Queue = queue.Queue()
    registry = WatchRegistry(observer, events)
    for root in sorted(engine.list_roots()):
        logger.info("Registering tree rooted at %s", root)
        try:
            registry.register_tree(root)
        except OSError as exc:
            logger.warning("Unable to watch %s: %s", root, exc)
    observer.start()
    try:
        WatchLoop(engine, registry, events).run(stop)
    finally:
        observer.stop()
        observer.join()
