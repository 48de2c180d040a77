"""Lazy directory-tree walks used by indexing and watch registration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

__all__ = ["iter_directories", "iter_files"]

logger = logging.getLogger(__name__)


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Unable to read directory %s: %s", exc.filename, exc.strerror or exc)


def iter_files(root: Path | str) -> Iterator[Path]:
    """Yield every regular file at or below ``root`` in sorted order.

    A regular file passed as ``root`` is yielded on its own. Symlinked
    directories are not followed.
    """

    base = Path(root)
    if base.is_file():
        yield base
        return
    for dirpath, dirnames, filenames in os.walk(base, onerror=_log_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path


def iter_directories(root: Path | str) -> Iterator[Path]:
    """Yield ``root`` and every directory below it, parents before children."""

    base = Path(root)
    if not base.is_dir():
        return
    for dirpath, dirnames, _ in os.walk(base, onerror=_log_walk_error):
        dirnames.sort()
        yield Path(dirpath)
