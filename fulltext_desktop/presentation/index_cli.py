"""CLI for maintaining the index and running watch mode."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Sequence

from fulltext_desktop.data import IndexAccessError, LanceIndexStore
from fulltext_desktop.data.index import DEFAULT_INDEX_ROOT
from fulltext_desktop.services.sync import SyncEngine, SyncError
from fulltext_desktop.services.watching import watch_roots

__all__ = ["build_parser", "configure_logging", "main", "print_roots", "resolve_index_root", "run_index_cli"]

logger = logging.getLogger(__name__)

INDEX_DIR_ENV = "FULLTEXT_INDEX_DIR"


def resolve_index_root(override: str | None = None) -> Path:
    """Return the index directory from the CLI flag, the environment, or the default."""

    raw = override or os.environ.get(INDEX_DIR_ENV) or DEFAULT_INDEX_ROOT
    return Path(raw).expanduser()


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fulltext-index",
        description=(
            "Maintain the full-text index of watched folders. "
            "Without an action the indexer watches every registered root."
        ),
    )
    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("--purge", action="store_true", help="Delete every document and root.")
    actions.add_argument("--add", metavar="PATH", help="Register PATH as a root and index it.")
    actions.add_argument("--rm", metavar="PATH", help="Unregister the root PATH and drop its files.")
    actions.add_argument("--list", action="store_true", help="Print the registered roots.")
    actions.add_argument(
        "--reindex", action="store_true", help="Purge and re-index every registered root."
    )
    parser.add_argument(
        "--index-dir",
        default=None,
        help=f"Index location (default: ${INDEX_DIR_ENV} or {DEFAULT_INDEX_ROOT}).",
    )
    parser.add_argument(
        "--progress", action="store_true", help="Show a progress bar while indexing."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def print_roots(roots: Iterable[str]) -> None:
    for root in sorted(roots):
        print(root)


def run_index_cli(args: argparse.Namespace, engine: SyncEngine) -> int:
    """Dispatch one indexer action and return the process exit status."""

    if args.purge:
        logger.info("Purging index...")
        engine.purge_all()
    elif args.add:
        logger.info("Adding path %s...", args.add)
        indexed = engine.add_tree(args.add, register_as_root=True)
        logger.info("Indexed %d files under %s", len(indexed), args.add)
    elif args.rm:
        logger.info("Removing path %s...", args.rm)
        engine.remove_tree(args.rm)
    elif args.list:
        logger.info("Listing watched directories...")
        print_roots(engine.list_roots())
    elif args.reindex:
        logger.info("Reindexing watched directories...")
        indexed = engine.reindex()
        logger.info("Indexed %d files", len(indexed))
    else:
        logger.info("Entering watch mode")
        try:
            watch_roots(engine)
        except KeyboardInterrupt:
            logger.info("Watch mode interrupted")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        store = LanceIndexStore(resolve_index_root(args.index_dir))
        engine = SyncEngine(store, show_progress=args.progress)
        return run_index_cli(args, engine)
    except IndexAccessError as exc:
        logger.error("FATAL: %s", exc)
        return 1
    except (SyncError, OSError) as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point.
    sys.exit(main())
