"""Interactive search loop with ``%`` meta-commands."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Sequence, TextIO

from fulltext_desktop.data import IndexAccessError, LanceIndexStore
from fulltext_desktop.presentation.index_cli import configure_logging, resolve_index_root
from fulltext_desktop.services.query import (
    InvalidSettingError,
    NoTermError,
    QueryMode,
    QueryTranslator,
    SearchSession,
)

__all__ = ["USAGE", "apply_command", "main", "run_search_repl"]

logger = logging.getLogger(__name__)

USAGE = (
    "Usage: [%lang en/pl] [%details on/off] [%color on/off] [%limit num] "
    "[%term/phrase/fuzzy] [query]"
)

_VALUE_COMMANDS: dict[str, Callable[[SearchSession, str], SearchSession]] = {
    "%lang": SearchSession.with_language,
    "%details": SearchSession.with_details,
    "%color": SearchSession.with_color,
    "%limit": SearchSession.with_limit,
}

_MODE_COMMANDS: dict[str, QueryMode] = {
    "%term": QueryMode.TERM,
    "%phrase": QueryMode.PHRASE,
    "%fuzzy": QueryMode.FUZZY,
}


def apply_command(session: SearchSession, line: str) -> SearchSession:
    """Apply a ``%`` meta-command to ``session``.

    Raises ``InvalidSettingError`` for unknown commands, wrong arity or bad
    values; the caller keeps its previous session in that case.
    """

    tokens = line.split()
    command, arguments = tokens[0], tokens[1:]
    if command in _VALUE_COMMANDS and len(arguments) == 1:
        return _VALUE_COMMANDS[command](session, arguments[0])
    if command in _MODE_COMMANDS and not arguments:
        return session.with_mode(_MODE_COMMANDS[command])
    raise InvalidSettingError(f"Unrecognized command {line!r}")


def run_search_repl(
    translator: QueryTranslator,
    *,
    session: SearchSession | None = None,
    read_line: Callable[[str], str] = input,
    output: TextIO | None = None,
) -> SearchSession:
    """Read commands until EOF or Ctrl-C; returns the final session."""

    stream = output or sys.stdout
    session = session or SearchSession()
    while True:
        try:
            line = read_line("> ").strip()
        except (EOFError, KeyboardInterrupt):
            return session
        if not line:
            logger.info("Incorrect line.")
            print(USAGE, file=stream)
        elif line.startswith("%"):
            try:
                session = apply_command(session, line)
            except InvalidSettingError as exc:
                logger.info("Incorrect line: %s", exc)
                print(USAGE, file=stream)
        else:
            try:
                translator.search(session, line, output=stream)
            except NoTermError as exc:
                logger.warning("%s", exc)
                print(str(exc), file=stream)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fulltext-search",
        description="Interactively search the full-text index.",
        epilog=USAGE,
    )
    parser.add_argument("--index-dir", default=None, help="Index location to search.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    logger.info("Warming up...")
    index_root = resolve_index_root(args.index_dir)
    try:
        logger.info("Trying to open index %s for searching", index_root)
        translator = QueryTranslator(LanceIndexStore(index_root))
        run_search_repl(translator)
    except IndexAccessError as exc:
        logger.error("FATAL: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point.
    sys.exit(main())
