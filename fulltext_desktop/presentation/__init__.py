"""Presentation helpers for the indexer and search CLIs."""

from .index_cli import build_parser, print_roots, run_index_cli
from .search_cli import USAGE, apply_command, run_search_repl

__all__ = [
    "USAGE",
    "apply_command",
    "build_parser",
    "print_roots",
    "run_index_cli",
    "run_search_repl",
]
