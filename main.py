"""CLI entry point for the fulltext-desktop indexer."""
import sys

from fulltext_desktop.presentation.index_cli import main

if __name__ == "__main__":
    sys.exit(main())
