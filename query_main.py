"""Interactive search over the index built by ``main.py``."""
import sys

from fulltext_desktop.presentation.search_cli import main

if __name__ == "__main__":
    sys.exit(main())
