"""Entry point for the Lantern CLI.

This module serves as the main entry point when running the lantern package directly.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
