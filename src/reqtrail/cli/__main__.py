"""Main entry point for the reqtrail CLI when run as a module."""

import sys

from reqtrail.cli import main

if __name__ == "__main__":
    sys.exit(main())
