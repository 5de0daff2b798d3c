"""CLI entrypoint for the before/after wipe video generator."""

import sys

from before_after.cli import main


if __name__ == "__main__":
    sys.exit(main())
