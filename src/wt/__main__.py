"""Allow running the CLI with ``python -m wt``."""
from __future__ import annotations

import sys

from wt.cli._dispatcher import main

if __name__ == "__main__":
    sys.exit(main())
