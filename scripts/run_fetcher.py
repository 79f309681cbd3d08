#!/usr/bin/env python3
"""Entry point: run the server info fetcher. Same flags as `python -m infofetcher`."""

import os
import sys

# Project root: always resolve relative to script location, not cwd
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _PROJECT_ROOT)
os.chdir(_PROJECT_ROOT)  # Ensure config paths resolve from project root

if __name__ == "__main__":
    from infofetcher.app.cli import main

    sys.exit(main())
