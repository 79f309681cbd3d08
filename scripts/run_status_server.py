#!/usr/bin/env python3
"""Run the read-only status server over the fetcher's published snapshot."""

import argparse
import logging
import os
import sys

# Project root
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _PROJECT_ROOT)
os.chdir(_PROJECT_ROOT)


def main() -> int:
    parser = argparse.ArgumentParser(description="Serve the latest fetcher snapshot over HTTP.")
    parser.add_argument("config", nargs="?", default=None, help="YAML config file (default config/config.yaml)")
    parser.add_argument("--port", type=int, default=None, help="Override status_server.port")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    from infofetcher.config.settings import ConfigError, apply_overrides, read_config
    from infofetcher.core.logging_utils import setup_logging
    from infofetcher.status_server.app import run_server

    setup_logging(debug=args.debug)
    try:
        config, _ = read_config(args.config)
    except ConfigError as e:
        logging.getLogger(__name__).error("%s", e)
        return 2
    run_server(apply_overrides(config, {"status_server.port": args.port}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
