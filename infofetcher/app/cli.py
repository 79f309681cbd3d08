"""Command line entry point: parse flags, load config, wire sink + orchestrator, run until stopped."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from infofetcher.config.settings import ConfigError, FetcherSettings, apply_overrides, load_settings, read_config
from infofetcher.core.logging_utils import setup_logging
from infofetcher.core.snapshot import Keying
from infofetcher.engine.orchestrator import PollOrchestrator
from infofetcher.engine.state_machine import StopReason
from infofetcher.engine.tolerance import FailureTolerance
from infofetcher.sink import build_sink

logger = logging.getLogger(__name__)

# Exit status per stop reason; anything fatal is 1, bad configuration is 2.
EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2

_CLEAN_STOPS = (StopReason.STOP_REQUESTED, StopReason.MAX_CYCLES)


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError(f"{raw} is not in 1..")
    return value


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise argparse.ArgumentTypeError(f"{raw} is not in 0..")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="infofetcher",
        description="Periodically query game servers for their status and publish a JSON snapshot.",
    )
    parser.add_argument(
        "output_file",
        nargs="?",
        default=None,
        help="The location the output file should be saved to (default: output.path from config, output.json).",
    )
    parser.add_argument(
        "--servers",
        default=None,
        help="The servers to query, comma separated host:port list.",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=_positive_int,
        default=None,
        help="The interval between queries in seconds (default 5).",
    )
    parser.add_argument(
        "--failure-tolerance",
        choices=[t.value for t in FailureTolerance],
        default=None,
        help="none: all servers must respond; one: one failing server is tolerated; "
        "all: all but every server failing is tolerated (default one).",
    )
    parser.add_argument(
        "--failure-retry-wait",
        type=_non_negative_int,
        default=None,
        help="How many cycles to wait before retrying a failed server (default 1).",
    )
    parser.add_argument(
        "--max-concurrency",
        type=_positive_int,
        default=None,
        help="Servers polled in parallel within one cycle (default 1, sequential).",
    )
    parser.add_argument(
        "--keying",
        choices=[k.value for k in Keying],
        default=None,
        help="Key published entries by configured endpoint or by self-reported public address.",
    )
    parser.add_argument("--config", default=None, help="YAML config file (default config/config.yaml).")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit.")
    parser.add_argument("--debug", action="store_true", help="Verbose logging.")
    return parser


def settings_from_args(args: argparse.Namespace) -> FetcherSettings:
    """Load the YAML config and apply command line overrides. Raises ConfigError."""
    config, config_path = read_config(args.config)
    logger.debug("Config loaded from %s", config_path)
    config = apply_overrides(
        config,
        {
            "servers": args.servers,
            "interval": args.interval,
            "failure_tolerance": args.failure_tolerance,
            "failure_retry_wait": args.failure_retry_wait,
            "query.max_concurrency": args.max_concurrency,
            "output.path": args.output_file,
            "output.keying": args.keying,
        },
    )
    return load_settings(config)


async def run_fetcher(settings: FetcherSettings, max_cycles: Optional[int] = None) -> StopReason:
    """Build sink and orchestrator, install signal handlers, run until a stop reason."""
    sink = build_sink(settings.output)
    orchestrator = PollOrchestrator(settings, sink)
    loop = asyncio.get_running_loop()
    installed: List[int] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.request_stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops
            pass
    try:
        return await orchestrator.run(max_cycles=max_cycles)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        sink.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)
    try:
        settings = settings_from_args(args)
    except ConfigError as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    try:
        reason = asyncio.run(run_fetcher(settings, max_cycles=1 if args.once else None))
    except ConfigError as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    return EXIT_OK if reason in _CLEAN_STOPS else EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
