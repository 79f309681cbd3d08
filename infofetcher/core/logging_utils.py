"""Structured logging for poll results and cycle summaries; console logging setup."""

import logging
import sys
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

# ANSI color codes
_RESET = "\033[0m"
_BOLD = "\033[1m"
_GRAY = "\033[90m"
_YELLOW = "\033[33m"
_RED = "\033[31m"
_CYAN = "\033[36m"

_LEVEL_COLORS = {
    logging.DEBUG: _GRAY,
    logging.INFO: _CYAN,
    logging.WARNING: _YELLOW,
    logging.ERROR: _RED + _BOLD,
    logging.CRITICAL: _RED + _BOLD,
}


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors per log level."""

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno, _RESET)
        record.levelname = f"{color}[{record.levelname}]{_RESET}"
        return super().format(record)


def setup_logging(debug: bool = False, color: Optional[bool] = None) -> None:
    """Configure console logging. Colors only when stderr is a terminal unless forced."""
    handler = logging.StreamHandler(sys.stderr)
    if color is None:
        color = sys.stderr.isatty()
    formatter_cls = ColoredFormatter if color else logging.Formatter
    handler.setFormatter(
        formatter_cls(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logging.root.handlers.clear()
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.DEBUG if debug else logging.INFO)


def _ensure_trace_id(extra: dict) -> str:
    trace_id = extra.get("trace_id")
    if not trace_id:
        trace_id = str(uuid.uuid4())[:8]
        extra["trace_id"] = trace_id
    return trace_id


def new_trace_id() -> str:
    return _ensure_trace_id({})


def log_poll_result(
    address: str,
    ok: bool,
    trace_id: Optional[str] = None,
    identifier: Optional[str] = None,
    players: Optional[int] = None,
    error_kind: Optional[str] = None,
    elapsed_ms: Optional[float] = None,
    extra: Optional[dict] = None,
) -> None:
    """Log one poll attempt as key=value at DEBUG; failures are reported separately at WARNING."""
    extra = extra or {}
    if trace_id:
        extra["trace_id"] = trace_id
    _ensure_trace_id(extra)
    extra["address"] = address
    extra["ok"] = ok
    if identifier is not None:
        extra["identifier"] = identifier
    if players is not None:
        extra["players"] = players
    if error_kind:
        extra["error"] = error_kind
    if elapsed_ms is not None:
        extra["elapsed_ms"] = f"{elapsed_ms:.0f}"
    msg = "poll_result " + " ".join(f"{k}={v}" for k, v in sorted(extra.items()))
    logger.debug(msg)


def log_cycle_summary(
    cycle: int,
    polled: int,
    skipped: int,
    failures: int,
    up: int,
    total: int,
    trace_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> None:
    """Log the outcome of one poll cycle."""
    extra = extra or {}
    if trace_id:
        extra["trace_id"] = trace_id
    _ensure_trace_id(extra)
    extra["cycle"] = cycle
    extra["polled"] = polled
    extra["skipped"] = skipped
    extra["failures"] = failures
    extra["up"] = f"{up}/{total}"
    msg = "cycle_summary " + " ".join(f"{k}={v}" for k, v in sorted(extra.items()))
    logger.info(msg)
