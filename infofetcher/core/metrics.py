"""Simple in-memory metrics for poll cycles, polls, failures and skips."""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class Metrics:
    """In-memory counters; logged once per cycle."""

    def __init__(self):
        self._lock = threading.Lock()
        self._cycles = 0
        self._polls = 0
        self._failures = 0
        self._skips = 0
        self._identifier_changes = 0
        self._last_cycle_sec: Optional[float] = None

    def inc_cycles(self) -> int:
        with self._lock:
            self._cycles += 1
            return self._cycles

    @property
    def cycles(self) -> int:
        with self._lock:
            return self._cycles

    def record_poll(self, ok: bool) -> None:
        with self._lock:
            self._polls += 1
            if not ok:
                self._failures += 1

    @property
    def polls(self) -> int:
        with self._lock:
            return self._polls

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    def inc_skips(self) -> None:
        with self._lock:
            self._skips += 1

    @property
    def skips(self) -> int:
        with self._lock:
            return self._skips

    def inc_identifier_changes(self) -> None:
        with self._lock:
            self._identifier_changes += 1

    @property
    def identifier_changes(self) -> int:
        with self._lock:
            return self._identifier_changes

    def set_last_cycle_sec(self, sec: Optional[float]) -> None:
        with self._lock:
            self._last_cycle_sec = sec

    def log_snapshot(self) -> None:
        """Log current metrics snapshot."""
        with self._lock:
            parts = [
                f"cycles={self._cycles}",
                f"polls={self._polls}",
                f"failures={self._failures}",
                f"skips={self._skips}",
            ]
            if self._identifier_changes:
                parts.append(f"identifier_changes={self._identifier_changes}")
            if self._last_cycle_sec is not None:
                parts.append(f"cycle_sec={self._last_cycle_sec:.3f}")
        logger.info("metrics " + " ".join(parts))


_global_metrics: Optional[Metrics] = None


def get_metrics() -> Metrics:
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = Metrics()
    return _global_metrics
