"""StatusSink abstract interface for persisting the per-cycle snapshot document."""

from abc import ABC, abstractmethod
from typing import Any, Dict

# Top-level keys of the published document. Both sinks and readers rely on them.
DOCUMENT_KEYS = ("servers", "last_update")

# Keys of one published server entry.
ENTRY_KEYS = ("address", "data", "identifier", "retry_wait", "last_error")


class SinkError(Exception):
    """Persisting the snapshot failed. Always fatal for the fetcher."""


class StatusSink(ABC):
    """Abstract sink for the aggregated snapshot.

    Each write fully replaces the previously published document; nothing is appended.
    Implementations raise SinkError on any I/O failure.
    """

    @abstractmethod
    def write_snapshot(self, document: Dict[str, Any]) -> None:
        """Replace the published document.

        document: dict with keys from DOCUMENT_KEYS (servers, last_update).
        """
        ...

    def close(self) -> None:
        return
