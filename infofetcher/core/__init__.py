"""Core types: decoded server record, published snapshot, metrics and logging helpers."""

from infofetcher.core.record import ServerRecord
from infofetcher.core.snapshot import Keying, PollSnapshot, ServerEntry

__all__ = ["ServerRecord", "Keying", "PollSnapshot", "ServerEntry"]
