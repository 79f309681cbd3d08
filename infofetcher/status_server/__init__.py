"""Standalone read-only status server over the published snapshot (GET /status, /servers, /health)."""

from infofetcher.status_server.reader import FileSnapshotReader, build_reader
from infofetcher.status_server.self_check import derive_self_check

__all__ = ["FileSnapshotReader", "build_reader", "derive_self_check"]
