"""Status sink package: persist the per-cycle snapshot (JSON file by default, PostgreSQL optional)."""

from typing import Any, Dict

from infofetcher.core.errors import ConfigError
from infofetcher.sink.base import DOCUMENT_KEYS, ENTRY_KEYS, SinkError, StatusSink
from infofetcher.sink.json_file_sink import JsonFileSink


# Lazy import so the package loads without psycopg2 when only the JSON sink is used
def __getattr__(name: str):
    if name == "PostgreSQLSink":
        from infofetcher.sink.postgres_sink import PostgreSQLSink
        return PostgreSQLSink
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def build_sink(output_config: Dict[str, Any]) -> StatusSink:
    """Build the sink named by output.type ('json' or 'postgres')."""
    sink_type = str(output_config.get("type") or "json").strip().lower()
    if sink_type == "json":
        path = output_config.get("path") or "output.json"
        return JsonFileSink(str(path), indent=output_config.get("indent"))
    if sink_type == "postgres":
        from infofetcher.sink.postgres_sink import PostgreSQLSink
        return PostgreSQLSink(output_config)
    raise ConfigError(f"output.type must be json or postgres, got {sink_type!r}")


__all__ = [
    "StatusSink",
    "SinkError",
    "JsonFileSink",
    "PostgreSQLSink",
    "DOCUMENT_KEYS",
    "ENTRY_KEYS",
    "build_sink",
]
