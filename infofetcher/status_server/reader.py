"""Read-only access to the last published snapshot document (JSON file or PostgreSQL)."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class FileSnapshotReader:
    """Read the document written by JsonFileSink."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def get_snapshot(self) -> Optional[Dict[str, Any]]:
        """Return the published document, or None if missing/unreadable."""
        try:
            with open(self.path, encoding="utf-8") as f:
                doc = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Reading snapshot %s failed: %s", self.path, e)
            return None
        if not isinstance(doc, dict):
            logger.warning("Snapshot %s is not a JSON object", self.path)
            return None
        return doc


class PostgresSnapshotReader:
    """Read fetcher_snapshot row id=1. Uses the same output.postgres config as the sink."""

    def __init__(self, output_config: dict, connect=None) -> None:
        import psycopg2

        self._psycopg2 = psycopg2
        self._config = output_config
        self._connect_fn = connect or psycopg2.connect
        self._conn: Any = None

    def _connect(self) -> bool:
        from infofetcher.sink.postgres_sink import _get_conn_params

        if self._conn is not None:
            try:
                self._conn.rollback()
                return True
            except self._psycopg2.Error:
                self._conn = None
        try:
            self._conn = self._connect_fn(**_get_conn_params(self._config))
            return True
        except self._psycopg2.Error as e:
            logger.warning("PostgresSnapshotReader connect failed: %s", e)
            return False

    def get_snapshot(self) -> Optional[Dict[str, Any]]:
        if not self._connect():
            return None
        try:
            with self._conn.cursor() as cur:
                cur.execute("SELECT doc FROM fetcher_snapshot WHERE id = 1")
                row = cur.fetchone()
        except self._psycopg2.Error as e:
            logger.warning("get_snapshot failed: %s", e)
            return None
        if row is None:
            return None
        doc = row[0]
        # psycopg2 decodes jsonb to dict; plain json columns may come back as str
        if isinstance(doc, str):
            doc = json.loads(doc)
        return doc


def build_reader(output_config: Dict[str, Any]):
    """Reader matching the configured sink (output.type)."""
    if str(output_config.get("type") or "json").strip().lower() == "postgres":
        return PostgresSnapshotReader(output_config)
    return FileSnapshotReader(str(output_config.get("path") or "output.json"))
