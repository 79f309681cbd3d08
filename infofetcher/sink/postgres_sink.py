"""PostgreSQL implementation of StatusSink: one jsonb document row, replaced every cycle."""

import logging
import os
from typing import Any, Dict, Optional

import psycopg2
from psycopg2.extras import Json

from infofetcher.sink.base import SinkError, StatusSink

logger = logging.getLogger(__name__)


def _get_conn_params(config: dict) -> dict:
    """Build connection params from the output.postgres section, with env overrides."""
    pg = config.get("postgres", {}) or {}
    db = pg.get("database") or pg.get("dbname") or pg.get("db")
    return {
        "host": pg.get("host") or os.environ.get("PGHOST", "127.0.0.1"),
        "port": int(pg.get("port") or os.environ.get("PGPORT", "5432")),
        "dbname": db or os.environ.get("PGDATABASE", "infofetcher"),
        "user": pg.get("user") or os.environ.get("PGUSER", "infofetcher"),
        "password": pg.get("password") or os.environ.get("PGPASSWORD", ""),
    }


def _ensure_tables(conn) -> None:
    """Create fetcher_snapshot if it does not exist."""
    with conn.cursor() as cur:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS fetcher_snapshot (
                id integer PRIMARY KEY DEFAULT 1,
                doc jsonb NOT NULL,
                last_update timestamptz NOT NULL,
                written_at timestamptz NOT NULL DEFAULT now()
            )
        """)
    conn.commit()


class PostgreSQLSink(StatusSink):
    """Upsert the snapshot document into fetcher_snapshot row id=1."""

    def __init__(self, output_config: dict, connect=None) -> None:
        self._config = output_config
        self._connect_fn = connect or psycopg2.connect
        self._conn: Any = None

    def _connection(self):
        if self._conn is None or getattr(self._conn, "closed", 0):
            params = _get_conn_params(self._config)
            params["connect_timeout"] = 10
            self._conn = self._connect_fn(**params)
            _ensure_tables(self._conn)
            logger.info("PostgreSQLSink connected to %s:%s/%s", params["host"], params["port"], params["dbname"])
        return self._conn

    def write_snapshot(self, document: Dict[str, Any]) -> None:
        conn: Optional[Any] = None
        try:
            conn = self._connection()
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO fetcher_snapshot (id, doc, last_update, written_at)
                    VALUES (1, %s, %s, now())
                    ON CONFLICT (id) DO UPDATE SET
                        doc = EXCLUDED.doc,
                        last_update = EXCLUDED.last_update,
                        written_at = now()
                    """,
                    (Json(document), document.get("last_update")),
                )
            conn.commit()
        except psycopg2.Error as e:
            if conn is not None:
                try:
                    conn.rollback()
                except psycopg2.Error as rollback_err:
                    logger.debug("Rollback failed: %s", rollback_err)
            raise SinkError(f"Error writing snapshot to PostgreSQL: {e}") from e

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except psycopg2.Error as e:
                logger.debug("Close failed: %s", e)
            self._conn = None
