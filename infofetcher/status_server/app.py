"""FastAPI app for GET /status, GET /servers/{key}, GET /health over the published snapshot.

Read-only: the fetcher process writes, this server only reads what the sink persisted.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException

from infofetcher.status_server.reader import build_reader
from infofetcher.status_server.self_check import derive_self_check, iter_entries

logger = logging.getLogger(__name__)


def create_app(reader: Any, stale_after_sec: Optional[float] = None) -> FastAPI:
    """Build FastAPI app around a reader exposing get_snapshot() -> dict | None."""
    app = FastAPI(title="Server Info Fetcher", description="Latest published server status snapshot")

    @app.get("/health")
    def get_health() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/status")
    def get_status() -> Dict[str, Any]:
        """Return the snapshot plus self_check, block_reasons and status_lamp."""
        doc = reader.get_snapshot()
        payload: Dict[str, Any] = dict(derive_self_check(doc, stale_after_sec))
        payload["snapshot"] = doc
        return payload

    @app.get("/servers/{key:path}")
    def get_server(key: str) -> Dict[str, Any]:
        """Return one published entry, by configured address or by public address key."""
        doc = reader.get_snapshot()
        if doc is None:
            raise HTTPException(status_code=503, detail="no snapshot published yet")
        servers = doc.get("servers")
        if isinstance(servers, dict) and key in servers:
            return servers[key]
        for entry in iter_entries(doc):
            if entry.get("address") == key:
                return entry
        raise HTTPException(status_code=404, detail=f"unknown server {key}")

    return app


def run_server(config: dict) -> None:
    """Start the status server (host 0.0.0.0, port from status_server.port)."""
    import uvicorn

    from infofetcher.config.settings import get_status_server_config

    section = get_status_server_config(config)
    port = int(section.get("port") or 8765)
    reader = build_reader(section["output"])
    app = create_app(reader, section.get("stale_after_sec"))
    host = "0.0.0.0"
    logger.info("Status server on %s:%s (output=%s)", host, port, section["output"].get("type", "json"))
    uvicorn.run(app, host=host, port=port, log_level="info")
