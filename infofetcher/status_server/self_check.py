"""Derive self_check and status_lamp from the published snapshot document."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

# Default staleness threshold (seconds) when not in config
_DEFAULT_STALE_AFTER_SEC = 30.0


def iter_entries(doc: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    """Server entries of a document regardless of keying (list or mapping)."""
    servers = doc.get("servers") or []
    if isinstance(servers, dict):
        return list(servers.values())
    return list(servers)


def snapshot_age_sec(doc: Dict[str, Any], now: Optional[datetime] = None) -> Optional[float]:
    raw = doc.get("last_update")
    if not raw:
        return None
    try:
        ts = datetime.fromisoformat(str(raw))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return (now - ts).total_seconds()


def derive_self_check(
    doc: Optional[Dict[str, Any]],
    stale_after_sec: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Compute self_check (ok/degraded/blocked), block_reasons, and status_lamp (green/yellow/red).

    Args:
        doc: Published snapshot document, or None if nothing was published yet.
        stale_after_sec: Age after which the snapshot counts as stale (fetcher likely down).
        now: Reference time, defaults to current UTC time.

    Returns:
        {"self_check": "ok"|"degraded"|"blocked", "block_reasons": [...], "status_lamp": "green"|"yellow"|"red",
         "servers_up": int, "servers_total": int}
    """
    threshold = stale_after_sec if stale_after_sec is not None else _DEFAULT_STALE_AFTER_SEC
    block_reasons: List[str] = []

    if doc is None:
        block_reasons.append("no_snapshot")
        return {
            "self_check": "blocked",
            "block_reasons": block_reasons,
            "status_lamp": "red",
            "servers_up": 0,
            "servers_total": 0,
        }

    entries = iter_entries(doc)
    total = len(entries)
    up = sum(1 for e in entries if e.get("data") is not None)

    age = snapshot_age_sec(doc, now)
    if age is None or age > threshold:
        block_reasons.append("snapshot_stale")
        return {
            "self_check": "blocked",
            "block_reasons": block_reasons,
            "status_lamp": "red",
            "servers_up": up,
            "servers_total": total,
        }

    if up < total:
        block_reasons.append("servers_down")
        return {
            "self_check": "degraded",
            "block_reasons": block_reasons,
            "status_lamp": "yellow",
            "servers_up": up,
            "servers_total": total,
        }

    return {
        "self_check": "ok",
        "block_reasons": [],
        "status_lamp": "green",
        "servers_up": up,
        "servers_total": total,
    }
