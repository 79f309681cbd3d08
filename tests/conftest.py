"""Pytest fixtures for server info fetcher tests."""

import copy
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Ensure project root is in path for infofetcher imports
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from infofetcher.config.settings import FetcherSettings
from infofetcher.core.record import ServerRecord
from infofetcher.core.snapshot import Keying
from infofetcher.engine.tolerance import FailureTolerance
from infofetcher.sink.base import SinkError, StatusSink

# A status payload as a live server sends it (flags as 0/1).
SAMPLE_PAYLOAD: Dict[str, Any] = {
    "version": "/tg/Station 13",
    "respawn": 0,
    "enter": 1,
    "ai": 1,
    "host": None,
    "round_id": "41234",
    "players": 57,
    "revision": "a1b2c3d4",
    "revision_date": "2026-10-01T12:00:00",
    "hub": 1,
    "identifier": "main",
    "admins": 3,
    "gamestate": 3,
    "map_name": "Meta Station",
    "security_level": "green",
    "round_duration": 3712.5,
    "time_dilation_current": 1.2,
    "time_dilation_avg": 0.8,
    "time_dilation_avg_slow": 0.7,
    "time_dilation_avg_fast": 1.1,
    "soft_popcap": 80,
    "hard_popcap": 100,
    "extreme_popcap": 120,
    "popcap": 100,
    "bunkered": 0,
    "interviews": None,
    "shuttle_mode": "idle",
    "shuttle_timer": 0,
    "active_players": 50,
    "public_address": "byond://play.example.net:1337",
}


def sample_payload(**overrides: Any) -> Dict[str, Any]:
    payload = copy.deepcopy(SAMPLE_PAYLOAD)
    payload.update(overrides)
    return payload


def make_record(**overrides: Any) -> ServerRecord:
    return ServerRecord.from_dict(sample_payload(**overrides))


def make_settings(
    servers=("a:1", "b:2"),
    tolerance: str = "all",
    retry_wait: int = 0,
    interval: int = 5,
    max_concurrency: int = 1,
    keying: str = "endpoint",
) -> FetcherSettings:
    return FetcherSettings(
        servers=tuple(servers),
        interval=interval,
        failure_tolerance=FailureTolerance(tolerance),
        failure_retry_wait=retry_wait,
        query_timeout=0.75,
        read_timeout=5.0,
        max_concurrency=max_concurrency,
        keying=Keying(keying),
        output={"type": "json", "path": "output.json"},
    )


class FakeQuery:
    """Scripted query function: per endpoint a list of outcomes (record or exception).

    The last outcome repeats once the list is used up. Endpoints without a script answer
    with a default record whose identifier is the endpoint.
    """

    def __init__(self, script: Optional[Dict[str, List[Any]]] = None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.calls: List[str] = []

    async def __call__(self, endpoint: str) -> ServerRecord:
        self.calls.append(endpoint)
        outcomes = self.script.get(endpoint)
        if not outcomes:
            return make_record(identifier=endpoint)
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def count(self, endpoint: str) -> int:
        return self.calls.count(endpoint)


class RecordingSink(StatusSink):
    """Keeps every written document in memory."""

    def __init__(self, fail: bool = False):
        self.documents: List[Dict[str, Any]] = []
        self.fail = fail
        self.closed = False

    def write_snapshot(self, document: Dict[str, Any]) -> None:
        if self.fail:
            raise SinkError("Error writing to output file: disk full")
        self.documents.append(copy.deepcopy(document))

    def close(self) -> None:
        self.closed = True


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def project_root() -> Path:
    return _project_root


@pytest.fixture
def payload() -> Dict[str, Any]:
    return sample_payload()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
