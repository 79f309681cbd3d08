"""Tracked per-server state, owned and mutated only by the orchestrator."""

import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from infofetcher.core.record import ServerRecord
from infofetcher.core.snapshot import ServerEntry


@dataclass
class TrackedServerState:
    """Orchestrator memory for one endpoint."""

    endpoint: str
    record: Optional[ServerRecord] = None
    identifier: Optional[str] = None  # survives failed polls to detect identifier churn
    retry_wait: int = 0
    last_error: Optional[str] = None
    consecutive_failures: int = 0
    last_success_ts: Optional[float] = None

    @property
    def is_due(self) -> bool:
        return self.retry_wait == 0

    def tick_skip(self) -> None:
        """Consume one tick of retry-wait instead of polling."""
        if self.retry_wait > 0:
            self.retry_wait -= 1

    def record_success(self, record: ServerRecord, now: Optional[float] = None) -> Optional[str]:
        """Store a fresh record. Returns the previous identifier if it changed, else None."""
        previous = self.identifier
        changed = previous is not None and previous != record.identifier
        self.record = record
        self.identifier = record.identifier
        self.last_error = None
        self.consecutive_failures = 0
        self.last_success_ts = now if now is not None else time.time()
        return previous if changed else None

    def record_failure(self, error: str) -> None:
        """Forget the record; it is no longer known good."""
        self.record = None
        self.last_error = error
        self.consecutive_failures += 1

    def to_entry(self) -> ServerEntry:
        return ServerEntry(
            address=self.endpoint,
            record=self.record,
            identifier=self.identifier,
            retry_wait=self.retry_wait,
            last_error=self.last_error,
        )


@dataclass
class ServerStateTable:
    """Ordered endpoint -> TrackedServerState mapping, created once from configuration."""

    _states: Dict[str, TrackedServerState] = field(default_factory=dict)

    @classmethod
    def from_endpoints(cls, endpoints: List[str]) -> "ServerStateTable":
        table = cls()
        for endpoint in endpoints:
            if endpoint in table._states:
                raise ValueError(f"duplicate server address {endpoint!r}")
            table._states[endpoint] = TrackedServerState(endpoint=endpoint)
        return table

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[TrackedServerState]:
        return iter(self._states.values())

    def __getitem__(self, endpoint: str) -> TrackedServerState:
        return self._states[endpoint]

    def entries(self) -> List[ServerEntry]:
        return [s.to_entry() for s in self._states.values()]
