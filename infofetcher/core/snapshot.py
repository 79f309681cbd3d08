"""PollSnapshot: what gets published each cycle, plus the output keying strategies."""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from infofetcher.core.record import ServerRecord

logger = logging.getLogger(__name__)


class Keying(str, enum.Enum):
    """How published entries are keyed in the output document."""

    ENDPOINT = "endpoint"  # list in configuration order
    PUBLIC_ADDRESS = "public_address"  # mapping keyed by self-reported address


@dataclass(frozen=True)
class ServerEntry:
    """Immutable per-server view taken from tracked state at snapshot time."""

    address: str
    record: Optional[ServerRecord]
    identifier: Optional[str]
    retry_wait: int
    last_error: Optional[str] = None

    @property
    def public_key(self) -> str:
        """Self-reported public address, falling back to the address we queried."""
        if self.record is not None and self.record.public_address:
            return self.record.public_address
        return self.address

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "data": self.record.to_dict() if self.record is not None else None,
            "identifier": self.identifier,
            "retry_wait": self.retry_wait,
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class PollSnapshot:
    """Aggregate of every tracked server, rebuilt from scratch each cycle."""

    entries: Tuple[ServerEntry, ...]
    last_update: datetime

    @classmethod
    def build(cls, entries: List[ServerEntry], now: Optional[datetime] = None) -> "PollSnapshot":
        return cls(entries=tuple(entries), last_update=now or datetime.now(timezone.utc))

    @property
    def up_count(self) -> int:
        return sum(1 for e in self.entries if e.record is not None)

    def to_document(self, keying: Keying = Keying.ENDPOINT) -> Dict[str, Any]:
        """Serializable output document for the sink."""
        keying = Keying(keying)
        servers: Any
        if keying == Keying.PUBLIC_ADDRESS:
            servers = {}
            for entry in self.entries:
                key = entry.public_key
                if key in servers:
                    logger.warning(
                        "Servers %s and %s both publish as %s; keeping %s",
                        servers[key]["address"],
                        entry.address,
                        key,
                        entry.address,
                    )
                servers[key] = entry.to_dict()
        else:
            servers = [entry.to_dict() for entry in self.entries]
        return {
            "servers": servers,
            "last_update": self.last_update.isoformat(),
        }
