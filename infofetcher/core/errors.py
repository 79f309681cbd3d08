"""Error types. Fetch errors are per-server and caught at the orchestrator boundary."""


class FetchError(Exception):
    """Base class for everything that can go wrong while querying one server."""

    kind = "fetch"


class TransportError(FetchError):
    """Connect, write or read failed (refused, reset, timed out, truncated)."""

    kind = "transport"


class ProtocolMismatchError(FetchError):
    """Response framing is wrong: header, type, length, footer or payload encoding."""

    kind = "protocol"


class DecodeError(FetchError):
    """Payload is text but not a valid status record."""

    kind = "decode"


class ConfigError(ValueError):
    """Configuration is missing or invalid; the fetcher cannot start."""
