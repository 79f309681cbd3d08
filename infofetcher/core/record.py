"""ServerRecord: decoded status payload of one game server.

Field names match the JSON keys sent by the server. Booleans travel as 0/1 integers;
anything else in those fields is a decode error, never coerced.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, Dict, Optional

from infofetcher.core.errors import DecodeError

_MISSING = object()

# Counts are 32-bit unsigned on the server side.
_UINT_MAX = 0xFFFFFFFF


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    return type(value).__name__


def _as_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise DecodeError(f"field {name!r}: expected string, got {_type_name(value)}")
    return value


def _as_uint(name: str, value: Any) -> int:
    # bool is an int subclass; JSON true/false must not pass as a count
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"field {name!r}: expected unsigned integer, got {_type_name(value)}")
    if value < 0 or value > _UINT_MAX:
        raise DecodeError(f"field {name!r}: expected unsigned 32-bit integer, got {value}")
    return value


def _as_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"field {name!r}: expected number, got {_type_name(value)}")
    return float(value)


def _as_flag(name: str, value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int) or value not in (0, 1):
        raise DecodeError(f"field {name!r}: invalid value {value!r}, expected zero or one")
    return value == 1


def _optional(parse: Callable[[str, Any], Any]) -> Callable[[str, Any], Any]:
    def _parse(name: str, value: Any) -> Any:
        if value is None or value is _MISSING:
            return None
        return parse(name, value)

    return _parse


def _optional_flag(name: str, value: Any) -> Optional[bool]:
    if value is None or value is _MISSING:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value not in (0, 1):
        raise DecodeError(f"field {name!r}: invalid value {value!r}, expected zero, one, or null")
    return value == 1


# Wire key -> parser. Order follows the server's payload.
_PARSERS: Dict[str, Callable[[str, Any], Any]] = {
    "version": _as_str,
    "respawn": _as_flag,
    "enter": _as_flag,
    "ai": _as_flag,
    "host": _optional(_as_str),
    "round_id": _optional(_as_str),
    "players": _as_uint,
    "revision": _as_str,
    "revision_date": _as_str,
    "hub": _as_flag,
    "identifier": _as_str,
    "admins": _as_uint,
    "gamestate": _as_uint,
    "map_name": _as_str,
    "security_level": _as_str,
    "round_duration": _as_float,
    "time_dilation_current": _as_float,
    "time_dilation_avg": _as_float,
    "time_dilation_avg_slow": _as_float,
    "time_dilation_avg_fast": _as_float,
    "soft_popcap": _as_uint,
    "hard_popcap": _as_uint,
    "extreme_popcap": _as_uint,
    "popcap": _optional(_as_uint),
    "bunkered": _optional_flag,
    "interviews": _optional_flag,
    "shuttle_mode": _optional(_as_str),
    "shuttle_timer": _optional(_as_uint),
    "active_players": _optional(_as_uint),
    "public_address": _optional(_as_str),
}

_FLAG_FIELDS = ("respawn", "enter", "ai", "hub", "bunkered", "interviews")
_OPTIONAL_FIELDS = frozenset(
    (
        "host",
        "round_id",
        "popcap",
        "bunkered",
        "interviews",
        "shuttle_mode",
        "shuttle_timer",
        "active_players",
        "public_address",
    )
)


@dataclass(frozen=True)
class ServerRecord:
    """One decoded status response."""

    version: str
    respawn: bool
    enter: bool
    ai: bool
    host: Optional[str]
    round_id: Optional[str]
    players: int
    revision: str
    revision_date: str
    hub: bool
    identifier: str
    admins: int
    gamestate: int
    map_name: str
    security_level: str
    round_duration: float
    time_dilation_current: float
    time_dilation_avg: float
    time_dilation_avg_slow: float
    time_dilation_avg_fast: float
    soft_popcap: int
    hard_popcap: int
    extreme_popcap: int
    popcap: Optional[int] = None
    bunkered: Optional[bool] = None
    interviews: Optional[bool] = None
    shuttle_mode: Optional[str] = None
    shuttle_timer: Optional[int] = None
    active_players: Optional[int] = None
    public_address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ServerRecord":
        """Validate a parsed JSON payload. Raises DecodeError on the first bad field.

        Required fields must be present; optional ones may be null or absent. Unknown keys
        are ignored.
        """
        if not isinstance(data, dict):
            raise DecodeError(f"expected JSON object, got {_type_name(data)}")
        values: Dict[str, Any] = {}
        for f in fields(cls):
            parse = _PARSERS[f.name]
            raw = data.get(f.name, _MISSING)
            if raw is _MISSING and f.name not in _OPTIONAL_FIELDS:
                raise DecodeError(f"missing field {f.name!r}")
            values[f.name] = parse(f.name, raw)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict for the published snapshot (flags as JSON booleans)."""
        return asdict(self)

    def to_wire_dict(self) -> Dict[str, Any]:
        """Dict in the server's own encoding: flags as 0/1."""
        out = asdict(self)
        for name in _FLAG_FIELDS:
            if out[name] is not None:
                out[name] = int(out[name])
        return out
