"""Fetcher config: YAML file merged over config/config.yaml.example, then validated into FetcherSettings.

Defaults: loaded from config/config.yaml.example (single source of truth, no code-level defaults).
Command line flags are applied on top by infofetcher.app.cli via apply_overrides().
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from infofetcher.connector.topic import parse_endpoint
from infofetcher.core.errors import ConfigError
from infofetcher.core.snapshot import Keying
from infofetcher.engine.tolerance import FailureTolerance

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_EXAMPLE_PATH = _PROJECT_ROOT / "config" / "config.yaml.example"

# Lazy-loaded example config (single source of truth for defaults)
_EXAMPLE_CONFIG: Optional[Dict[str, Any]] = None


def _load_example_config() -> Dict[str, Any]:
    """Load config.yaml.example as defaults. No code-level defaults."""
    global _EXAMPLE_CONFIG
    if _EXAMPLE_CONFIG is None:
        with open(_EXAMPLE_PATH, encoding="utf-8") as f:
            _EXAMPLE_CONFIG = yaml.safe_load(f) or {}
    return _EXAMPLE_CONFIG


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into base. Override values take precedence."""
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def merged_config(cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Merge config with example so missing keys come from the example file."""
    return _deep_merge(_load_example_config(), cfg or {})


def read_config(config_path: Optional[str] = None) -> Tuple[dict, str]:
    """Load YAML config. Returns (config, resolved_path).

    Path order: argument, INFOFETCHER_CONFIG, config/config.yaml, then the example file.
    """
    config_path = config_path or os.environ.get("INFOFETCHER_CONFIG", "config/config.yaml")
    if not Path(config_path).exists():
        config_path = str(_EXAMPLE_PATH)
    config_path = str(Path(config_path).resolve())
    with open(config_path, "r", encoding="utf-8") as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"cannot parse {config_path}: {e}") from e
    if not isinstance(config, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return config, config_path


def apply_overrides(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Apply non-None overrides (dotted keys such as 'output.path') on a copy of config."""
    out = _deep_merge({}, config)
    for dotted, value in overrides.items():
        if value is None:
            continue
        *parents, leaf = dotted.split(".")
        node = out
        for p in parents:
            child = node.get(p)
            if not isinstance(child, dict):
                child = {}
            child = dict(child)
            node[p] = child
            node = child
        node[leaf] = value
    return out


@dataclass(frozen=True)
class FetcherSettings:
    """Validated runtime settings for the poll orchestrator."""

    servers: Tuple[str, ...]
    interval: int
    failure_tolerance: FailureTolerance
    failure_retry_wait: int
    query_timeout: float
    read_timeout: float
    max_concurrency: int
    keying: Keying
    output: Dict[str, Any]


def _parse_servers(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = [str(x) for x in raw]
    else:
        raise ConfigError(f"servers must be a list or comma separated string, got {type(raw).__name__}")
    servers = [s.strip() for s in items if s and s.strip()]
    for s in servers:
        try:
            parse_endpoint(s)
        except ValueError as e:
            raise ConfigError(str(e)) from e
    if len(set(servers)) != len(servers):
        raise ConfigError("servers contains duplicate addresses")
    return servers


def _int_at_least(name: str, raw: Any, minimum: int) -> int:
    if isinstance(raw, bool):
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _positive_float(name: str, raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be > 0, got {value}")
    return value


def load_settings(config: Optional[Dict[str, Any]] = None) -> FetcherSettings:
    """Validate config (merged over the example) into FetcherSettings. Raises ConfigError."""
    merged = merged_config(config)
    servers = _parse_servers(merged.get("servers"))
    if not servers:
        raise ConfigError("No servers specified!")

    tolerance_raw = str(merged.get("failure_tolerance", "")).strip().lower()
    try:
        tolerance = FailureTolerance(tolerance_raw)
    except ValueError:
        allowed = ", ".join(t.value for t in FailureTolerance)
        raise ConfigError(f"failure_tolerance must be one of {allowed}, got {tolerance_raw!r}") from None

    query = merged.get("query") or {}
    output = dict(merged.get("output") or {})
    keying_raw = str(output.get("keying", Keying.ENDPOINT.value)).strip().lower()
    try:
        keying = Keying(keying_raw)
    except ValueError:
        allowed = ", ".join(k.value for k in Keying)
        raise ConfigError(f"output.keying must be one of {allowed}, got {keying_raw!r}") from None

    return FetcherSettings(
        servers=tuple(servers),
        interval=_int_at_least("interval", merged.get("interval"), 1),
        failure_tolerance=tolerance,
        failure_retry_wait=_int_at_least("failure_retry_wait", merged.get("failure_retry_wait"), 0),
        query_timeout=_positive_float("query.timeout", query.get("timeout")),
        read_timeout=_positive_float("query.read_timeout", query.get("read_timeout")),
        max_concurrency=_int_at_least("query.max_concurrency", query.get("max_concurrency"), 1),
        keying=keying,
        output=output,
    )


def get_status_server_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return status_server section (port, stale_after_sec) plus the output section it reads."""
    merged = merged_config(config)
    section = dict(merged.get("status_server") or {})
    section["output"] = dict(merged.get("output") or {})
    return section
