"""Configuration loading and validation."""

from infofetcher.config.settings import (
    ConfigError,
    FetcherSettings,
    apply_overrides,
    load_settings,
    read_config,
)

__all__ = ["ConfigError", "FetcherSettings", "apply_overrides", "load_settings", "read_config"]
