"""Tests for config loading, overrides and validation."""

import pytest

from infofetcher.config.settings import (
    ConfigError,
    apply_overrides,
    get_status_server_config,
    load_settings,
    merged_config,
    read_config,
)
from infofetcher.core.snapshot import Keying
from infofetcher.engine.tolerance import FailureTolerance


class TestDefaults:
    def test_example_defaults(self):
        settings = load_settings({"servers": ["play.example.net:1337"]})
        assert settings.servers == ("play.example.net:1337",)
        assert settings.interval == 5
        assert settings.failure_tolerance == FailureTolerance.ONE
        assert settings.failure_retry_wait == 1
        assert settings.query_timeout == 0.75
        assert settings.max_concurrency == 1
        assert settings.keying == Keying.ENDPOINT
        assert settings.output["type"] == "json"
        assert settings.output["path"] == "output.json"

    def test_merge_keeps_nested_defaults(self):
        merged = merged_config({"query": {"timeout": 2}})
        assert merged["query"]["timeout"] == 2
        assert merged["query"]["read_timeout"] == 5.0


class TestServers:
    def test_comma_separated_string(self):
        settings = load_settings({"servers": "a.example:1, b.example:2,"})
        assert settings.servers == ("a.example:1", "b.example:2")

    @pytest.mark.parametrize("servers", [None, [], ""])
    def test_empty_is_error(self, servers):
        with pytest.raises(ConfigError, match="No servers specified!"):
            load_settings({"servers": servers})

    def test_duplicate_is_error(self):
        with pytest.raises(ConfigError, match="duplicate"):
            load_settings({"servers": ["a:1", "a:1"]})

    def test_bad_address(self):
        with pytest.raises(ConfigError, match="host:port"):
            load_settings({"servers": ["no-port"]})

    @pytest.mark.parametrize("server", ["a" * 64 + ".example:1337", "a..b:1"])
    def test_bad_host_name(self, server):
        with pytest.raises(ConfigError, match="invalid host name"):
            load_settings({"servers": [server]})

    def test_wrong_type(self):
        with pytest.raises(ConfigError, match="servers must be"):
            load_settings({"servers": 1337})


class TestValidation:
    @pytest.mark.parametrize(
        "override,match",
        [
            ({"interval": 0}, "interval must be >= 1"),
            ({"interval": "soon"}, "interval must be an integer"),
            ({"interval": True}, "interval must be an integer"),
            ({"failure_retry_wait": -1}, "failure_retry_wait must be >= 0"),
            ({"failure_tolerance": "some"}, "failure_tolerance must be one of"),
            ({"query": {"timeout": 0}}, "query.timeout must be > 0"),
            ({"query": {"max_concurrency": 0}}, "query.max_concurrency must be >= 1"),
            ({"output": {"keying": "name"}}, "output.keying must be one of"),
        ],
    )
    def test_invalid_values(self, override, match):
        config = {"servers": ["a:1"], **override}
        with pytest.raises(ConfigError, match=match):
            load_settings(config)

    def test_tolerance_case_insensitive(self):
        settings = load_settings({"servers": ["a:1"], "failure_tolerance": "ALL"})
        assert settings.failure_tolerance == FailureTolerance.ALL

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestOverrides:
    def test_dotted_keys_and_none_skipped(self):
        config = {"output": {"type": "json", "path": "a.json"}, "interval": 5}
        out = apply_overrides(config, {"output.path": "b.json", "interval": None, "query.max_concurrency": 4})
        assert out["output"] == {"type": "json", "path": "b.json"}
        assert out["interval"] == 5
        assert out["query"] == {"max_concurrency": 4}
        # input config untouched
        assert config["output"]["path"] == "a.json"


class TestReadConfig:
    def test_reads_given_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("servers:\n  - a:1\ninterval: 9\n", encoding="utf-8")
        config, resolved = read_config(str(path))
        assert resolved == str(path.resolve())
        assert config == {"servers": ["a:1"], "interval": 9}
        assert load_settings(config).interval == 9

    def test_missing_file_falls_back_to_example(self, tmp_path, project_root):
        config, resolved = read_config(str(tmp_path / "nope.yaml"))
        assert resolved == str(project_root / "config" / "config.yaml.example")
        assert config["failure_tolerance"] == "one"

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("interval: 7\n", encoding="utf-8")
        monkeypatch.setenv("INFOFETCHER_CONFIG", str(path))
        config, _ = read_config()
        assert config["interval"] == 7

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("servers: [a:1\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="cannot parse"):
            read_config(str(path))

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a:1\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            read_config(str(path))


def test_status_server_section():
    section = get_status_server_config({"status_server": {"port": 9000}, "output": {"path": "x.json"}})
    assert section["port"] == 9000
    assert section["stale_after_sec"] == 30
    assert section["output"]["path"] == "x.json"
    assert section["output"]["type"] == "json"
