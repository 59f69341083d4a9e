"""Test suite for configuration parsing and loading.

This test suite validates:
- Source and import params parsing from already-parsed mappings
- Config file location resolution (no module-level caching)
- YAML loading and environment overrides
"""
from pathlib import Path

import pytest
import yaml

from vault_secret_sync.secrets.domains import config_loader
from vault_secret_sync.secrets.domains.config_loader import (
    ConfigError,
    parse_import_params,
    parse_source,
)
from vault_secret_sync.secrets.domains.key_map import InvalidKeySpecError
from vault_secret_sync.secrets.domains.models import IdentityKey, RenameKey


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Fixture to create a temporary home directory for testing."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)
    for name in (config_loader.CONFIG_ENV_VAR, "VAULT_ADDR", "VAULT_TOKEN", "VAULT_NAMESPACE"):
        monkeypatch.delenv(name, raising=False)
    return fake_home


@pytest.fixture
def sample_config_content():
    """Sample valid config content."""
    return {
        "source": {
            "url": "https://vault.example.com:8200",
            "token": "test-token",
            "paths": ["/secret/handshake"],
        },
        "params": {
            "path": "resource_root_path",
            "prefix": "secret",
            "secret_maps": [
                {"source": "/some/place", "dest": "/new/place", "keys": ["ping", {"ying": "yingling"}]},
            ],
        },
    }


@pytest.fixture
def default_config_file(temp_home, sample_config_content):
    """Fixture to create a config file at the default location."""
    config_file = temp_home / ".config" / "vault-secret-sync" / "config.yml"
    config_file.parent.mkdir(parents=True)
    with open(config_file, 'w') as f:
        yaml.dump(sample_config_content, f)
    return config_file


class TestParseSource:
    """Test suite for parse_source."""

    def test_token_source(self):
        """Test a minimal token source."""
        config = parse_source({"url": "http://127.0.0.1:8201", "token": "t", "paths": ["/secret/a"]})

        assert config.url == "http://127.0.0.1:8201"
        assert config.paths == ["/secret/a"]
        assert config.backend == "vault"
        assert config.kv_version == 2

    def test_approle_source(self):
        """Test role_id + secret_id replace the token."""
        config = parse_source({"url": "u", "role_id": "r", "secret_id": "s", "paths": ["/p"]})
        assert config.role_id == "r" and config.secret_id == "s"

    def test_single_path_string(self):
        """Test a single path string is accepted."""
        assert parse_source({"url": "u", "token": "t", "paths": "/secret/a"}).paths == ["/secret/a"]

    @pytest.mark.parametrize("source, missing", [
        ({"token": "t", "paths": ["/p"]}, "url"),
        ({"url": "u", "paths": ["/p"]}, "token"),
        ({"url": "u", "token": "t"}, "paths"),
        ({"url": "u", "token": "t", "paths": []}, "paths"),
        ({"url": "u", "role_id": "r", "paths": ["/p"]}, "secret_id"),
        ({"url": "u", "secret_id": "s", "paths": ["/p"]}, "role_id"),
        ({"url": "u", "backend": "gcp", "paths": ["/p"]}, "project_id"),
    ])
    def test_missing_fields(self, source, missing):
        """Test each required field is reported by name."""
        with pytest.raises(ConfigError, match=f"Missing {missing} field"):
            parse_source(source)

    def test_empty_source(self):
        """Test an absent source section fails."""
        with pytest.raises(ConfigError):
            parse_source(None)

    def test_unknown_backend(self):
        """Test unsupported backends are rejected."""
        with pytest.raises(ConfigError, match="Unsupported backend"):
            parse_source({"url": "u", "token": "t", "paths": ["/p"], "backend": "etcd"})

    def test_bad_kv_version(self):
        """Test only KV versions 1 and 2 are accepted."""
        with pytest.raises(ConfigError):
            parse_source({"url": "u", "token": "t", "paths": ["/p"], "kv_version": 3})
        with pytest.raises(ConfigError):
            parse_source({"url": "u", "token": "t", "paths": ["/p"], "kv_version": "two"})

    @pytest.mark.parametrize("raw, expected", [
        (True, True),
        (False, False),
        ("true", True),
        ("False", False),
        ("false", False),
        ("yes", True),
        ("0", False),
        (None, False),
    ])
    def test_skip_verify_values(self, raw, expected):
        """Test skip_verify accepts booleans and their string spellings."""
        config = parse_source({"url": "u", "token": "t", "paths": ["/p"], "skip_verify": raw})
        assert config.skip_verify is expected

    @pytest.mark.parametrize("raw", ["maybe", 2, ["true"]])
    def test_invalid_skip_verify(self, raw):
        """Test unrecognised skip_verify values are rejected."""
        with pytest.raises(ConfigError, match="Invalid skip_verify"):
            parse_source({"url": "u", "token": "t", "paths": ["/p"], "skip_verify": raw})

    def test_gcp_source(self):
        """Test a gcp source needs a project but no token."""
        config = parse_source({
            "url": "gcp://my-project",
            "backend": "gcp",
            "project_id": "my-project",
            "paths": ["/app"],
        })
        assert config.project_id == "my-project"


class TestParseImportParams:
    """Test suite for parse_import_params."""

    def test_secret_maps_decoded(self):
        """Test secret maps and their key lists are decoded."""
        params = parse_import_params({
            "path": "root",
            "prefix": "secret",
            "secret_maps": [{"source": "/some/place", "keys": ["ping", {"ying": "yingling"}]}],
        })

        assert params.prefix == "secret"
        secret_map = params.secret_maps[0]
        assert secret_map.destination == "/some/place"
        assert secret_map.keys == [IdentityKey("ping"), RenameKey("ying", "yingling")]

    def test_no_secret_maps(self):
        """Test secret maps default to empty."""
        params = parse_import_params({"path": "root"})
        assert params.secret_maps == [] and params.prefix == ""

    def test_missing_path(self):
        """Test path is required."""
        with pytest.raises(ConfigError, match="Missing path field"):
            parse_import_params({"prefix": "secret"})

    @pytest.mark.parametrize("secret_maps", [
        "not-a-list",
        ["not-a-mapping"],
        [{"dest": "/new/place"}],
        [{"source": "/a", "keys": "ping"}],
    ])
    def test_malformed_secret_maps(self, secret_maps):
        """Test malformed secret_maps entries are configuration errors."""
        with pytest.raises(ConfigError):
            parse_import_params({"path": "root", "secret_maps": secret_maps})

    def test_bad_key_spec(self):
        """Test an unsupported key list entry is rejected."""
        with pytest.raises(InvalidKeySpecError):
            parse_import_params({"path": "root", "secret_maps": [{"source": "/a", "keys": [3]}]})


class TestConfigLoader:
    """Test suite for load_config."""

    def test_load_default_location(self, default_config_file):
        """Test the default location is used when nothing else is set."""
        config = config_loader.load_config()

        assert config["source"].url == "https://vault.example.com:8200"
        assert config["params"].secret_maps[0].dest == "/new/place"

    def test_explicit_path_wins(self, temp_home, tmp_path, sample_config_content):
        """Test an explicit path is used as given."""
        custom = tmp_path / "custom.yml"
        sample_config_content["source"]["url"] = "https://custom:8200"
        custom.write_text(yaml.dump(sample_config_content))

        assert config_loader.load_config(str(custom))["source"].url == "https://custom:8200"

    def test_env_var_path(self, default_config_file, tmp_path, monkeypatch, sample_config_content):
        """Test the env var takes precedence over the default location."""
        custom = tmp_path / "env.yml"
        sample_config_content["source"]["url"] = "https://from-env:8200"
        custom.write_text(yaml.dump(sample_config_content))
        monkeypatch.setenv(config_loader.CONFIG_ENV_VAR, str(custom))

        assert config_loader._get_config_path() == str(custom)

    def test_env_var_path_missing_falls_back(self, default_config_file, monkeypatch):
        """Test a dangling env var falls back to the default location."""
        monkeypatch.setenv(config_loader.CONFIG_ENV_VAR, "/does/not/exist.yml")
        assert config_loader._get_config_path() == str(default_config_file)

    def test_missing_config(self, temp_home):
        """Test a missing config raises FileNotFoundError with instructions."""
        with pytest.raises(FileNotFoundError) as exc_info:
            config_loader.load_config()
        assert "Configuration file not found" in str(exc_info.value)

    def test_explicit_path_missing(self, temp_home, tmp_path):
        """Test a missing explicit file is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            config_loader.load_config(str(tmp_path / "nope.yml"))

    def test_invalid_yaml(self, temp_home, tmp_path):
        """Test YAML syntax errors are ConfigErrors."""
        bad = tmp_path / "bad.yml"
        bad.write_text("source: [unclosed")
        with pytest.raises(ConfigError, match="Failed to parse YAML"):
            config_loader.load_config(str(bad))

    def test_empty_file(self, temp_home, tmp_path):
        """Test an empty file is rejected."""
        empty = tmp_path / "empty.yml"
        empty.write_text("")
        with pytest.raises(ConfigError, match="is empty"):
            config_loader.load_config(str(empty))

    def test_missing_source_section(self, temp_home, tmp_path):
        """Test a file without source is rejected."""
        config = tmp_path / "config.yml"
        config.write_text(yaml.dump({"params": {"path": "root"}}))
        with pytest.raises(ConfigError, match="Missing 'source' section"):
            config_loader.load_config(str(config))

    def test_params_optional(self, temp_home, tmp_path, sample_config_content):
        """Test params may be omitted for check/export only configs."""
        del sample_config_content["params"]
        config = tmp_path / "config.yml"
        config.write_text(yaml.dump(sample_config_content))

        assert config_loader.load_config(str(config))["params"] is None

    def test_environment_overrides(self, default_config_file, monkeypatch):
        """Test VAULT_ADDR and VAULT_TOKEN override the file."""
        monkeypatch.setenv("VAULT_ADDR", "https://override:8200")
        monkeypatch.setenv("VAULT_TOKEN", "override-token")

        source = config_loader.load_config()["source"]

        assert source.url == "https://override:8200"
        assert source.token == "override-token"

    def test_config_path_not_cached_at_module_level(self, default_config_file, tmp_path, monkeypatch, sample_config_content):
        """Test that the config location is resolved on every call."""
        first = config_loader.load_config()
        assert first["source"].url == "https://vault.example.com:8200"

        other = tmp_path / "other.yml"
        sample_config_content["source"]["url"] = "https://other:8200"
        other.write_text(yaml.dump(sample_config_content))
        monkeypatch.setenv(config_loader.CONFIG_ENV_VAR, str(other))

        second = config_loader.load_config()
        assert second["source"].url == "https://other:8200"
