"""
Tests for settings module.

Tests settings validation, environment variable loading and the YAML
configuration overlay.
"""
from __future__ import annotations

import pytest

from mcp_registry_packages.settings import Settings, create_settings_from_env, load_settings


class TestSettings:
    """Test Settings dataclass validation."""

    def test_defaults(self):
        settings = Settings()
        assert settings.oci_allowed_registries == ("docker.io", "ghcr.io", "*-docker.pkg.dev")
        assert settings.enable_registry_validation is True
        assert settings.strict_url_variables is False
        assert settings.http_timeout_s == 30.0
        assert settings.http_retry == 2
        assert settings.npm_registry_url == "https://registry.npmjs.org"
        assert settings.pypi_registry_url == "https://pypi.org"
        assert settings.migration_chunk_size == 0

    def test_empty_allowlist_raises(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            Settings(oci_allowed_registries=())

    def test_invalid_host_pattern_raises(self):
        with pytest.raises(ValueError, match="Invalid registry host pattern"):
            Settings(oci_allowed_registries=("https://docker.io",))

    def test_wildcard_allowed(self):
        assert Settings(oci_allowed_registries=("*",)).oci_allowed_registries == ("*",)

    def test_invalid_index_url_raises(self):
        with pytest.raises(ValueError, match="npm_registry_url must be an http"):
            Settings(npm_registry_url="registry.npmjs.org")

    @pytest.mark.parametrize("field, value, message", [
        ("http_timeout_s", 0, "http_timeout_s must be positive"),
        ("http_retry", -1, "http_retry must be non-negative"),
        ("migration_chunk_size", -5, "migration_chunk_size must be non-negative"),
    ])
    def test_numeric_bounds(self, field, value, message):
        with pytest.raises(ValueError, match=message):
            Settings(**{field: value})

    def test_frozen(self):
        with pytest.raises(AttributeError):
            Settings().http_retry = 5  # type: ignore[misc]


class TestEnvironment:
    """Test loading from MCP_REGISTRY_* variables."""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MCP_REGISTRY_OCI_ALLOWED_REGISTRIES", "docker.io, quay.io")
        monkeypatch.setenv("MCP_REGISTRY_ENABLE_REGISTRY_VALIDATION", "false")
        monkeypatch.setenv("MCP_REGISTRY_STRICT_URL_VARIABLES", "yes")
        monkeypatch.setenv("MCP_REGISTRY_HTTP_TIMEOUT", "7.5")
        monkeypatch.setenv("MCP_REGISTRY_HTTP_RETRY", "0")
        monkeypatch.setenv("MCP_REGISTRY_MIGRATION_CHUNK_SIZE", "100")

        settings = create_settings_from_env()
        assert settings.oci_allowed_registries == ("docker.io", "quay.io")
        assert settings.enable_registry_validation is False
        assert settings.strict_url_variables is True
        assert settings.http_timeout_s == 7.5
        assert settings.http_retry == 0
        assert settings.migration_chunk_size == 100

    def test_fresh_instance_every_call(self, monkeypatch):
        first = create_settings_from_env()
        monkeypatch.setenv("MCP_REGISTRY_HTTP_RETRY", "4")
        assert create_settings_from_env().http_retry == 4
        assert first.http_retry == 2

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("MCP_REGISTRY_HTTP_TIMEOUT", "-1")
        with pytest.raises(ValueError, match="http_timeout_s must be positive"):
            create_settings_from_env()


class TestYamlOverlay:
    """Test load_settings with a registry.yaml file."""

    def test_file_values(self, tmp_path):
        path = tmp_path / "registry.yaml"
        path.write_text(
            "oci_allowed_registries:\n  - docker.io\n  - registry.example.com\n"
            "strict_url_variables: true\n"
            "http_retry: 1\n"
        )
        settings = load_settings(path)
        assert settings.oci_allowed_registries == ("docker.io", "registry.example.com")
        assert settings.strict_url_variables is True
        assert settings.http_retry == 1

    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "registry.yaml"
        path.write_text("http_retry: 1\nnpm_registry_url: https://npm.example.com\n")
        monkeypatch.setenv("MCP_REGISTRY_HTTP_RETRY", "3")
        settings = load_settings(path)
        assert settings.http_retry == 3
        assert settings.npm_registry_url == "https://npm.example.com"

    def test_default_file_in_working_directory(self, tmp_path):
        (tmp_path / "registry.yaml").write_text("oci_allowed_registries: '*'\n")
        assert load_settings().oci_allowed_registries == ("*",)

    def test_no_default_file_is_fine(self):
        assert load_settings() == Settings()

    def test_explicit_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_unknown_key_raises(self, tmp_path):
        path = tmp_path / "registry.yaml"
        path.write_text("registry_url: localhost\n")
        with pytest.raises(ValueError, match="unknown settings: registry_url"):
            load_settings(path)
