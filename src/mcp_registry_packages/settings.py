"""
Settings and configuration for the package metadata engine.

Centralizes configuration values and provides validation with fail-fast
behavior. Settings come from an optional YAML file (``registry.yaml``)
overlaid by environment variables, and are loaded fresh on every call.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .oci.policy import DEFAULT_ALLOWED_REGISTRIES

__all__ = ["Settings", "create_settings_from_env", "load_settings"]

ENV_PREFIX = "MCP_REGISTRY_"
CONFIG_FILE_NAME = "registry.yaml"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for package validation and migration.

    Validation Settings:
        oci_allowed_registries: Exact hosts / glob patterns accepted for OCI images ("*" = any)
        enable_registry_validation: Run network-backed ownership checks
        strict_url_variables: Reject transport URLs with undeclared {placeholders}
        insecure_registries: Registry hosts reached over plain HTTP (local dev only)

    HTTP Settings:
        http_timeout_s: Per-request timeout in seconds
        http_retry: Number of retries for timed-out requests (0=no retry)
        npm_registry_url: Base URL of the npm registry
        pypi_registry_url: Base URL of PyPI

    Migration Settings:
        migration_chunk_size: Records per transaction (0 = whole corpus in one)
    """
    oci_allowed_registries: Tuple[str, ...] = DEFAULT_ALLOWED_REGISTRIES
    enable_registry_validation: bool = True
    strict_url_variables: bool = False
    insecure_registries: Tuple[str, ...] = ()

    http_timeout_s: float = 30.0
    http_retry: int = 2
    npm_registry_url: str = "https://registry.npmjs.org"
    pypi_registry_url: str = "https://pypi.org"

    migration_chunk_size: int = 0

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.oci_allowed_registries:
            raise ValueError("oci_allowed_registries cannot be empty (use '*' to allow any registry)")

        host_pattern = r"^[a-zA-Z0-9.*?\[\]-]+(?::[0-9]+)?$"
        for entry in self.oci_allowed_registries:
            if not re.match(host_pattern, entry):
                raise ValueError(f"Invalid registry host pattern: {entry!r}")

        for name in ("npm_registry_url", "pypi_registry_url"):
            value = getattr(self, name)
            if not re.match(r"^https?://[^\s]+$", value):
                raise ValueError(f"{name} must be an http(s) URL, got {value!r}")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.http_retry < 0:
            raise ValueError(f"http_retry must be non-negative, got {self.http_retry}")

        if self.migration_chunk_size < 0:
            raise ValueError(f"migration_chunk_size must be non-negative, got {self.migration_chunk_size}")


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables only.

    Environment Variables:
        - MCP_REGISTRY_OCI_ALLOWED_REGISTRIES (comma list, default: docker.io,ghcr.io,*-docker.pkg.dev)
        - MCP_REGISTRY_ENABLE_REGISTRY_VALIDATION (default: true)
        - MCP_REGISTRY_STRICT_URL_VARIABLES (default: false)
        - MCP_REGISTRY_INSECURE_REGISTRIES (comma list, default: empty)
        - MCP_REGISTRY_HTTP_TIMEOUT (default: 30.0)
        - MCP_REGISTRY_HTTP_RETRY (default: 2)
        - MCP_REGISTRY_NPM_URL (default: https://registry.npmjs.org)
        - MCP_REGISTRY_PYPI_URL (default: https://pypi.org)
        - MCP_REGISTRY_MIGRATION_CHUNK_SIZE (default: 0)

    Raises:
        ValueError: If configuration is invalid

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    return Settings(**_env_overrides())


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load settings from a YAML file overlaid by environment variables.

    Looks for ``registry.yaml`` in the current directory when no path is
    given; a missing default file is not an error, a missing explicit path is.
    YAML keys are the Settings field names.

    Raises:
        FileNotFoundError: If an explicit path does not exist
        ValueError: If the file has unknown keys or values are invalid
    """
    values: Dict[str, Any] = {}
    config_path = Path(path) if path is not None else Path.cwd() / CONFIG_FILE_NAME
    if path is not None or config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_path}: expected a mapping at top level")
        values.update(_coerce_file_values(data, config_path))

    values.update(_env_overrides())
    return Settings(**values)


def _coerce_file_values(data: Dict[str, Any], source: Path) -> Dict[str, Any]:
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{source}: unknown settings: {', '.join(unknown)}")

    result = dict(data)
    for key in ("oci_allowed_registries", "insecure_registries"):
        if key in result:
            value = result[key]
            result[key] = tuple(_split_list(value) if isinstance(value, str) else value or ())
    return result


def _env_overrides() -> Dict[str, Any]:
    """Collect only the settings explicitly present in the environment."""
    # Helper to convert string to bool
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')

    converters = {
        "oci_allowed_registries": ("OCI_ALLOWED_REGISTRIES", lambda v: tuple(_split_list(v))),
        "enable_registry_validation": ("ENABLE_REGISTRY_VALIDATION", str_to_bool),
        "strict_url_variables": ("STRICT_URL_VARIABLES", str_to_bool),
        "insecure_registries": ("INSECURE_REGISTRIES", lambda v: tuple(_split_list(v))),
        "http_timeout_s": ("HTTP_TIMEOUT", float),
        "http_retry": ("HTTP_RETRY", int),
        "npm_registry_url": ("NPM_URL", str),
        "pypi_registry_url": ("PYPI_URL", str),
        "migration_chunk_size": ("MIGRATION_CHUNK_SIZE", int),
    }

    overrides: Dict[str, Any] = {}
    for field_name, (suffix, convert) in converters.items():
        raw = os.getenv(ENV_PREFIX + suffix)
        if raw:
            overrides[field_name] = convert(raw)
    return overrides


def _split_list(value: str) -> list:
    return [part.strip() for part in value.split(",") if part.strip()]
