"""Root pytest configuration for mcp-registry-packages tests."""
import pytest

from mcp_registry_packages.context import ValidationContext
from mcp_registry_packages.settings import Settings
from mcp_registry_packages.validators import (
    McpbValidator, NugetValidator, OciValidator, ValidatorRegistry,
)

from .fakes import FakeRemoteRegistry, InMemoryRecordStore

OWNER = "io.github.acme/weather"


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


# Keep tests independent of the developer's environment
@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path):
    """Clear MCP_REGISTRY_* variables and run from an empty directory."""
    import os
    for name in list(os.environ):
        if name.startswith("MCP_REGISTRY_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


# Standardized test fixtures
@pytest.fixture
def settings():
    """Standard test settings (fast timeouts, no retries)."""
    return Settings(http_timeout_s=5.0, http_retry=0)


@pytest.fixture
def ctx():
    return ValidationContext.background()


@pytest.fixture
def remote():
    """Fake remote registry seeded with a correctly labelled image."""
    fake = FakeRemoteRegistry()
    fake.add_image("docker.io/acme/weather:1.0.0", {"io.modelcontextprotocol.server.name": OWNER})
    return fake


@pytest.fixture
def validators(remote):
    """Offline validator registry backed by the fake remote registry."""
    return ValidatorRegistry([OciValidator(remote), NugetValidator(), McpbValidator()])


@pytest.fixture
def record_store():
    """Store with one record per legacy shape plus already-canonical and empty records."""
    return InMemoryRecordStore({
        "001": {"name": "io.github.acme/oci", "packages": [
            {"registryType": "oci", "registryBaseUrl": "https://docker.io",
             "identifier": "acme/weather", "version": "1.0.0"},
        ]},
        "002": {"name": "io.github.acme/mcpb", "packages": [
            {"registryType": "mcpb", "identifier": "https://example.com/weather-1.0.0.mcpb",
             "version": "1.0.0", "fileSha256": "a" * 64, "transport": {"type": "stdio"}},
        ]},
        "003": {"name": "io.github.acme/npm", "packages": [
            {"registryType": "npm", "identifier": "@acme/weather", "version": "1.0.0",
             "fileSha256": "b" * 64},
        ]},
        "004": {"name": "io.github.acme/canonical", "packages": [
            {"registryType": "oci", "identifier": "ghcr.io/acme/weather:2.0.0",
             "transport": {"type": "stdio"}},
        ]},
        "005": {"name": "io.github.acme/remote-only", "remotes": [
            {"type": "sse", "url": "https://example.com/sse"},
        ]},
    })
