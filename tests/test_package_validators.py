"""
Tests for the npm, PyPI, NuGet and MCPB validators and for dispatch.

npm and PyPI metadata lookups go through httpx.MockTransport.
"""
from __future__ import annotations

import dataclasses

import httpx
import pytest

from mcp_registry_packages.context import ValidationContext
from mcp_registry_packages.errors import (
    FetchError,
    FormatError,
    OwnershipError,
    ReferenceParseError,
    UnsupportedRegistryType,
    ValidationCancelled,
)
from mcp_registry_packages.models import parse_package
from mcp_registry_packages.validators import (
    McpbValidator,
    MetadataClient,
    NpmValidator,
    NugetValidator,
    PypiValidator,
    ValidatorRegistry,
    default_validators,
    validate_package,
)

from .conftest import OWNER


def _client(handler):
    return MetadataClient(timeout_s=5.0, retries=0, transport=httpx.MockTransport(handler))


class TestNpmValidator:

    def test_mcp_name_matches(self, ctx):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"name": "@acme/weather", "version": "1.0.0", "mcpName": OWNER})

        validator = NpmValidator(_client(handler))
        pkg = {"registryType": "npm", "identifier": "@acme/weather", "version": "1.0.0"}
        assert validator.validate(ctx, pkg, OWNER).passed
        assert seen == ["https://registry.npmjs.org/@acme%2Fweather/1.0.0"]

    def test_latest_when_unpinned(self, ctx):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"mcpName": OWNER})

        NpmValidator(_client(handler)).validate(ctx, {"registryType": "npm", "identifier": "weather"}, OWNER)
        assert seen == ["/weather/latest"]

    def test_missing_mcp_name(self, ctx):
        validator = NpmValidator(_client(lambda r: httpx.Response(200, json={"name": "weather"})))
        with pytest.raises(OwnershipError, match=f'"mcpName": "{OWNER}"'):
            validator.validate(ctx, {"registryType": "npm", "identifier": "weather"}, OWNER)

    def test_mcp_name_mismatch(self, ctx):
        validator = NpmValidator(_client(lambda r: httpx.Response(200, json={"mcpName": "io.github.x/y"})))
        with pytest.raises(OwnershipError, match="got 'io.github.x/y'"):
            validator.validate(ctx, {"registryType": "npm", "identifier": "weather"}, OWNER)

    def test_not_found(self, ctx):
        validator = NpmValidator(_client(lambda r: httpx.Response(404)))
        with pytest.raises(FetchError, match=r"not found or not accessible \(status: 404\)") as exc_info:
            validator.validate(ctx, {"registryType": "npm", "identifier": "weather"}, OWNER)
        assert exc_info.value.registry_type == "npm"
        assert exc_info.value.identifier == "weather"

    def test_rate_limit_is_soft_pass(self, ctx):
        validator = NpmValidator(_client(lambda r: httpx.Response(429)))
        result = validator.validate(ctx, {"registryType": "npm", "identifier": "weather"}, OWNER)
        assert result.skipped

    def test_file_sha_rejected_before_fetch(self, ctx):
        def handler(request):
            raise AssertionError("no request expected")

        validator = NpmValidator(_client(handler))
        with pytest.raises(FormatError, match="NPM packages must not have 'fileSha256' field"):
            validator.validate(ctx, {"registryType": "npm", "identifier": "w", "fileSha256": "a" * 64}, OWNER)

    def test_cancel_while_response_in_flight(self):
        ctx = ValidationContext()

        def handler(request):
            ctx.cancel()
            return httpx.Response(200, json={"mcpName": OWNER})

        validator = NpmValidator(_client(handler))
        with pytest.raises(ValidationCancelled, match="cancelled"):
            validator.validate(ctx, {"registryType": "npm", "identifier": "weather"}, OWNER)

    def test_timeout_is_retried(self, ctx):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json={"mcpName": OWNER})

        client = MetadataClient(timeout_s=5.0, retries=1, transport=httpx.MockTransport(handler))
        assert NpmValidator(client).validate(ctx, {"registryType": "npm", "identifier": "weather"}, OWNER).passed
        assert len(calls) == 2


class TestPypiValidator:

    def test_readme_declares_owner(self, ctx):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"info": {"description": f"# Weather\n\nmcp-name: {OWNER}\n"}})

        pkg = {"registryType": "pypi", "identifier": "acme-weather", "version": "1.0.0"}
        assert PypiValidator(_client(handler)).validate(ctx, pkg, OWNER).passed
        assert seen == ["/pypi/acme-weather/1.0.0/json"]

    def test_unpinned_uses_project_endpoint(self, ctx):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"info": {"description": f"mcp-name: {OWNER}"}})

        PypiValidator(_client(handler)).validate(ctx, {"registryType": "pypi", "identifier": "w"}, OWNER)
        assert seen == ["/pypi/w/json"]

    def test_prefix_of_owner_does_not_match(self, ctx):
        readme = f"mcp-name: {OWNER}-extended"
        validator = PypiValidator(_client(lambda r: httpx.Response(200, json={"info": {"description": readme}})))
        with pytest.raises(OwnershipError, match=f"'mcp-name: {OWNER}'"):
            validator.validate(ctx, {"registryType": "pypi", "identifier": "w"}, OWNER)

    def test_missing_description(self, ctx):
        validator = PypiValidator(_client(lambda r: httpx.Response(200, json={"info": {}})))
        with pytest.raises(OwnershipError):
            validator.validate(ctx, {"registryType": "pypi", "identifier": "w"}, OWNER)

    def test_server_error(self, ctx):
        validator = PypiValidator(_client(lambda r: httpx.Response(503)))
        with pytest.raises(FetchError, match=r"status: 503"):
            validator.validate(ctx, {"registryType": "pypi", "identifier": "w"}, OWNER)


class TestOfflineValidators:

    def test_nuget_requires_version(self, ctx):
        with pytest.raises(FormatError, match="'version'"):
            NugetValidator().validate(ctx, {"registryType": "nuget", "identifier": "Acme.Weather"}, OWNER)

    def test_nuget_valid(self, ctx):
        pkg = {"registryType": "nuget", "identifier": "Acme.Weather", "version": "1.0.0"}
        assert NugetValidator().validate(ctx, pkg, OWNER).passed

    def test_nuget_bad_id(self, ctx):
        pkg = {"registryType": "nuget", "identifier": "Acme Weather", "version": "1.0.0"}
        with pytest.raises(ReferenceParseError, match="invalid NuGet package id"):
            NugetValidator().validate(ctx, pkg, OWNER)

    def test_mcpb_valid(self, ctx):
        pkg = {"registryType": "mcpb", "identifier": "https://github.com/acme/w/releases/download/v1/w.mcpb",
               "fileSha256": "a" * 64}
        assert McpbValidator().validate(ctx, pkg, OWNER).passed

    def test_mcpb_requires_https(self, ctx):
        pkg = {"registryType": "mcpb", "identifier": "http://example.com/w.mcpb"}
        with pytest.raises(ReferenceParseError, match="https:// download URL"):
            McpbValidator().validate(ctx, pkg, OWNER)

    def test_mcpb_file_sha_shape(self, ctx):
        pkg = {"registryType": "mcpb", "identifier": "https://example.com/w.mcpb", "fileSha256": "A" * 64}
        with pytest.raises(FormatError, match="64 lowercase hex") as exc_info:
            McpbValidator().validate(ctx, pkg, OWNER)
        assert exc_info.value.field == "fileSha256"

    def test_mcpb_version_rejected(self, ctx):
        pkg = {"registryType": "mcpb", "identifier": "https://example.com/w.mcpb", "version": "1"}
        with pytest.raises(FormatError, match="MCPB packages must not have 'version' field"):
            McpbValidator().validate(ctx, pkg, OWNER)


class TestDispatch:
    """Test validate_package dispatch and settings handling."""

    def test_dispatch_by_registry_type(self, ctx, validators, settings):
        pkg = {"registryType": "oci", "identifier": "acme/weather:1.0.0"}
        result = validate_package(ctx, pkg, OWNER, validators=validators, settings=settings)
        assert result.registry_type == "oci"
        assert result.passed

    def test_accepts_typed_model(self, ctx, validators, settings):
        pkg = parse_package({"registryType": "oci", "identifier": "acme/weather:1.0.0"})
        assert validate_package(ctx, pkg, OWNER, validators=validators, settings=settings).passed

    def test_unknown_registry_type(self, ctx, validators, settings):
        with pytest.raises(UnsupportedRegistryType, match="unsupported registry type: 'cargo'"):
            validate_package(ctx, {"registryType": "cargo", "identifier": "w"}, OWNER,
                             validators=validators, settings=settings)

    def test_disabled_registry_validation_still_runs_format_gate(self, ctx, validators, settings, remote):
        disabled = dataclasses.replace(settings, enable_registry_validation=False)
        result = validate_package(ctx, {"registryType": "oci", "identifier": "acme/weather:1.0.0"}, OWNER,
                                  validators=validators, settings=disabled)
        assert result.skipped
        assert result.reason == "registry validation disabled"
        assert remote.calls == []

        with pytest.raises(FormatError):
            validate_package(ctx, {"registryType": "oci", "identifier": "acme/w", "version": "1"}, OWNER,
                             validators=validators, settings=disabled)

    def test_disabled_registry_validation_keeps_offline_checks(self, ctx, validators, settings):
        disabled = dataclasses.replace(settings, enable_registry_validation=False)
        with pytest.raises(ReferenceParseError):
            validate_package(ctx, {"registryType": "mcpb", "identifier": "ftp://x/w.mcpb"}, OWNER,
                             validators=validators, settings=disabled)

    def test_default_validators_cover_every_type(self, settings):
        with default_validators(settings) as registry:
            assert registry.registry_types == ["mcpb", "npm", "nuget", "oci", "pypi"]

    def test_registry_close_closes_remote(self, validators, remote):
        validators.close()
        assert remote.closed

    def test_empty_registry(self):
        registry = ValidatorRegistry()
        assert "oci" not in registry
        with pytest.raises(UnsupportedRegistryType):
            registry.get("oci")
