"""
Tests for transport URL validation and the server JSON schema.
"""
from __future__ import annotations

import logging

import pytest

from mcp_registry_packages.errors import SchemaValidationError, TransportURLError
from mcp_registry_packages.patterns import (
    TRANSPORT_URL_PATTERN,
    load_server_schema,
    undeclared_variables,
    url_placeholders,
    validate_server_document,
    validate_transport,
    validate_transport_url,
)


def _server(**overrides):
    doc = {
        "name": "io.github.acme/weather",
        "description": "Weather lookups",
        "version": "1.0.0",
        "packages": [
            {"registryType": "oci", "identifier": "docker.io/acme/weather:1.0.0",
             "transport": {"type": "stdio"}},
        ],
    }
    doc.update(overrides)
    return doc


class TestTransportURL:
    """Test the transport URL pattern."""

    @pytest.mark.parametrize("url", [
        "https://example.com/mcp",
        "http://localhost:3000/sse",
        "https://example.com/mcp/{tenant_id}",
        "https://{region}.example.com/mcp?key={api_key}",
    ])
    def test_accepted(self, url):
        validate_transport_url(url)

    @pytest.mark.parametrize("url", [
        "not a url at all",
        "https://example.com/mcp with spaces",
        "ftp://example.com/mcp",
        "https://",
        "https://example.com/mcp\n",
        "https://x.com/a\tb",
        "",
        None,
    ])
    def test_rejected(self, url):
        with pytest.raises(TransportURLError, match="invalid transport URL"):
            validate_transport_url(url)

    def test_schema_uses_same_pattern(self):
        """The published schema and the runtime check must agree."""
        definitions = load_server_schema()["definitions"]
        for name in ("StreamableHttpTransport", "SseTransport"):
            assert definitions[name]["properties"]["url"]["pattern"] == TRANSPORT_URL_PATTERN


class TestUrlVariables:

    def test_placeholders_in_first_use_order(self):
        assert url_placeholders("https://{b}.x/{a}/{b}") == ["b", "a"]

    def test_undeclared_variables(self):
        transport = {"type": "sse", "url": "https://x/{tenant}/{region}",
                     "variables": {"tenant": {"description": "Tenant"}}}
        assert undeclared_variables(transport) == ["region"]

    def test_undeclared_variable_warns_by_default(self, caplog):
        transport = {"type": "streamable-http", "url": "https://example.com/mcp/{tenant_id}"}
        with caplog.at_level(logging.WARNING, logger="mcp_registry_packages.patterns"):
            validate_transport(transport)
        assert "tenant_id" in caplog.text

    def test_undeclared_variable_rejected_in_strict_mode(self):
        transport = {"type": "streamable-http", "url": "https://example.com/mcp/{tenant_id}"}
        with pytest.raises(TransportURLError, match="undeclared variables: tenant_id"):
            validate_transport(transport, strict_variables=True)

    def test_declared_variable_passes_strict_mode(self):
        transport = {"type": "sse", "url": "https://example.com/{tenant_id}/sse",
                     "variables": {"tenant_id": {"isRequired": True}}}
        validate_transport(transport, strict_variables=True)

    def test_stdio_needs_no_url(self):
        validate_transport({"type": "stdio"}, strict_variables=True)

    def test_network_transport_requires_url(self):
        with pytest.raises(TransportURLError, match="requires a url"):
            validate_transport({"type": "sse"})


class TestServerSchema:
    """Test JSON schema validation of server documents."""

    def test_valid_document(self):
        validate_server_document(_server())

    def test_templated_remote_url_accepted(self):
        validate_server_document(_server(remotes=[
            {"type": "streamable-http", "url": "https://example.com/mcp/{tenant_id}",
             "variables": {"tenant_id": {"description": "Tenant"}}},
        ]))

    def test_remote_url_with_spaces_rejected(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_server_document(_server(remotes=[
                {"type": "sse", "url": "https://example.com/mcp with spaces"},
            ]))
        assert exc_info.value.path == "$.remotes[0]"

    def test_remote_url_with_trailing_newline_rejected(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_server_document(_server(remotes=[
                {"type": "sse", "url": "https://example.com/mcp\n"},
            ]))
        assert exc_info.value.path == "$.remotes[0]"

    def test_missing_description_reported_at_root(self):
        doc = _server()
        del doc["description"]
        with pytest.raises(SchemaValidationError, match="'description' is a required property") as exc_info:
            validate_server_document(doc)
        assert exc_info.value.path == "$"

    def test_bad_file_sha_shape(self):
        doc = _server(packages=[{"registryType": "mcpb", "identifier": "https://x/b.mcpb",
                                 "fileSha256": "ABC", "transport": {"type": "stdio"}}])
        with pytest.raises(SchemaValidationError, match="fileSha256"):
            validate_server_document(doc)
