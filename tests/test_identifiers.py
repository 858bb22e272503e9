"""
Tests for the identifier model.

Covers legacy-shape recognition and the format gate that rejects legacy
and forbidden fields at validation time.
"""
from __future__ import annotations

import pytest

from mcp_registry_packages.errors import FormatError, MissingIdentifierError
from mcp_registry_packages.identifiers import (
    check_format,
    is_canonical,
    is_legacy,
    is_legacy_oci,
    legacy_fields,
    missing_required_fields,
    rules_for,
    type_label,
)


class TestLegacyRecognition:
    """Test recognizers for the pre-canonical package shape."""

    @pytest.mark.parametrize("pkg", [
        {"registryType": "oci", "registryBaseUrl": "https://docker.io", "identifier": "ns/img:1.0"},
        {"registryType": "oci", "identifier": "ns/img"},
        {"registryType": "oci", "identifier": "docker.io/ns/img", "version": "1.0"},
        {"registryType": "oci", "registryBaseUrl": "https://docker.io", "identifier": ""},
    ])
    def test_legacy_oci(self, pkg):
        """Bare names and anything with registryBaseUrl are legacy."""
        assert is_legacy_oci(pkg)

    @pytest.mark.parametrize("pkg", [
        {"registryType": "oci", "identifier": "docker.io/ns/img:1.0"},
        {"registryType": "oci", "identifier": "ghcr.io/o/i@sha256:" + "a" * 64},
        {"registryType": "oci", "identifier": ""},
        {"registryType": "oci", "registryBaseUrl": None, "identifier": "ghcr.io/o/i:1.0"},
        {"registryType": "npm", "identifier": "ns/img"},
    ])
    def test_not_legacy_oci(self, pkg):
        assert not is_legacy_oci(pkg)

    def test_legacy_fields_in_fixed_order(self):
        pkg = {"registryType": "oci", "fileSha256": "x", "version": "1", "registryBaseUrl": "u",
               "identifier": "a/b"}
        assert legacy_fields(pkg) == ["registryBaseUrl", "version", "fileSha256"]

    def test_npm_may_keep_version(self):
        """npm packages keep version and registryBaseUrl; only fileSha256 is foreign."""
        pkg = {"registryType": "npm", "identifier": "pkg", "version": "1.0.0",
               "registryBaseUrl": "https://registry.npmjs.org", "fileSha256": "x"}
        assert legacy_fields(pkg) == ["fileSha256"]

    def test_unknown_type_forbids_only_file_sha(self):
        assert rules_for("cargo").forbidden == frozenset({"fileSha256"})
        assert rules_for("cargo").required == frozenset()

    def test_canonical_requires_transport(self):
        pkg = {"registryType": "oci", "identifier": "docker.io/ns/img:1.0"}
        assert not is_legacy(pkg)
        assert not is_canonical(pkg)
        assert is_canonical({**pkg, "transport": {"type": "stdio"}})

    def test_nuget_requires_version(self):
        assert missing_required_fields({"registryType": "nuget", "identifier": "Pkg"}) == ["version"]

    def test_type_labels(self):
        assert type_label("oci") == "OCI"
        assert type_label("pypi") == "PyPI"
        assert type_label("") == "unknown"


class TestFormatGate:
    """Test the explicit format gate."""

    def test_oci_registry_base_url_rejected_with_hint(self):
        pkg = {"registryType": "oci", "registryBaseUrl": "https://docker.io",
               "identifier": "docker.io/ns/img:1.0"}
        with pytest.raises(FormatError, match="OCI packages must not have 'registryBaseUrl' field") as exc_info:
            check_format(pkg)
        assert exc_info.value.field == "registryBaseUrl"
        assert "docker.io/owner/image:1.0.0" in str(exc_info.value)

    def test_oci_version_rejected(self):
        pkg = {"registryType": "oci", "identifier": "docker.io/ns/img:1.0", "version": "1.0"}
        with pytest.raises(FormatError, match="must not have 'version' field - include version in 'identifier'"):
            check_format(pkg)

    def test_oci_file_sha_rejected(self):
        pkg = {"registryType": "oci", "identifier": "docker.io/ns/img:1.0", "fileSha256": "a" * 64}
        with pytest.raises(FormatError, match="OCI packages must not have 'fileSha256' field$"):
            check_format(pkg)

    def test_mcpb_version_rejected(self):
        pkg = {"registryType": "mcpb", "identifier": "https://example.com/x.mcpb", "version": "1.0"}
        with pytest.raises(FormatError, match="MCPB packages must not have 'version' field"):
            check_format(pkg)

    def test_mcpb_may_have_file_sha(self):
        check_format({"registryType": "mcpb", "identifier": "https://example.com/x.mcpb",
                      "fileSha256": "a" * 64})

    def test_empty_forbidden_field_is_ignored(self):
        check_format({"registryType": "oci", "identifier": "docker.io/ns/img:1.0", "version": ""})

    def test_missing_identifier_reported_first(self):
        pkg = {"registryType": "oci", "identifier": "", "registryBaseUrl": "https://docker.io"}
        with pytest.raises(MissingIdentifierError, match="package identifier is required for OCI packages"):
            check_format(pkg)

    def test_missing_identifier_is_a_format_error(self):
        with pytest.raises(FormatError):
            check_format({"registryType": "npm"})

    def test_nuget_missing_version(self):
        with pytest.raises(FormatError, match="NuGet packages require a non-empty 'version' field"):
            check_format({"registryType": "nuget", "identifier": "Acme.Weather"})

    def test_canonical_package_passes(self):
        check_format({"registryType": "oci", "identifier": "ghcr.io/acme/weather:1.0.0",
                      "transport": {"type": "stdio"}})
