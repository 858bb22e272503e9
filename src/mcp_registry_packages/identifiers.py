"""
Identifier model for package references.

Defines, per registry type, which package fields are required, which are
legacy and which are forbidden, and the recognizers that tell a legacy
package document apart from a canonical one. All functions here operate on
raw package documents (camelCase dicts as stored) so they can be applied to
data that has not passed validation yet.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping

from .errors import FormatError, MissingIdentifierError


class RegistryType(str, Enum):
    """Package registry types understood by the engine."""
    NPM = "npm"
    PYPI = "pypi"
    OCI = "oci"
    MCPB = "mcpb"
    NUGET = "nuget"


class TransportType(str, Enum):
    """Server invocation mechanisms."""
    STDIO = "stdio"
    STREAMABLE_HTTP = "streamable-http"
    SSE = "sse"


# Wire names of the fields the rules below talk about
REGISTRY_TYPE = "registryType"
IDENTIFIER = "identifier"
REGISTRY_BASE_URL = "registryBaseUrl"
VERSION = "version"
FILE_SHA256 = "fileSha256"
TRANSPORT = "transport"

# Fields that only ever existed in the pre-canonical shape
LEGACY_FIELD_ORDER = (REGISTRY_BASE_URL, VERSION, FILE_SHA256)

DEFAULT_OCI_REGISTRY = "docker.io"
DEFAULT_OCI_TAG = "latest"
DIGEST_MARKER = "@sha256:"
NETWORK_TRANSPORTS = frozenset({TransportType.STREAMABLE_HTTP.value, TransportType.SSE.value})


@dataclass(frozen=True)
class FieldRules:
    """
    Field legality for one registry type.

    Attributes:
        required: Fields that must be present and non-empty
        forbidden: Fields that must be absent from a canonical package
    """
    required: FrozenSet[str] = field(default_factory=frozenset)
    forbidden: FrozenSet[str] = field(default_factory=frozenset)


FIELD_RULES: Dict[RegistryType, FieldRules] = {
    RegistryType.OCI: FieldRules(
        required=frozenset({IDENTIFIER}),
        forbidden=frozenset({REGISTRY_BASE_URL, VERSION, FILE_SHA256}),
    ),
    RegistryType.MCPB: FieldRules(
        required=frozenset({IDENTIFIER}),
        forbidden=frozenset({REGISTRY_BASE_URL, VERSION}),
    ),
    RegistryType.NPM: FieldRules(
        required=frozenset({IDENTIFIER}),
        forbidden=frozenset({FILE_SHA256}),
    ),
    RegistryType.PYPI: FieldRules(
        required=frozenset({IDENTIFIER}),
        forbidden=frozenset({FILE_SHA256}),
    ),
    RegistryType.NUGET: FieldRules(
        required=frozenset({IDENTIFIER, VERSION}),
        forbidden=frozenset({FILE_SHA256}),
    ),
}

# Unknown registry types may still never carry the MCPB-only field
_UNKNOWN_TYPE_RULES = FieldRules(forbidden=frozenset({FILE_SHA256}))


def registry_type_of(pkg: Mapping[str, Any]) -> str:
    """Return the raw registryType string of a package document ('' if absent)."""
    value = pkg.get(REGISTRY_TYPE)
    return value if isinstance(value, str) else ""


def rules_for(registry_type: str) -> FieldRules:
    """
    Look up field rules for a registry type string.

    Unknown types get a permissive rule set that only forbids fileSha256.
    """
    try:
        return FIELD_RULES[RegistryType(registry_type)]
    except ValueError:
        return _UNKNOWN_TYPE_RULES


def is_legacy_oci(pkg: Mapping[str, Any]) -> bool:
    """
    Check whether an OCI package document uses the legacy shape.

    A reference is legacy if registryBaseUrl is set, or if the identifier
    carries neither a tag (':') nor a digest ('@sha256:'), i.e. it is a bare
    name whose version used to live in the separate version field. A JSON
    null registryBaseUrl counts as absent.

    Non-OCI packages are never legacy OCI. A package without an identifier
    is malformed rather than legacy unless it still carries registryBaseUrl.
    """
    if registry_type_of(pkg) != RegistryType.OCI.value:
        return False
    if pkg.get(REGISTRY_BASE_URL) is not None:
        return True
    identifier = pkg.get(IDENTIFIER)
    if not isinstance(identifier, str) or not identifier:
        return False
    return ":" not in identifier and DIGEST_MARKER not in identifier


def legacy_fields(pkg: Mapping[str, Any]) -> List[str]:
    """
    List legacy or forbidden fields present on a package document.

    Returns:
        Field names in a fixed order (registryBaseUrl, version, fileSha256)
    """
    forbidden = rules_for(registry_type_of(pkg)).forbidden
    return [name for name in LEGACY_FIELD_ORDER if name in forbidden and name in pkg]


def is_legacy(pkg: Mapping[str, Any]) -> bool:
    """True when a package still needs a shape rewrite (ignores transport)."""
    return bool(legacy_fields(pkg)) or is_legacy_oci(pkg)


def is_canonical(pkg: Mapping[str, Any]) -> bool:
    """True when canonicalization would leave the package document unchanged."""
    return not is_legacy(pkg) and TRANSPORT in pkg


def missing_required_fields(pkg: Mapping[str, Any]) -> List[str]:
    """Required fields that are absent or empty, sorted by name."""
    required = rules_for(registry_type_of(pkg)).required
    return sorted(name for name in required if not pkg.get(name))


_FORMAT_HINTS = {
    (RegistryType.OCI.value, REGISTRY_BASE_URL):
        " - use canonical reference in 'identifier' instead (e.g., 'docker.io/owner/image:1.0.0')",
    (RegistryType.OCI.value, VERSION):
        " - include version in 'identifier' instead (e.g., 'docker.io/owner/image:1.0.0')",
    (RegistryType.MCPB.value, VERSION):
        " - the version is part of the download URL in 'identifier'",
}

_TYPE_LABELS = {
    RegistryType.OCI.value: "OCI",
    RegistryType.MCPB.value: "MCPB",
    RegistryType.NPM.value: "NPM",
    RegistryType.PYPI.value: "PyPI",
    RegistryType.NUGET.value: "NuGet",
}


def type_label(registry_type: str) -> str:
    """Human label for a registry type ('OCI', 'PyPI', ...)."""
    return _TYPE_LABELS.get(registry_type, registry_type or "unknown")


def check_format(pkg: Mapping[str, Any]) -> None:
    """
    Format gate: reject legacy/forbidden fields and missing required fields.

    Only the first offending field is reported. An empty identifier is
    reported first, then fields in the order registryBaseUrl, version,
    fileSha256, then any other required field.

    Raises:
        MissingIdentifierError: If identifier is absent or empty
        FormatError: If a forbidden field is present (non-empty)
    """
    registry_type = registry_type_of(pkg)
    label = type_label(registry_type)
    identifier = pkg.get(IDENTIFIER) if isinstance(pkg.get(IDENTIFIER), str) else None
    missing = missing_required_fields(pkg)

    if IDENTIFIER in missing:
        raise MissingIdentifierError(
            f"package identifier is required for {label} packages",
            field=IDENTIFIER, registry_type=registry_type,
        )

    for name in legacy_fields(pkg):
        if pkg.get(name) in (None, ""):
            # Present but empty behaves as absent
            continue
        hint = _FORMAT_HINTS.get((registry_type, name), "")
        raise FormatError(
            f"{label} packages must not have '{name}' field{hint}",
            field=name, registry_type=registry_type, identifier=identifier,
        )

    for name in missing:
        raise FormatError(
            f"{label} packages require a non-empty '{name}' field",
            field=name, registry_type=registry_type, identifier=identifier,
        )


__all__ = [
    "RegistryType",
    "TransportType",
    "FieldRules",
    "FIELD_RULES",
    "DEFAULT_OCI_REGISTRY",
    "DEFAULT_OCI_TAG",
    "DIGEST_MARKER",
    "NETWORK_TRANSPORTS",
    "registry_type_of",
    "rules_for",
    "is_legacy_oci",
    "legacy_fields",
    "is_legacy",
    "is_canonical",
    "missing_required_fields",
    "type_label",
    "check_format",
]
