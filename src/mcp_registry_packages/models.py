"""
Data models for server and package documents.

These Pydantic models give the publish pipeline a typed view of a server
document: a PackageReference is a tagged union keyed by registryType, with
one variant per registry type. Field names follow the wire format (camelCase
aliases) and unknown fields are carried through untouched.

Raw dict documents remain the currency of the canonicalization layer; the
models are built only after the explicit format gate has accepted a document.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from .errors import FormatError, UnsupportedRegistryType
from .identifiers import (
    NETWORK_TRANSPORTS,
    RegistryType,
    TransportType,
    check_format,
    registry_type_of,
    rules_for,
)


class _WireModel(BaseModel):
    """Base config: camelCase aliases, accept Python names, keep extra fields."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> Dict[str, Any]:
        """Dump back to the stored camelCase shape, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Input(_WireModel):
    """Descriptor for a user-supplied value (URL variable, header, env var)."""
    description: Optional[str] = None
    is_required: bool = Field(default=False, alias="isRequired")
    is_secret: bool = Field(default=False, alias="isSecret")
    default: Optional[str] = None
    format: Optional[str] = None
    choices: Optional[List[str]] = None


class Transport(_WireModel):
    """
    How a server is invoked.

    Network transports (streamable-http, sse) require a url; it may contain
    {name} placeholders described in variables.
    """
    type: TransportType = TransportType.STDIO
    url: Optional[str] = None
    headers: Optional[List[Dict[str, Any]]] = None
    variables: Optional[Dict[str, Input]] = None

    @model_validator(mode="after")
    def _require_url_for_network(self) -> "Transport":
        if self.type.value in NETWORK_TRANSPORTS and not self.url:
            raise ValueError(f"transport type '{self.type.value}' requires a url")
        return self


class _PackageBase(_WireModel):
    """Fields common to every registry type."""
    identifier: str
    runtime_hint: Optional[str] = Field(default=None, alias="runtimeHint")
    transport: Transport = Field(default_factory=Transport)
    package_arguments: Optional[List[Dict[str, Any]]] = Field(default=None, alias="packageArguments")
    runtime_arguments: Optional[List[Dict[str, Any]]] = Field(default=None, alias="runtimeArguments")
    environment_variables: Optional[List[Dict[str, Any]]] = Field(default=None, alias="environmentVariables")

    @model_validator(mode="before")
    @classmethod
    def _reject_forbidden_fields(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            forbidden = rules_for(registry_type_of(data)).forbidden
            present = sorted(name for name in forbidden if data.get(name) not in (None, ""))
            if present:
                raise ValueError(f"forbidden fields for this registry type: {', '.join(present)}")
        return data


class OciPackage(_PackageBase):
    """Container image; identifier is a canonical OCI reference."""
    registry_type: Literal["oci"] = Field(alias="registryType")


class McpbPackage(_PackageBase):
    """MCP bundle; identifier is the download URL, version embedded in it."""
    registry_type: Literal["mcpb"] = Field(alias="registryType")
    file_sha256: Optional[str] = Field(default=None, alias="fileSha256")


class NpmPackage(_PackageBase):
    registry_type: Literal["npm"] = Field(alias="registryType")
    version: Optional[str] = None
    registry_base_url: Optional[str] = Field(default=None, alias="registryBaseUrl")


class PypiPackage(_PackageBase):
    registry_type: Literal["pypi"] = Field(alias="registryType")
    version: Optional[str] = None
    registry_base_url: Optional[str] = Field(default=None, alias="registryBaseUrl")


class NugetPackage(_PackageBase):
    registry_type: Literal["nuget"] = Field(alias="registryType")
    version: str
    registry_base_url: Optional[str] = Field(default=None, alias="registryBaseUrl")


PackageReference = Annotated[
    Union[OciPackage, McpbPackage, NpmPackage, PypiPackage, NugetPackage],
    Field(discriminator="registry_type"),
]

_PACKAGE_ADAPTER: TypeAdapter = TypeAdapter(PackageReference)


class ServerDocument(_WireModel):
    """
    One published server version with its packages and remotes.

    Only the fields this engine reasons about are typed; everything else in
    the document is preserved as extra fields.
    """
    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    packages: List[PackageReference] = Field(default_factory=list)
    remotes: List[Transport] = Field(default_factory=list)


def parse_package(doc: Mapping[str, Any]) -> Union[OciPackage, McpbPackage, NpmPackage, PypiPackage, NugetPackage]:
    """
    Build a typed PackageReference from a package document.

    The explicit format gate runs first so that legacy fields produce the
    same field-specific FormatError as the registry validators.

    Raises:
        UnsupportedRegistryType: If registryType is missing or unknown
        FormatError: If the document has legacy/forbidden fields or is malformed
    """
    if not isinstance(doc, Mapping):
        raise FormatError(f"package must be an object, got {type(doc).__name__}")

    registry_type = registry_type_of(doc)
    if registry_type not in {rt.value for rt in RegistryType}:
        raise UnsupportedRegistryType(
            f"unsupported registry type: '{registry_type or '<missing>'}'",
            registry_type=registry_type or None,
            identifier=doc.get("identifier"),
        )

    check_format(doc)

    try:
        return _PACKAGE_ADAPTER.validate_python(dict(doc))
    except ValidationError as e:
        raise FormatError(
            f"invalid {registry_type} package: {_first_error(e)}",
            registry_type=registry_type, identifier=doc.get("identifier"),
        ) from e


def parse_server(doc: Mapping[str, Any]) -> ServerDocument:
    """
    Build a typed ServerDocument; every package goes through parse_package.

    Raises:
        FormatError: If the document or one of its packages is malformed
        UnsupportedRegistryType: If a package has an unknown registryType
    """
    if not isinstance(doc, Mapping):
        raise FormatError(f"server document must be an object, got {type(doc).__name__}")

    packages = [parse_package(pkg) for pkg in doc.get("packages") or []]
    body = {k: v for k, v in doc.items() if k != "packages"}
    try:
        server = ServerDocument.model_validate(body)
    except ValidationError as e:
        raise FormatError(f"invalid server document: {_first_error(e)}") from e
    server.packages = packages
    return server


def _first_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return str(e)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


__all__ = [
    "Input",
    "Transport",
    "OciPackage",
    "McpbPackage",
    "NpmPackage",
    "PypiPackage",
    "NugetPackage",
    "PackageReference",
    "ServerDocument",
    "parse_package",
    "parse_server",
]
