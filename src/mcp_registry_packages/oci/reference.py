"""
OCI image reference parsing.

Parses canonical container image references using the distribution
reference grammar:

    [host[:port]/]path-component[/path-component...][:tag][@algorithm:hex]

A missing registry defaults to docker.io (single-component Docker Hub names
gain the ``library/`` prefix), and a missing tag defaults to ``latest``
unless the reference is pinned by digest.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import ReferenceParseError
from ..identifiers import DEFAULT_OCI_REGISTRY, DEFAULT_OCI_TAG

__all__ = ["OciReference", "parse_reference"]

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN_RE = re.compile(rf"^{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?$")
_PATH_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$")
_SHA256_RE = re.compile(r"^sha256:[a-f0-9]{64}$")

_NAME_TOTAL_LENGTH_MAX = 255

# Registry hosts that are aliases of Docker Hub
_DOCKER_HUB_ALIASES = {"docker.io", "index.docker.io", "registry-1.docker.io"}
_DOCKER_HUB_API_HOST = "registry-1.docker.io"


@dataclass(frozen=True)
class OciReference:
    """
    Parsed components of an OCI image reference.

    Attributes:
        registry: Registry host (with port, if any); Docker Hub is always "docker.io"
        repository: Repository path (e.g. "library/nginx", "owner/image")
        tag: Tag, or None when pinned by digest only
        digest: Content digest ("sha256:..."), or None
        original: Original reference string for error messages
    """
    registry: str
    repository: str
    tag: Optional[str]
    digest: Optional[str]
    original: str

    @property
    def name(self) -> str:
        """Fully qualified repository name (registry/repository)."""
        return f"{self.registry}/{self.repository}"

    @property
    def manifest_ref(self) -> str:
        """Reference to request from the manifests endpoint (digest wins over tag)."""
        return self.digest or self.tag or DEFAULT_OCI_TAG

    @property
    def api_host(self) -> str:
        """Host serving the distribution API for this registry."""
        if self.registry == DEFAULT_OCI_REGISTRY:
            return _DOCKER_HUB_API_HOST
        return self.registry

    def __str__(self) -> str:
        result = self.name
        if self.tag:
            result += f":{self.tag}"
        if self.digest:
            result += f"@{self.digest}"
        return result


def _looks_like_domain(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost" or component != component.lower()


def parse_reference(reference: str) -> OciReference:
    """
    Parse and validate an OCI image reference.

    Args:
        reference: Reference string, e.g. "ghcr.io/owner/image:1.0.0"

    Returns:
        OciReference with defaults applied

    Raises:
        ReferenceParseError: If the reference does not match the grammar

    Examples:
        >>> parse_reference("ns/img").name
        'docker.io/ns/img'
        >>> parse_reference("nginx").repository
        'library/nginx'
        >>> parse_reference("ghcr.io/o/i:1.0@sha256:" + "a" * 64).tag
        '1.0'
    """
    if not isinstance(reference, str) or not reference:
        raise ReferenceParseError("invalid OCI reference: reference is empty")

    def fail(reason: str) -> ReferenceParseError:
        return ReferenceParseError(f"invalid OCI reference '{reference}': {reason}", identifier=reference)

    if reference != reference.strip():
        raise fail("leading or trailing whitespace")

    name = reference
    digest: Optional[str] = None
    if "@" in name:
        name, digest = name.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise fail(f"invalid digest '{digest}'")
        if digest.startswith("sha256:") and not _SHA256_RE.match(digest):
            raise fail("sha256 digest must be 64 lowercase hex characters")

    tag: Optional[str] = None
    last_slash = name.rfind("/")
    last_colon = name.rfind(":")
    if last_colon > last_slash:
        name, tag = name[:last_colon], name[last_colon + 1:]
        if not _TAG_RE.match(tag):
            raise fail(f"invalid tag '{tag}'")

    if not name:
        raise fail("missing repository name")
    if len(name) > _NAME_TOTAL_LENGTH_MAX:
        raise fail(f"repository name longer than {_NAME_TOTAL_LENGTH_MAX} characters")

    first, sep, rest = name.partition("/")
    if sep and _looks_like_domain(first):
        registry, path = first, rest
        if not _DOMAIN_RE.match(registry):
            raise fail(f"invalid registry host '{registry}'")
    else:
        registry, path = DEFAULT_OCI_REGISTRY, name

    registry = registry.lower()
    if registry in _DOCKER_HUB_ALIASES:
        registry = DEFAULT_OCI_REGISTRY
        if "/" not in path:
            path = f"library/{path}"

    for component in path.split("/"):
        if not _PATH_COMPONENT_RE.match(component):
            raise fail(f"invalid repository path component '{component}'")

    if tag is None and digest is None:
        tag = DEFAULT_OCI_TAG

    return OciReference(registry=registry, repository=path, tag=tag, digest=digest, original=reference)
