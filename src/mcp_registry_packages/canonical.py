"""
Canonicalization of package reference documents.

Rewrites a stored package document from the legacy multi-field shape into
the canonical single-identifier shape. The rewrite is a fixed pipeline of
small stages; every stage touches only its own concern, leaves other
registry types untouched and returns a new dict. The pipeline never raises:
malformed input is passed through and left for validation to reject.

Stage order matters. The type-specific rewrites (OCI, MCPB) run before the
forbidden-field strip, and the transport default runs last.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .identifiers import (
    DEFAULT_OCI_REGISTRY,
    DEFAULT_OCI_TAG,
    FILE_SHA256,
    IDENTIFIER,
    REGISTRY_BASE_URL,
    TRANSPORT,
    VERSION,
    RegistryType,
    is_legacy_oci,
    registry_type_of,
)

PackageDoc = Dict[str, Any]
Stage = Callable[[PackageDoc], PackageDoc]

_SCHEME_RE = re.compile(r"^https?://")


def _registry_host(registry_base_url: Any) -> str:
    """Strip scheme and trailing slashes from a legacy registryBaseUrl."""
    if not isinstance(registry_base_url, str) or not registry_base_url:
        return DEFAULT_OCI_REGISTRY
    host = _SCHEME_RE.sub("", registry_base_url).rstrip("/")
    return host or DEFAULT_OCI_REGISTRY


def rewrite_oci(pkg: PackageDoc) -> PackageDoc:
    """
    Fold legacy registryBaseUrl/version fields into the OCI identifier.

    Examples:
        >>> rewrite_oci({"registryType": "oci", "registryBaseUrl": "https://docker.io",
        ...              "identifier": "ns/img", "version": "1.2.3"})
        {'registryType': 'oci', 'identifier': 'docker.io/ns/img:1.2.3'}

    An identifier that already carries a tag or digest is kept as is; any
    leftover registryBaseUrl/version keys are dropped.
    """
    if not is_legacy_oci(pkg):
        if registry_type_of(pkg) != RegistryType.OCI.value:
            return pkg
        if REGISTRY_BASE_URL not in pkg and VERSION not in pkg:
            return pkg
        return {k: v for k, v in pkg.items() if k not in (REGISTRY_BASE_URL, VERSION)}
    identifier = pkg.get(IDENTIFIER)
    if not isinstance(identifier, str) or not identifier:
        return pkg

    host = _registry_host(pkg.get(REGISTRY_BASE_URL))
    version = pkg.get(VERSION)
    tag = version if isinstance(version, str) and version else DEFAULT_OCI_TAG

    result = {k: v for k, v in pkg.items() if k not in (REGISTRY_BASE_URL, VERSION)}
    result[IDENTIFIER] = f"{host}/{identifier}:{tag}"
    return result


def rewrite_mcpb(pkg: PackageDoc) -> PackageDoc:
    """Drop version and registryBaseUrl from MCPB packages (version lives in the URL)."""
    if registry_type_of(pkg) != RegistryType.MCPB.value:
        return pkg
    if VERSION not in pkg and REGISTRY_BASE_URL not in pkg:
        return pkg
    return {k: v for k, v in pkg.items() if k not in (VERSION, REGISTRY_BASE_URL)}


def strip_forbidden_fields(pkg: PackageDoc) -> PackageDoc:
    """Drop fileSha256 from every package that is not MCPB."""
    if registry_type_of(pkg) == RegistryType.MCPB.value or FILE_SHA256 not in pkg:
        return pkg
    return {k: v for k, v in pkg.items() if k != FILE_SHA256}


def default_transport(pkg: PackageDoc) -> PackageDoc:
    """Add a stdio transport when none is declared. Never overwrites."""
    if TRANSPORT in pkg:
        return pkg
    result = dict(pkg)
    result[TRANSPORT] = {"type": "stdio"}
    return result


@dataclass(frozen=True)
class CanonicalizationPipeline:
    """
    Ordered, stateless composition of canonicalization stages.

    Attributes:
        stages: Stage functions applied left to right
    """
    stages: Tuple[Stage, ...]

    def __call__(self, pkg: Any) -> Any:
        return self.apply(pkg)

    def apply(self, pkg: Any) -> Any:
        """Run every stage over one package document; non-dicts pass through."""
        if not isinstance(pkg, dict):
            return pkg
        result: PackageDoc = pkg
        for stage in self.stages:
            result = stage(result)
        if result is pkg:
            # Stages only copy on change; hand back a copy so callers may mutate
            result = dict(pkg)
        return result

    @property
    def stage_names(self) -> List[str]:
        return [stage.__name__ for stage in self.stages]


DEFAULT_PIPELINE = CanonicalizationPipeline(
    stages=(rewrite_oci, rewrite_mcpb, strip_forbidden_fields, default_transport)
)


def canonicalize(pkg: Any, pipeline: CanonicalizationPipeline = DEFAULT_PIPELINE) -> Any:
    """
    Rewrite one package document into canonical form.

    Pure and idempotent: canonicalize(canonicalize(p)) == canonicalize(p).

    Args:
        pkg: Package document as stored (camelCase keys)
        pipeline: Stage pipeline to apply (defaults to production order)

    Returns:
        New package document; the input is never mutated
    """
    return pipeline.apply(pkg)


def canonicalize_packages(packages: Optional[List[Any]],
                          pipeline: CanonicalizationPipeline = DEFAULT_PIPELINE) -> Optional[List[Any]]:
    """
    Canonicalize a packages array.

    None or empty input is returned unchanged (same object).
    """
    if not packages:
        return packages
    return [pipeline.apply(pkg) for pkg in packages]


def canonicalize_server(server: Dict[str, Any],
                        pipeline: CanonicalizationPipeline = DEFAULT_PIPELINE) -> Dict[str, Any]:
    """
    Canonicalize-on-read for a stored server document.

    Returns a new document with its packages array canonicalized, or the
    document itself when it declares no packages.
    """
    packages = server.get("packages")
    if not isinstance(packages, list) or not packages:
        return server
    result = dict(server)
    result["packages"] = canonicalize_packages(packages, pipeline)
    return result


__all__ = [
    "CanonicalizationPipeline",
    "DEFAULT_PIPELINE",
    "rewrite_oci",
    "rewrite_mcpb",
    "strip_forbidden_fields",
    "default_transport",
    "canonicalize",
    "canonicalize_packages",
    "canonicalize_server",
]
