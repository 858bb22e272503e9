"""
Registry validators and dispatch by registryType.

Usage:
    >>> from mcp_registry_packages.validators import validate_package
    >>> result = validate_package(ctx, package_doc, "io.github.owner/server")  # doctest: +SKIP
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

import httpx
from pydantic import BaseModel

from ..context import ValidationContext
from ..identifiers import IDENTIFIER, check_format, registry_type_of
from ..oci.policy import RegistryAllowlist
from ..oci.remote import HttpRemoteRegistry, RemoteRegistry
from ..settings import Settings, create_settings_from_env
from .base import PackageValidator, ValidationResult, ValidatorRegistry, format_gate
from .http import MetadataClient
from .mcpb import McpbValidator
from .npm import NpmValidator
from .nuget import NugetValidator
from .oci import OWNERSHIP_LABEL, OciValidator
from .pypi import PypiValidator

logger = logging.getLogger(__name__)


def default_validators(settings: Optional[Settings] = None, *,
                       remote: Optional[RemoteRegistry] = None,
                       transport: Optional[httpx.BaseTransport] = None) -> ValidatorRegistry:
    """
    Build the production validator registry.

    Args:
        settings: Configuration (loaded from environment if omitted)
        remote: RemoteRegistry for OCI (an HttpRemoteRegistry if omitted)
        transport: Optional httpx transport for every HTTP client (tests)

    Returns:
        ValidatorRegistry with one validator per RegistryType
    """
    settings = settings or create_settings_from_env()
    if remote is None:
        remote = HttpRemoteRegistry(settings, transport=transport)
    index_client = MetadataClient(timeout_s=settings.http_timeout_s, retries=settings.http_retry,
                                  transport=transport)
    return ValidatorRegistry([
        OciValidator(remote, RegistryAllowlist.from_patterns(settings.oci_allowed_registries)),
        NpmValidator(index_client, settings.npm_registry_url),
        PypiValidator(index_client, settings.pypi_registry_url),
        NugetValidator(),
        McpbValidator(),
    ])


def validate_package(ctx: ValidationContext, pkg: Union[Mapping[str, Any], BaseModel],
                     owner_name: str, *, validators: Optional[ValidatorRegistry] = None,
                     settings: Optional[Settings] = None) -> ValidationResult:
    """
    Validate one package for the server owner_name, dispatching by registryType.

    When registry validation is disabled in settings, only the format gate
    and offline validators run; network-backed checks return a skipped result.

    Args:
        ctx: Cancellation / deadline context
        pkg: Package document or typed package model
        owner_name: Name of the publishing server
        validators: Validator registry (a default one is built and closed if omitted)
        settings: Configuration (loaded from environment if omitted)

    Raises:
        UnsupportedRegistryType: No validator for the package's registryType
        PackageValidationError: First blocking condition found by the validator
    """
    doc = pkg.to_document() if isinstance(pkg, BaseModel) else dict(pkg)
    settings = settings or create_settings_from_env()

    owned = validators is None
    registry = validators if validators is not None else default_validators(settings)
    try:
        registry_type = registry_type_of(doc)
        validator = registry.get(registry_type)

        if validator.needs_network and not settings.enable_registry_validation:
            check_format(doc)
            logger.debug(f"Registry validation disabled; skipped {registry_type} ownership check")
            return ValidationResult.skip(registry_type, doc.get(IDENTIFIER) or "",
                                         "registry validation disabled")

        return validator.validate(ctx, doc, owner_name)
    finally:
        if owned:
            registry.close()


__all__ = [
    "PackageValidator",
    "ValidationResult",
    "ValidatorRegistry",
    "OWNERSHIP_LABEL",
    "OciValidator",
    "NpmValidator",
    "PypiValidator",
    "NugetValidator",
    "McpbValidator",
    "MetadataClient",
    "format_gate",
    "default_validators",
    "validate_package",
]
