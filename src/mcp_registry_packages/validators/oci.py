"""
OCI image ownership validator.

An OCI package proves it belongs to a server through a label on the image
configuration::

    LABEL io.modelcontextprotocol.server.name="io.github.owner/server"

Validation is strictly sequential and fails fast: format gate, reference
parse, registry policy, remote fetch, then the label check. Nothing touches
the network until the first three steps have passed.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..context import ValidationContext
from ..errors import FetchError, OwnershipError
from ..identifiers import RegistryType
from ..oci.errors import OciError, OciRateLimited
from ..oci.policy import RegistryAllowlist
from ..oci.reference import parse_reference
from ..oci.remote import RemoteRegistry
from .base import ValidationResult, format_gate

logger = logging.getLogger(__name__)

OWNERSHIP_LABEL = "io.modelcontextprotocol.server.name"

# Statuses reported as "not found or not accessible"
_NOT_ACCESSIBLE_STATUSES = (401, 404)


class OciValidator:
    """Validates OCI packages against a RemoteRegistry and an allowlist."""

    registry_type = RegistryType.OCI.value
    needs_network = True

    def __init__(self, remote: RemoteRegistry, allowlist: Optional[RegistryAllowlist] = None):
        """
        Args:
            remote: Source of image configuration labels
            allowlist: Accepted registries (defaults to the curated list)
        """
        self.remote = remote
        self.allowlist = allowlist or RegistryAllowlist()

    def validate(self, ctx: ValidationContext, pkg: Mapping[str, Any],
                 owner_name: str) -> ValidationResult:
        """
        Validate that an OCI image declares ownership by owner_name.

        Raises:
            MissingIdentifierError: Empty identifier
            FormatError: registryBaseUrl, version or fileSha256 present
            ReferenceParseError: Identifier is not a valid image reference
            PolicyError: Registry host not allowlisted
            FetchError: Image missing, inaccessible, or fetch failed
            ValidationCancelled: ctx cancelled or past its deadline
            OwnershipError: Label missing or naming a different server
        """
        identifier = format_gate(pkg, self.registry_type)
        reference = parse_reference(identifier)
        self.allowlist.check(reference.registry, identifier)

        ctx.check(f"OCI validation of {identifier}")
        try:
            labels = self.remote.fetch_image_config(reference, ctx)
        except OciRateLimited:
            logger.warning(f"Skipping OCI validation for {identifier} due to rate limiting")
            return ValidationResult.skip(self.registry_type, identifier, "rate limited by registry")
        except OciError as e:
            raise self._fetch_error(identifier, e) from e

        actual = labels.get(OWNERSHIP_LABEL) if labels is not None else None
        if actual is None:
            raise OwnershipError(
                f"OCI image '{identifier}' is missing required annotation. "
                f"Add this to your Dockerfile: LABEL {OWNERSHIP_LABEL}=\"{owner_name}\"",
                expected=owner_name, registry_type=self.registry_type, identifier=identifier,
            )
        if actual != owner_name:
            raise OwnershipError(
                f"OCI image ownership validation failed. "
                f"Expected annotation '{OWNERSHIP_LABEL}' = '{owner_name}', got '{actual}'",
                expected=owner_name, actual=actual,
                registry_type=self.registry_type, identifier=identifier,
            )

        logger.info(f"OCI image {identifier} verified for {owner_name}")
        return ValidationResult.ok(self.registry_type, identifier)

    def _fetch_error(self, identifier: str, error: OciError) -> FetchError:
        if error.status_code in _NOT_ACCESSIBLE_STATUSES:
            message = f"OCI image '{identifier}' not found or not accessible (status: {error.status_code})"
        else:
            message = f"failed to fetch OCI image: {error}"
        return FetchError(message, status_code=error.status_code,
                          registry_type=self.registry_type, identifier=identifier)

    def close(self) -> None:
        close = getattr(self.remote, "close", None)
        if callable(close):
            close()


__all__ = ["OciValidator", "OWNERSHIP_LABEL"]
