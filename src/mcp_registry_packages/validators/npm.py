"""
npm package ownership validator.

The package's ``package.json`` must carry ``"mcpName": "<server name>"``;
the registry metadata for the published version exposes that field.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import quote

from ..context import ValidationContext
from ..errors import FetchError, OwnershipError, TransientFetchError
from ..identifiers import RegistryType
from .base import ValidationResult, format_gate
from .http import MetadataClient

logger = logging.getLogger(__name__)


class NpmValidator:
    registry_type = RegistryType.NPM.value
    needs_network = True

    def __init__(self, client: MetadataClient, base_url: str = "https://registry.npmjs.org"):
        self.client = client
        self.base_url = base_url.rstrip("/")

    def validate(self, ctx: ValidationContext, pkg: Mapping[str, Any],
                 owner_name: str) -> ValidationResult:
        identifier = format_gate(pkg, self.registry_type)
        version = pkg.get("version") or "latest"
        # Scoped names keep their '@' but the slash must be escaped
        url = f"{self.base_url}/{quote(identifier, safe='@')}/{quote(str(version), safe='')}"

        try:
            metadata = self.client.get_json(url, ctx, f"NPM package '{identifier}'")
        except TransientFetchError:
            logger.warning(f"Skipping NPM validation for {identifier} due to rate limiting")
            return ValidationResult.skip(self.registry_type, identifier, "rate limited by registry")
        except FetchError as e:
            e.registry_type, e.identifier = self.registry_type, identifier
            raise

        mcp_name = metadata.get("mcpName")
        if not mcp_name:
            raise OwnershipError(
                f"NPM package '{identifier}' is missing required 'mcpName' field. "
                f"Add this to your package.json: \"mcpName\": \"{owner_name}\"",
                expected=owner_name, registry_type=self.registry_type, identifier=identifier,
            )
        if mcp_name != owner_name:
            raise OwnershipError(
                f"NPM package ownership validation failed. "
                f"Expected mcpName '{owner_name}', got '{mcp_name}'",
                expected=owner_name, actual=mcp_name,
                registry_type=self.registry_type, identifier=identifier,
            )

        logger.info(f"NPM package {identifier}@{version} verified for {owner_name}")
        return ValidationResult.ok(self.registry_type, identifier)

    def close(self) -> None:
        self.client.close()


__all__ = ["NpmValidator"]
