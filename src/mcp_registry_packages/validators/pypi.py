"""
PyPI package ownership validator.

PyPI has no structured field for this, so ownership is declared in the
project README (the long description)::

    mcp-name: io.github.owner/server
"""
from __future__ import annotations

import logging
import re
from typing import Any, Mapping
from urllib.parse import quote

from ..context import ValidationContext
from ..errors import FetchError, OwnershipError, TransientFetchError
from ..identifiers import RegistryType
from .base import ValidationResult, format_gate
from .http import MetadataClient

logger = logging.getLogger(__name__)


def _declares_owner(description: str, owner_name: str) -> bool:
    pattern = rf"mcp-name:\s*{re.escape(owner_name)}(?![\w./-])"
    return re.search(pattern, description) is not None


class PypiValidator:
    registry_type = RegistryType.PYPI.value
    needs_network = True

    def __init__(self, client: MetadataClient, base_url: str = "https://pypi.org"):
        self.client = client
        self.base_url = base_url.rstrip("/")

    def validate(self, ctx: ValidationContext, pkg: Mapping[str, Any],
                 owner_name: str) -> ValidationResult:
        identifier = format_gate(pkg, self.registry_type)
        version = pkg.get("version")
        name = quote(identifier, safe="")
        if version:
            url = f"{self.base_url}/pypi/{name}/{quote(str(version), safe='')}/json"
        else:
            url = f"{self.base_url}/pypi/{name}/json"

        try:
            metadata = self.client.get_json(url, ctx, f"PyPI package '{identifier}'")
        except TransientFetchError:
            logger.warning(f"Skipping PyPI validation for {identifier} due to rate limiting")
            return ValidationResult.skip(self.registry_type, identifier, "rate limited by registry")
        except FetchError as e:
            e.registry_type, e.identifier = self.registry_type, identifier
            raise

        description = (metadata.get("info") or {}).get("description") or ""
        if not _declares_owner(description, owner_name):
            raise OwnershipError(
                f"PyPI package '{identifier}' ownership validation failed. "
                f"The server name '{owner_name}' must appear as 'mcp-name: {owner_name}' "
                f"in the package README",
                expected=owner_name, registry_type=self.registry_type, identifier=identifier,
            )

        logger.info(f"PyPI package {identifier} verified for {owner_name}")
        return ValidationResult.ok(self.registry_type, identifier)

    def close(self) -> None:
        self.client.close()


__all__ = ["PypiValidator"]
