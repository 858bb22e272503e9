"""
MCPB bundle validator.

An MCPB identifier is the https download URL of the bundle; the version is
part of that URL. ``fileSha256`` is optional, and only its shape is checked.
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from ..context import ValidationContext
from ..errors import FormatError, ReferenceParseError
from ..identifiers import FILE_SHA256, RegistryType
from .base import ValidationResult, format_gate

_DOWNLOAD_URL_RE = re.compile(r"^https://[^\s/]+/[^\s]*$")
_SHA256_HEX_RE = re.compile(r"^[a-f0-9]{64}$")


class McpbValidator:
    registry_type = RegistryType.MCPB.value
    needs_network = False

    def validate(self, ctx: ValidationContext, pkg: Mapping[str, Any],
                 owner_name: str) -> ValidationResult:
        identifier = format_gate(pkg, self.registry_type)
        if not _DOWNLOAD_URL_RE.match(identifier):
            raise ReferenceParseError(
                f"MCPB package identifier must be an https:// download URL, got '{identifier}'",
                registry_type=self.registry_type, identifier=identifier,
            )

        digest = pkg.get(FILE_SHA256)
        if digest is not None and not (isinstance(digest, str) and _SHA256_HEX_RE.match(digest)):
            raise FormatError(
                f"MCPB package '{FILE_SHA256}' must be 64 lowercase hex characters",
                field=FILE_SHA256, registry_type=self.registry_type, identifier=identifier,
            )
        return ValidationResult.ok(self.registry_type, identifier)


__all__ = ["McpbValidator"]
