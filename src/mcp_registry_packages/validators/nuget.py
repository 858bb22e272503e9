"""NuGet package validator (format only; NuGet packages are always version-pinned)."""
from __future__ import annotations

import re
from typing import Any, Mapping

from ..context import ValidationContext
from ..errors import ReferenceParseError
from ..identifiers import RegistryType
from .base import ValidationResult, format_gate

_PACKAGE_ID_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,99}$")


class NugetValidator:
    registry_type = RegistryType.NUGET.value
    needs_network = False

    def validate(self, ctx: ValidationContext, pkg: Mapping[str, Any],
                 owner_name: str) -> ValidationResult:
        identifier = format_gate(pkg, self.registry_type)
        if not _PACKAGE_ID_RE.match(identifier):
            raise ReferenceParseError(
                f"invalid NuGet package id '{identifier}'",
                registry_type=self.registry_type, identifier=identifier,
            )
        return ValidationResult.ok(self.registry_type, identifier)


__all__ = ["NugetValidator"]
