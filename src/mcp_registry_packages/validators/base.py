"""
Validator interface, results and dispatch registry.

Every registry type has one validator. A validator either returns a
:class:`ValidationResult` or raises the first blocking
:class:`~mcp_registry_packages.errors.PackageValidationError` it finds.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, runtime_checkable

from ..context import ValidationContext
from ..errors import UnsupportedRegistryType
from ..identifiers import REGISTRY_TYPE, check_format

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a successful (or soft-passed) package validation.

    Attributes:
        registry_type: Registry type of the validated package
        identifier: Package identifier as published
        skipped: True when a check was not performed (rate limit, disabled)
        reason: Why the check was skipped
    """
    registry_type: str
    identifier: str
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, registry_type: str, identifier: str) -> ValidationResult:
        return cls(registry_type=registry_type, identifier=identifier)

    @classmethod
    def skip(cls, registry_type: str, identifier: str, reason: str) -> ValidationResult:
        return cls(registry_type=registry_type, identifier=identifier, skipped=True, reason=reason)

    @property
    def passed(self) -> bool:
        return not self.skipped


@runtime_checkable
class PackageValidator(Protocol):
    """
    Validator for one registry type.

    Attributes:
        registry_type: The registryType value this validator handles
        needs_network: Whether validate() talks to a remote registry
    """
    registry_type: str
    needs_network: bool

    def validate(self, ctx: ValidationContext, pkg: Mapping[str, Any],
                 owner_name: str) -> ValidationResult:
        """
        Validate one package document for a server.

        Args:
            ctx: Cancellation / deadline context
            pkg: Package document (camelCase wire shape)
            owner_name: Name of the server publishing the package

        Raises:
            PackageValidationError: First blocking condition found
        """
        ...


def format_gate(pkg: Mapping[str, Any], registry_type: str) -> str:
    """
    Run the format gate for a package as if it had the given registry type.

    Returns:
        The package identifier

    Raises:
        FormatError: On legacy/forbidden or missing required fields
    """
    doc = dict(pkg)
    doc[REGISTRY_TYPE] = registry_type
    check_format(doc)
    return doc["identifier"]


class ValidatorRegistry:
    """
    Dispatch table from registryType to validator.

    Examples:
        >>> registry = ValidatorRegistry()
        >>> registry.registry_types
        []
    """

    def __init__(self, validators: Iterable[PackageValidator] = ()):
        self._validators: Dict[str, PackageValidator] = {}
        for validator in validators:
            self.register(validator)

    def register(self, validator: PackageValidator) -> None:
        """Register (or replace) the validator for its registry type."""
        if validator.registry_type in self._validators:
            logger.debug(f"Replacing validator for registry type {validator.registry_type}")
        self._validators[validator.registry_type] = validator

    def get(self, registry_type: str) -> PackageValidator:
        """
        Look up the validator for a registry type.

        Raises:
            UnsupportedRegistryType: If no validator is registered
        """
        validator = self._validators.get(registry_type)
        if validator is None:
            raise UnsupportedRegistryType(
                f"unsupported registry type: '{registry_type or '<missing>'}'",
                registry_type=registry_type or None,
            )
        return validator

    def __contains__(self, registry_type: object) -> bool:
        return registry_type in self._validators

    @property
    def registry_types(self) -> List[str]:
        return sorted(self._validators)

    def close(self) -> None:
        """Release network clients held by registered validators."""
        for validator in self._validators.values():
            close = getattr(validator, "close", None)
            if callable(close):
                close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["ValidationResult", "PackageValidator", "ValidatorRegistry", "format_gate"]
