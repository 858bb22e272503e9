"""
Registry allowlist policy for OCI packages.

Which registries a deployment accepts images from is a policy decision, not
a property of the reference grammar. The allowlist holds exact hosts and
glob host patterns (``*-docker.pkg.dev`` for regional Artifact Registry
hosts); ``*`` alone opens the list to any OCI-compliant registry.
"""
from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Iterable, Optional, Tuple

from ..errors import PolicyError

__all__ = ["DEFAULT_ALLOWED_REGISTRIES", "RegistryAllowlist"]

DEFAULT_ALLOWED_REGISTRIES: Tuple[str, ...] = (
    "docker.io",
    "ghcr.io",
    "*-docker.pkg.dev",
)


@dataclass(frozen=True)
class RegistryAllowlist:
    """
    Approved registry hosts and host patterns.

    Attributes:
        patterns: Lowercase exact hosts or fnmatch-style glob patterns
    """
    patterns: Tuple[str, ...] = DEFAULT_ALLOWED_REGISTRIES

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> RegistryAllowlist:
        cleaned = tuple(p.strip().lower() for p in patterns if p and p.strip())
        if not cleaned:
            raise ValueError("registry allowlist cannot be empty")
        return cls(patterns=cleaned)

    @property
    def is_open(self) -> bool:
        return "*" in self.patterns

    def allows(self, host: str) -> bool:
        host = host.lower()
        return any(fnmatchcase(host, pattern) for pattern in self.patterns)

    def check(self, host: str, identifier: Optional[str] = None) -> None:
        """
        Raise unless host is allowlisted.

        Raises:
            PolicyError: Naming the rejected host and the accepted patterns
        """
        if self.allows(host):
            return
        raise PolicyError(
            f"unsupported registry '{host}' for OCI package"
            f"{f' {identifier!r}' if identifier else ''}; "
            f"allowed registries: {', '.join(self.patterns)}",
            host=host, registry_type="oci", identifier=identifier,
        )
