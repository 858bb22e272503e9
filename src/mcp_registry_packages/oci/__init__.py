"""
OCI image reference handling: reference grammar, registry policy, and
anonymous access to registries over the OCI Distribution API.

The HTTP client lives in :mod:`.registry_http` and :mod:`.remote`; import
those modules directly.
"""
from .errors import OciAuthError, OciError, OciNotFound, OciRateLimited, OciUnsupportedMediaType
from .policy import DEFAULT_ALLOWED_REGISTRIES, RegistryAllowlist
from .reference import OciReference, parse_reference

__all__ = [
    "OciError",
    "OciAuthError",
    "OciNotFound",
    "OciRateLimited",
    "OciUnsupportedMediaType",
    "DEFAULT_ALLOWED_REGISTRIES",
    "RegistryAllowlist",
    "OciReference",
    "parse_reference",
]
