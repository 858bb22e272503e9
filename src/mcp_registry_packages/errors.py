"""
Package validation error classes.

Provides the error taxonomy surfaced to the publish pipeline and to the
migration job. Validators fail fast: the first blocking condition for a
package is raised as one of these classes, never an accumulated list.
"""
from __future__ import annotations

from typing import Optional


class PackageValidationError(Exception):
    """
    Base class for every package validation failure.

    Carries the registry type and identifier of the offending package when
    known so callers can report which package of a server was rejected.
    """

    def __init__(self, message: str, *, registry_type: Optional[str] = None,
                 identifier: Optional[str] = None):
        super().__init__(message)
        self.registry_type = registry_type
        self.identifier = identifier


class FormatError(PackageValidationError):
    """
    Legacy or forbidden field present on a package that should be canonical.

    Raised when:
    - OCI package carries registryBaseUrl, version or fileSha256
    - MCPB package carries version or registryBaseUrl
    - Non-MCPB package carries fileSha256

    Never auto-repaired at validation time; the migration runner repairs
    stored records separately.
    """

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class MissingIdentifierError(FormatError):
    """Package has an empty or missing identifier."""
    pass


class ReferenceParseError(PackageValidationError):
    """Identifier does not match the registry's reference grammar."""
    pass


class PolicyError(PackageValidationError):
    """
    Package points at a registry this deployment does not accept.

    Raised before any network call is made.
    """

    def __init__(self, message: str, *, host: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.host = host


class UnsupportedRegistryType(PolicyError):
    """No validator is registered for the package's registryType."""
    pass


class OwnershipError(PackageValidationError):
    """
    Artifact does not declare ownership by the publishing server.

    The message always carries remediation instructions: which label or
    metadata field to add and the exact value it must hold.
    """

    def __init__(self, message: str, *, expected: Optional[str] = None,
                 actual: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class FetchError(PackageValidationError):
    """
    Remote metadata could not be fetched.

    Raised when:
    - HTTP 404 / 401 (image or package not found or not accessible)
    - Any other transport or network failure
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class TransientFetchError(FetchError):
    """
    Remote registry rate-limited the request (HTTP 429).

    Validators convert this into a skipped result rather than a failure;
    it is exposed so lower layers can signal the condition.
    """
    pass


class ValidationCancelled(PackageValidationError):
    """Caller cancelled validation or its deadline elapsed mid-fetch."""
    pass


class TransportURLError(PackageValidationError):
    """Transport URL is not an http(s) URL or references undeclared variables."""
    pass


class SchemaValidationError(PackageValidationError):
    """
    Document does not conform to the server JSON schema.

    Attributes:
        path: JSON path of the first failing element
    """

    def __init__(self, message: str, *, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path


class MigrationError(Exception):
    """
    Migration of a stored record failed.

    In single-transaction mode this aborts the whole batch; the record id
    identifies the first failing row.
    """

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


__all__ = [
    "PackageValidationError",
    "FormatError",
    "MissingIdentifierError",
    "ReferenceParseError",
    "PolicyError",
    "UnsupportedRegistryType",
    "OwnershipError",
    "FetchError",
    "TransientFetchError",
    "ValidationCancelled",
    "TransportURLError",
    "SchemaValidationError",
    "MigrationError",
]
