"""
OCI registry error classes.

Provides a clear taxonomy of errors that can occur while talking to an OCI
registry. These errors are mapped from HTTP status codes and transport
exceptions so that validators can classify a failed fetch without knowing
anything about httpx.
"""
from __future__ import annotations

from typing import Optional


class OciError(Exception):
    """
    Base class for all OCI registry errors.

    Attributes:
        status_code: HTTP status that caused the error, None for network errors
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OciAuthError(OciError):
    """
    Authentication or authorization error.

    Raised when:
    - HTTP 401 Unauthorized (anonymous pull refused, private image)
    - HTTP 403 Forbidden
    """
    pass


class OciNotFound(OciError):
    """
    Resource not found in registry.

    Raised when:
    - HTTP 404 Not Found (manifest, blob, or repository doesn't exist)
    """
    pass


class OciUnsupportedMediaType(OciError):
    """
    Media type not supported by this client.

    Raised when:
    - Registry returns a manifest type we cannot read a config from
    - Manifest or config blob is not valid JSON
    """
    pass


class OciRateLimited(OciError):
    """
    Rate limit exceeded.

    Raised when:
    - HTTP 429 Too Many Requests
    """
    pass


__all__ = [
    "OciError",
    "OciAuthError",
    "OciNotFound",
    "OciUnsupportedMediaType",
    "OciRateLimited",
]
