"""
Registry HTTP Client for OCI Distribution API.

Provides anonymous, read-only registry operations with the Docker Registry
v2 Bearer challenge flow, manifest media-type negotiation and multi-arch
index resolution. Used to fetch the image configuration of public images so
their labels can be inspected.
"""
from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Dict, Optional, Tuple

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..context import ValidationContext
from .errors import OciAuthError, OciError, OciNotFound, OciRateLimited, OciUnsupportedMediaType

logger = logging.getLogger(__name__)

OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

# Manifest types we accept (in order of preference)
ACCEPTED_MANIFEST_TYPES = [
    OCI_IMAGE_MANIFEST,
    OCI_IMAGE_INDEX,
    DOCKER_MANIFEST_V2,
    DOCKER_MANIFEST_LIST,
]

INDEX_TYPES = frozenset({OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST})
IMAGE_MANIFEST_TYPES = frozenset({OCI_IMAGE_MANIFEST, DOCKER_MANIFEST_V2})

DEFAULT_PLATFORM = ("linux", "amd64")

USER_AGENT = "mcp-registry-packages/0.1.0"


def _status_error(status_code: int, what: str, detail: str = "") -> OciError:
    """Map an HTTP status to the OCI error taxonomy."""
    suffix = f": {detail}" if detail else ""
    if status_code == 404:
        return OciNotFound(f"{what} not found{suffix}", status_code)
    if status_code in (401, 403):
        return OciAuthError(f"Access denied for {what} (status {status_code}){suffix}", status_code)
    if status_code == 429:
        return OciRateLimited(f"Rate limited while fetching {what}", status_code)
    return OciError(f"Registry error {status_code} for {what}{suffix}", status_code)


class RegistryHTTP:
    """
    HTTP client for anonymous OCI Distribution API reads.

    One instance talks to one registry host and caches Bearer tokens per
    service/scope. Timeouts are retried with exponential backoff; every
    request first checks the caller's ValidationContext.
    """

    def __init__(self, registry: str, *, timeout_s: float = 30.0, retries: int = 2,
                 insecure: bool = False, transport: Optional[httpx.BaseTransport] = None,
                 platform: Tuple[str, str] = DEFAULT_PLATFORM):
        """
        Initialize registry HTTP client.

        Args:
            registry: Registry API hostname (e.g., "registry-1.docker.io", "ghcr.io")
            timeout_s: Per-request timeout ceiling in seconds
            retries: Extra attempts for timed-out requests (0 = no retry)
            insecure: Use plain HTTP (local development registries)
            transport: Optional httpx transport (tests inject httpx.MockTransport)
            platform: (os, architecture) preferred when resolving image indexes
        """
        self.registry = registry
        self.timeout_s = timeout_s
        self.retries = retries
        self.platform = platform

        if registry.startswith("http"):
            self.base_url = registry
        elif insecure:
            self.base_url = f"http://{registry}"
        else:
            self.base_url = f"https://{registry}"

        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout_s, connect=min(5.0, timeout_s)),
            follow_redirects=True,
            verify=not insecure,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

        # Token cache: {service/scope: (token, expiry_timestamp)}
        self._token_cache: Dict[str, Tuple[str, float]] = {}

    def get_manifest(self, repo: str, ref: str, ctx: ValidationContext) -> Tuple[str, Dict[str, Any]]:
        """
        GET a manifest by tag or digest.

        Returns:
            (media_type, manifest_dict)

        Raises:
            OciNotFound / OciAuthError / OciRateLimited / OciError
            OciUnsupportedMediaType: If the manifest is not JSON or of an unknown type
        """
        what = f"manifest {repo}:{ref}" if not ref.startswith("sha256:") else f"manifest {repo}@{ref}"
        response = self._request("GET", f"/v2/{repo}/manifests/{ref}", ctx, what,
                                 headers={"Accept": ", ".join(ACCEPTED_MANIFEST_TYPES)})
        try:
            manifest = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise OciUnsupportedMediaType(f"Invalid JSON in manifest {repo}:{ref}: {e}")

        media_type = manifest.get("mediaType") or response.headers.get("Content-Type", "").split(";")[0].strip()
        if media_type not in ACCEPTED_MANIFEST_TYPES:
            raise OciUnsupportedMediaType(
                f"Unsupported manifest media type: {media_type or '<none>'}. "
                f"Expected one of: {', '.join(ACCEPTED_MANIFEST_TYPES)}"
            )
        return media_type, manifest

    def get_blob_json(self, repo: str, digest: str, ctx: ValidationContext) -> Dict[str, Any]:
        """
        Fetch blob by digest and parse as JSON.

        Raises:
            OciNotFound / OciAuthError / OciRateLimited / OciError
            OciUnsupportedMediaType: If blob is not valid JSON
        """
        response = self._request("GET", f"/v2/{repo}/blobs/{digest}", ctx, f"blob {repo}@{digest}")
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise OciUnsupportedMediaType(f"Blob {digest} is not valid JSON: {e}")

    def get_image_config(self, repo: str, ref: str, ctx: ValidationContext) -> Dict[str, Any]:
        """
        Resolve ref to a single-platform image and return its config blob.

        Image indexes are resolved to the preferred platform, falling back to
        the first runnable entry (attestation manifests are skipped).
        """
        media_type, manifest = self.get_manifest(repo, ref, ctx)

        if media_type in INDEX_TYPES:
            child_digest = self._select_platform_manifest(manifest)
            logger.debug(f"Resolved index {repo}:{ref} to platform manifest {child_digest}")
            media_type, manifest = self.get_manifest(repo, child_digest, ctx)
            if media_type not in IMAGE_MANIFEST_TYPES:
                raise OciUnsupportedMediaType(
                    f"Index entry {child_digest} is not an image manifest ({media_type})"
                )

        config = manifest.get("config") or {}
        config_digest = config.get("digest")
        if not config_digest:
            raise OciUnsupportedMediaType(f"Manifest {repo}:{ref} has no config descriptor")

        logger.debug(f"Fetching image config {config_digest} for {repo}:{ref}")
        return self.get_blob_json(repo, config_digest, ctx)

    def _select_platform_manifest(self, index: Dict[str, Any]) -> str:
        entries = [m for m in index.get("manifests", []) if m.get("digest")]
        runnable = [m for m in entries if (m.get("platform") or {}).get("os") not in (None, "unknown")]
        if not runnable:
            raise OciUnsupportedMediaType("Image index has no runnable platform manifests")

        want_os, want_arch = self.platform
        for entry in runnable:
            platform = entry.get("platform") or {}
            if platform.get("os") == want_os and platform.get("architecture") == want_arch:
                return entry["digest"]
        return runnable[0]["digest"]

    def _request(self, method: str, path: str, ctx: ValidationContext, what: str,
                 headers: Optional[dict] = None) -> httpx.Response:
        """
        Make HTTP request with transparent anonymous Bearer token flow.

        Handles 401 responses by:
        1. Parsing WWW-Authenticate header for Bearer realm/service/scope
        2. Requesting an anonymous token from the realm
        3. Retrying original request with Authorization header
        4. Caching tokens per service/scope
        """
        url = f"{self.base_url}{path}"
        request_headers = dict(headers or {})

        try:
            response = self._send(method, url, request_headers, ctx)

            if response.status_code == 401:
                auth_header = response.headers.get("WWW-Authenticate", "")
                if auth_header.lower().startswith("bearer "):
                    token = self._anonymous_token(auth_header, path, ctx)
                    if token:
                        request_headers["Authorization"] = f"Bearer {token}"
                        response = self._send(method, url, request_headers, ctx)
        except httpx.TimeoutException as e:
            ctx.check(what)
            raise OciError(f"Timed out fetching {what}: {e}") from e
        except httpx.RequestError as e:
            raise OciError(f"Network error fetching {what}: {e}") from e

        if response.status_code >= 400:
            raise _status_error(response.status_code, what)
        return response

    def _send(self, method: str, url: str, headers: dict, ctx: ValidationContext,
              params: Optional[dict] = None) -> httpx.Response:
        """Send one request, retrying timeouts; checks ctx before every attempt and after the response."""
        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(httpx.TimeoutException),
            reraise=True,
        )

        def send_once() -> httpx.Response:
            ctx.check()
            timeout = ctx.bound_timeout(self.timeout_s)
            return self.client.request(method, url, headers=headers, params=params, timeout=timeout)

        response = retrying(send_once)
        ctx.check()
        return response

    def _anonymous_token(self, www_authenticate: str, path: str, ctx: ValidationContext) -> Optional[str]:
        """
        Exchange a Bearer challenge for an anonymous pull token.

        Format: Bearer realm="...",service="...",scope="..."
        """
        bearer_params = dict(re.findall(r'(\w+)="([^"]*)"', www_authenticate))

        realm = bearer_params.get("realm")
        service = bearer_params.get("service", "")
        scope = bearer_params.get("scope") or self._pull_scope(path)
        if not realm:
            return None

        cache_key = f"{service}:{scope}"
        cached = self._token_cache.get(cache_key)
        if cached and time.time() < cached[1] - 30:  # 30s buffer before expiry
            return cached[0]

        params = {"scope": scope}
        if service:
            params["service"] = service
        response = self._send("GET", realm, {}, ctx, params=params)
        if response.status_code >= 400:
            # Token endpoint refusals are reported as the original resource's status
            raise _status_error(response.status_code, f"token for {scope}")

        try:
            token_data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        token = token_data.get("token") or token_data.get("access_token")
        if token:
            expires_in = token_data.get("expires_in") or 60
            self._token_cache[cache_key] = (token, time.time() + expires_in)
        return token

    @staticmethod
    def _pull_scope(path: str) -> str:
        # /v2/<repo>/manifests/<ref> or /v2/<repo>/blobs/<digest>
        repo = re.sub(r"^/v2/(.+)/(manifests|blobs)/[^/]+$", r"\1", path)
        return f"repository:{repo}:pull"

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["RegistryHTTP", "ACCEPTED_MANIFEST_TYPES"]
