"""
Remote Registry interface and its HTTP implementation.

The OCI validator depends only on :class:`RemoteRegistry`; the production
implementation speaks the OCI Distribution API through :class:`RegistryHTTP`
and tests substitute an in-memory fake.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Protocol, runtime_checkable

import httpx

from ..context import ValidationContext
from ..settings import Settings
from .reference import OciReference
from .registry_http import RegistryHTTP

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteRegistry(Protocol):
    """Read access to image metadata held by remote OCI registries."""

    def fetch_image_config(self, reference: OciReference,
                           ctx: ValidationContext) -> Optional[Dict[str, str]]:
        """
        Fetch the labels of the image configuration for a reference.

        Args:
            reference: Parsed, policy-approved image reference
            ctx: Cancellation / deadline context for the fetch

        Returns:
            Label mapping from the image config, or None when the config
            declares no labels at all

        Raises:
            OciNotFound: If the image does not exist
            OciAuthError: If anonymous access is refused
            OciRateLimited: If the registry rate-limited the request
            OciError: For other registry or network errors
            ValidationCancelled: If ctx was cancelled or expired
        """
        ...


class HttpRemoteRegistry:
    """
    RemoteRegistry backed by anonymous OCI Distribution API calls.

    Keeps one RegistryHTTP client per registry host so Bearer tokens are
    reused across packages. Safe to share between threads.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        """
        Args:
            settings: HTTP timeout/retry configuration
            transport: Optional httpx transport shared by all clients (tests)
        """
        self._settings = settings
        self._transport = transport
        self._clients: Dict[str, RegistryHTTP] = {}
        self._lock = threading.Lock()

    def _client_for(self, host: str) -> RegistryHTTP:
        with self._lock:
            client = self._clients.get(host)
            if client is None:
                client = RegistryHTTP(
                    host,
                    timeout_s=self._settings.http_timeout_s,
                    retries=self._settings.http_retry,
                    insecure=host in self._settings.insecure_registries,
                    transport=self._transport,
                )
                self._clients[host] = client
            return client

    def fetch_image_config(self, reference: OciReference,
                           ctx: ValidationContext) -> Optional[Dict[str, str]]:
        client = self._client_for(reference.api_host)
        logger.debug(f"Fetching image config for {reference}")
        config = client.get_image_config(reference.repository, reference.manifest_ref, ctx)
        labels = (config.get("config") or {}).get("Labels")
        if labels is None:
            return None
        return {str(k): str(v) for k, v in labels.items()}

    def close(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["RemoteRegistry", "HttpRemoteRegistry"]
