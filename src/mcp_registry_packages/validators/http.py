"""
JSON metadata client for package indexes (npm, PyPI).

Shares the retry and cancellation behaviour of the OCI registry client but
classifies failures directly into the package validation taxonomy:
429 becomes TransientFetchError, anything else a FetchError.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..context import ValidationContext
from ..errors import FetchError, TransientFetchError
from ..oci.registry_http import USER_AGENT

logger = logging.getLogger(__name__)


class MetadataClient:
    """Anonymous GET-and-parse-JSON client with timeout retries."""

    def __init__(self, *, timeout_s: float = 30.0, retries: int = 2,
                 transport: Optional[httpx.BaseTransport] = None):
        self.timeout_s = timeout_s
        self.retries = retries
        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout_s, connect=min(5.0, timeout_s)),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=transport,
        )

    def get_json(self, url: str, ctx: ValidationContext, what: str) -> Dict[str, Any]:
        """
        GET url and decode the JSON body.

        Args:
            url: Absolute URL to fetch
            ctx: Cancellation / deadline context
            what: Human description used in error messages ("NPM package 'x'")

        Raises:
            TransientFetchError: HTTP 429
            FetchError: Any other HTTP error, network failure or invalid JSON
            ValidationCancelled: ctx cancelled or past its deadline
        """
        logger.debug(f"GET {url}")
        try:
            response = self._send(url, ctx)
        except httpx.TimeoutException as e:
            ctx.check(what)
            raise FetchError(f"timed out fetching {what}: {e}") from e
        except httpx.RequestError as e:
            raise FetchError(f"network error fetching {what}: {e}") from e

        status = response.status_code
        if status == 429:
            raise TransientFetchError(f"rate limited while fetching {what}", status_code=status)
        if status in (401, 404):
            raise FetchError(f"{what} not found or not accessible (status: {status})", status_code=status)
        if status >= 400:
            raise FetchError(f"failed to fetch {what} (status: {status})", status_code=status)

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FetchError(f"invalid JSON metadata for {what}: {e}", status_code=status) from e
        if not isinstance(data, dict):
            raise FetchError(f"unexpected metadata for {what}: expected an object", status_code=status)
        return data

    def _send(self, url: str, ctx: ValidationContext) -> httpx.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(httpx.TimeoutException),
            reraise=True,
        )

        def send_once() -> httpx.Response:
            ctx.check()
            return self.client.get(url, timeout=ctx.bound_timeout(self.timeout_s))

        response = retrying(send_once)
        # The token may have been cancelled while the response was in flight
        ctx.check()
        return response

    def close(self):
        self.client.close()


__all__ = ["MetadataClient"]
