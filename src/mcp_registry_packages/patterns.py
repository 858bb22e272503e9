"""
Transport URL pattern validation.

Plain absolute-URI checking rejects legitimate templated endpoints such as
``https://example.com/mcp/{tenant_id}``, so transport URLs are validated
against a deliberately loose grammar instead: an http(s) scheme followed by
one or more non-whitespace characters. The same pattern is published in the
server JSON schema and the two must stay identical.
"""
from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, List, Mapping

from jsonschema import Draft7Validator, ValidationError, validators

from .errors import SchemaValidationError, TransportURLError
from .identifiers import NETWORK_TRANSPORTS
from .schema import SERVER_SCHEMA

logger = logging.getLogger(__name__)

TRANSPORT_URL_PATTERN = r"^https?://[^\s]+$"
_TRANSPORT_URL_RE = re.compile(TRANSPORT_URL_PATTERN)
_PLACEHOLDER_RE = re.compile(r"\{([^{}\s]+)\}")


def validate_transport_url(url: Any) -> None:
    """
    Check a streamable-http / sse transport URL.

    Accepts "https://example.com/mcp/{tenant_id}"; rejects "not a url at all"
    and "https://example.com/mcp with spaces".

    Raises:
        TransportURLError: If url is not a string matching TRANSPORT_URL_PATTERN
    """
    if not isinstance(url, str) or not _TRANSPORT_URL_RE.fullmatch(url):
        raise TransportURLError(
            f"invalid transport URL {url!r}: must start with http:// or https:// "
            f"and contain no whitespace"
        )


def url_placeholders(url: str) -> List[str]:
    """Placeholder names used in a URL template, in order of first use."""
    seen: Dict[str, None] = {}
    for name in _PLACEHOLDER_RE.findall(url or ""):
        seen.setdefault(name, None)
    return list(seen)


def undeclared_variables(transport: Mapping[str, Any]) -> List[str]:
    """Placeholders in transport['url'] that have no entry in transport['variables']."""
    declared = transport.get("variables") or {}
    return [name for name in url_placeholders(transport.get("url") or "") if name not in declared]


def validate_transport(transport: Mapping[str, Any], *, strict_variables: bool = False) -> None:
    """
    Validate a transport document.

    stdio transports carry no URL and always pass. Network transports need a
    URL matching the pattern. Placeholders without a declared variable are
    logged, or rejected when strict_variables is set.

    Raises:
        TransportURLError: On a missing/invalid URL, or undeclared variables in strict mode
    """
    transport_type = transport.get("type")
    if transport_type not in NETWORK_TRANSPORTS:
        return

    url = transport.get("url")
    if not url:
        raise TransportURLError(f"transport type '{transport_type}' requires a url")
    validate_transport_url(url)

    missing = undeclared_variables(transport)
    if not missing:
        return
    if strict_variables:
        raise TransportURLError(
            f"transport URL {url!r} uses undeclared variables: {', '.join(missing)}"
        )
    logger.warning(f"Transport URL {url} uses undeclared variables: {', '.join(missing)}")


def _end_anchored(pattern: str) -> str:
    # Python's '$' also matches before a trailing newline; JSON Schema's does not
    if pattern.endswith("$") and not pattern.endswith("\\$"):
        return pattern[:-1] + r"\Z"
    return pattern


def _pattern(validator, pattern, instance, schema):
    if validator.is_type(instance, "string") and not re.search(_end_anchored(pattern), instance):
        yield ValidationError(f"{instance!r} does not match {pattern!r}")


_ServerSchemaValidator = validators.extend(Draft7Validator, {"pattern": _pattern})


@lru_cache(maxsize=1)
def load_server_schema() -> Dict[str, Any]:
    """Load the shipped server JSON schema (cached, read-only)."""
    with resources.files("mcp_registry_packages.schema").joinpath(SERVER_SCHEMA).open("r", encoding="utf-8") as f:
        return json.load(f)


def validate_server_document(doc: Any) -> None:
    """
    Validate a server document against the shipped JSON schema.

    Raises:
        SchemaValidationError: With the path of the first (shallowest) failure
    """
    validator = _ServerSchemaValidator(load_server_schema())
    errors = sorted(validator.iter_errors(doc), key=lambda e: (len(e.path), list(map(str, e.path))))
    if errors:
        first = errors[0]
        path = first.json_path
        raise SchemaValidationError(f"schema validation failed at {path}: {first.message}", path=path)


__all__ = [
    "TRANSPORT_URL_PATTERN",
    "validate_transport_url",
    "url_placeholders",
    "undeclared_variables",
    "validate_transport",
    "load_server_schema",
    "validate_server_document",
]
