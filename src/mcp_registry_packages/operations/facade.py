"""
Operations Facade - Application service layer.

Provides a clean interface between the CLI and the validation, canonical
form and migration APIs, centralizing command orchestration and
configuration while keeping CLI commands thin and testable.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..canonical import canonicalize, canonicalize_packages, canonicalize_server
from ..context import ValidationContext
from ..identifiers import REGISTRY_TYPE
from ..migration import MigrationReport, MigrationRunner, RecordStore
from ..models import parse_server
from ..patterns import validate_server_document, validate_transport, validate_transport_url
from ..settings import Settings, create_settings_from_env
from ..validators import ValidationResult, ValidatorRegistry, default_validators, validate_package

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes per-invocation policy so commands don't thread flags through.
    """
    skip_remote: bool = False             # Format/pattern checks only, no registry calls
    timeout_s: Optional[float] = None     # Overall deadline for one validate call
    verbose: bool = False                 # Show detailed output


@dataclass
class ServerValidationReport:
    """Result of validating every package of one server document."""
    name: str
    results: List[ValidationResult] = field(default_factory=list)

    @property
    def skipped(self) -> List[ValidationResult]:
        return [r for r in self.results if r.skipped]


def load_json_document(path: Path) -> Any:
    """
    Read a JSON document from disk.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is not valid JSON
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}: invalid JSON: {e}") from e


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Exceptions bubble up unchanged so the CLI can
    map them to exit codes in one place. Validators are created lazily and
    may be injected (tests pass registries backed by fakes).
    """

    def __init__(self, config: OpsConfig, settings: Optional[Settings] = None,
                 validators: Optional[ValidatorRegistry] = None):
        """
        Initialize Operations facade.

        Args:
            config: Per-invocation configuration
            settings: Optional settings (if None, loaded from environment)
            validators: Optional validator registry (if None, built from settings)
        """
        self.cfg = config
        self.settings = settings if settings is not None else create_settings_from_env()
        if config.skip_remote:
            self.settings = replace(self.settings, enable_registry_validation=False)
        self._validators = validators
        self._owns_validators = validators is None

    @property
    def validators(self) -> ValidatorRegistry:
        if self._validators is None:
            self._validators = default_validators(self.settings)
        return self._validators

    def validate_server(self, doc: Dict[str, Any]) -> ServerValidationReport:
        """
        Run the publish-time checks over a server document.

        Order: package format gate, JSON schema, transport URLs, then one
        registry validator per package. The first failure is raised.

        Returns:
            ServerValidationReport with one result per package
        """
        server = parse_server(doc)
        validate_server_document(doc)

        strict = self.settings.strict_url_variables
        for pkg in server.packages:
            validate_transport(pkg.transport.to_document(), strict_variables=strict)
        for remote in server.remotes:
            validate_transport(remote.to_document(), strict_variables=strict)

        ctx = ValidationContext(timeout_s=self.cfg.timeout_s)
        report = ServerValidationReport(name=server.name)
        for pkg in server.packages:
            result = validate_package(ctx, pkg, server.name,
                                      validators=self.validators, settings=self.settings)
            report.results.append(result)
        logger.info(f"Validated {len(report.results)} packages for {server.name}")
        return report

    def canonicalize(self, doc: Any) -> Any:
        """
        Canonicalize a server document, a packages array or a single package.

        Raises:
            ValueError: If doc is none of those shapes
        """
        if isinstance(doc, list):
            return canonicalize_packages(doc)
        if isinstance(doc, dict) and REGISTRY_TYPE in doc:
            return canonicalize(doc)
        if isinstance(doc, dict):
            return canonicalize_server(doc)
        raise ValueError(f"Expected a server document, package or packages array, got {type(doc).__name__}")

    def check_url(self, url: str) -> None:
        """Validate a transport URL against the transport URL pattern."""
        validate_transport_url(url)

    def migrate(self, store: RecordStore, *, live: bool = False,
                chunk_size: Optional[int] = None,
                start_after: Optional[str] = None) -> MigrationReport:
        """
        Run the canonical package migration over a record store.

        Args:
            store: Records to migrate
            live: Persist changes (default is a dry run)
            chunk_size: Records per transaction (defaults to settings; 0 = one transaction)
            start_after: Resume cursor from a previous chunked run
        """
        if chunk_size is None:
            chunk_size = self.settings.migration_chunk_size
        if chunk_size < 0:
            raise ValueError(f"chunk_size must be non-negative, got {chunk_size}")
        runner = MigrationRunner(store)
        return runner.run(dry_run=not live, chunk_size=chunk_size or None, start_after=start_after)

    def close(self) -> None:
        if self._owns_validators and self._validators is not None:
            self._validators.close()
            self._validators = None


__all__ = ["Operations", "OpsConfig", "ServerValidationReport", "load_json_document"]
