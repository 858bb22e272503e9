"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and
record stores, avoiding global state and enabling proper dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .migration import JsonFileRecordStore
from .settings import Settings, load_settings


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Settings are loaded on first access, inside the command's error
    boundary, so a bad configuration file is reported with the usual
    exit-code mapping.
    """
    config_path: Optional[Path] = None
    verbose: bool = False
    _settings: Optional[Settings] = None

    @property
    def settings(self) -> Settings:
        """
        Get or load settings (lazy initialization).

        Returns:
            Settings from the YAML file (if any) overlaid by environment variables
        """
        if self._settings is None:
            self._settings = load_settings(self.config_path)
        return self._settings

    def record_store(self, path: Path) -> JsonFileRecordStore:
        return JsonFileRecordStore(path)
