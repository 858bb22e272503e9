"""
Record storage for the canonical package migration.

The migration runner only needs three things from storage: iterate the
records that declare packages, replace one record's packages array, and group
writes into a transaction. :class:`RecordStore` names that contract;
:class:`JsonFileRecordStore` implements it over a JSON export of the server
table (``[{"id": ..., "value": {...}}, ...]``) for offline runs.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, runtime_checkable

from ..errors import MigrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    """
    One stored server version.

    Attributes:
        id: Stable, sortable record identifier
        value: Full server document as stored
    """
    id: str
    value: Dict[str, Any]

    @property
    def packages(self) -> Optional[List[Any]]:
        packages = self.value.get("packages")
        return packages if isinstance(packages, list) else None


@runtime_checkable
class RecordStore(Protocol):
    """Storage operations needed by the migration runner."""

    def select_records_with_packages(self) -> Iterator[Record]:
        """Yield records whose value has a non-empty packages list, ordered by id."""
        ...

    def write_packages(self, record_id: str, packages: List[Any]) -> None:
        """
        Replace the packages array of one record.

        Must be called inside transaction().

        Raises:
            MigrationError: If the record does not exist or the write fails
        """
        ...

    def transaction(self):
        """
        Context manager grouping writes: all commit together on normal exit,
        none persist if the block raises.
        """
        ...


class JsonFileRecordStore:
    """
    RecordStore over a JSON export file.

    The file is read once on construction. A transaction stages writes on a
    copy of the rows; commit writes the whole file atomically (temp file in
    the same directory, then ``os.replace``).
    """

    def __init__(self, path: Path):
        """
        Args:
            path: JSON file holding a list of {"id", "value"} rows

        Raises:
            MigrationError: If the file is unreadable or malformed
        """
        self.path = Path(path)
        self._lock = threading.Lock()
        self._rows = self._load()
        self._staged: Optional[Dict[str, Dict[str, Any]]] = None

    def _load(self) -> Dict[str, Dict[str, Any]]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise MigrationError(f"Cannot read record store {self.path}: {e}") from e

        if not isinstance(data, list):
            raise MigrationError(f"{self.path}: expected a JSON list of records")

        rows: Dict[str, Dict[str, Any]] = {}
        for i, row in enumerate(data):
            if not isinstance(row, dict) or "id" not in row or not isinstance(row.get("value"), dict):
                raise MigrationError(f"{self.path}: row {i} must be an object with 'id' and object 'value'")
            rows[str(row["id"])] = row["value"]
        logger.debug(f"Loaded {len(rows)} records from {self.path}")
        return rows

    def select_records_with_packages(self) -> Iterator[Record]:
        rows = self._staged if self._staged is not None else self._rows
        for record_id in sorted(rows):
            value = rows[record_id]
            packages = value.get("packages")
            if isinstance(packages, list) and packages:
                yield Record(id=record_id, value=copy.deepcopy(value))

    def write_packages(self, record_id: str, packages: List[Any]) -> None:
        if self._staged is None:
            raise MigrationError("write_packages called outside a transaction", record_id=record_id)
        if record_id not in self._staged:
            raise MigrationError(f"Record {record_id} not found", record_id=record_id)
        self._staged[record_id]["packages"] = copy.deepcopy(packages)

    @contextmanager
    def transaction(self):
        with self._lock:
            self._staged = copy.deepcopy(self._rows)
            try:
                yield self
                self._commit(self._staged)
                self._rows = self._staged
            finally:
                self._staged = None

    def _commit(self, rows: Dict[str, Dict[str, Any]]) -> None:
        payload = [{"id": record_id, "value": value} for record_id, value in rows.items()]
        directory = self.path.parent
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise MigrationError(f"Failed to write record store {self.path}: {e}") from e
        logger.debug(f"Committed {len(payload)} records to {self.path}")

    def all_records(self) -> List[Record]:
        """Snapshot of every committed record (including ones without packages)."""
        return [Record(id=rid, value=copy.deepcopy(v)) for rid, v in self._rows.items()]


__all__ = ["Record", "RecordStore", "JsonFileRecordStore"]
