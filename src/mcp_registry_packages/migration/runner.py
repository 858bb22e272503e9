"""
Canonical package reference migration.

Rewrites every stored record whose packages array is still in a legacy
shape, using the same canonicalization pipeline as the read path. The
migration is idempotent: running it again over migrated data changes
nothing.

Two commit modes are supported:

- Single transaction (default): every write commits together, and the first
  failure aborts the whole batch with a MigrationError.
- Chunked: records are processed in id order, each chunk in its own
  transaction. A failing chunk is rolled back and recorded in the report,
  and the run continues. ``last_committed_id`` is the cursor to resume from.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from ..canonical import DEFAULT_PIPELINE, CanonicalizationPipeline, canonicalize_packages
from ..errors import MigrationError
from ..identifiers import is_canonical, registry_type_of
from .store import Record, RecordStore

logger = logging.getLogger(__name__)

_MISSING = "<absent>"


@dataclass(frozen=True)
class FieldChange:
    """One field of one package changed by canonicalization."""
    index: int
    registry_type: str
    field: str
    before: Any
    after: Any

    def describe(self) -> str:
        before = _MISSING if self.before is None else repr(self.before)
        after = _MISSING if self.after is None else repr(self.after)
        return f"packages[{self.index}] ({self.registry_type}) {self.field}: {before} -> {after}"


@dataclass(frozen=True)
class RecordDiff:
    """
    Planned rewrite of one record.

    Attributes:
        record_id: Id of the stored record
        before: Packages array as stored
        after: Packages array after canonicalization
        changes: Per-package field changes
    """
    record_id: str
    before: List[Any]
    after: List[Any]
    changes: Tuple[FieldChange, ...] = ()


@dataclass(frozen=True)
class MigrationFailure:
    record_id: str
    error: str


@dataclass
class MigrationReport:
    """
    Outcome of a migration run (or projection, for dry runs).

    All counts are over stored records. A record is legacy while any of its
    packages is non-canonical; legacy_by_type maps registry type to
    (before, after) counts of records holding a non-canonical package of
    that type, so one record may count under several types.
    """
    dry_run: bool
    records_scanned: int = 0
    records_changed: int = 0
    records_written: int = 0
    legacy_before: int = 0
    legacy_after: int = 0
    registry_type_counts: Dict[str, int] = field(default_factory=dict)
    legacy_by_type: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    diffs: List[RecordDiff] = field(default_factory=list)
    failures: List[MigrationFailure] = field(default_factory=list)
    last_committed_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return not self.failures


def _package_changes(before: List[Any], after: List[Any]) -> Tuple[FieldChange, ...]:
    changes: List[FieldChange] = []
    for index, (old, new) in enumerate(zip(before, after)):
        if not isinstance(old, dict) or not isinstance(new, dict) or old == new:
            continue
        registry_type = registry_type_of(old) or "unknown"
        for name in sorted(set(old) | set(new)):
            if old.get(name) != new.get(name) or (name in old) != (name in new):
                changes.append(FieldChange(index, registry_type, name, old.get(name), new.get(name)))
    return tuple(changes)


def _legacy_types(packages: List[Any]) -> Set[str]:
    return {registry_type_of(pkg) or "unknown" for pkg in packages
            if isinstance(pkg, dict) and not is_canonical(pkg)}


class MigrationRunner:
    """Plans and applies the canonical package migration over a RecordStore."""

    def __init__(self, store: RecordStore, pipeline: CanonicalizationPipeline = DEFAULT_PIPELINE):
        self.store = store
        self.pipeline = pipeline

    def _scan(self, start_after: Optional[str] = None) -> List[Tuple[Record, Optional[RecordDiff]]]:
        scanned: List[Tuple[Record, Optional[RecordDiff]]] = []
        for record in self.store.select_records_with_packages():
            if start_after is not None and record.id <= start_after:
                continue
            before = record.packages or []
            after = canonicalize_packages(before, self.pipeline)
            diff = None
            if after != before:
                diff = RecordDiff(record.id, before, after, _package_changes(before, after))
            scanned.append((record, diff))
        return scanned

    def plan(self, start_after: Optional[str] = None) -> List[RecordDiff]:
        """Records whose packages would change, in id order. Writes nothing."""
        return [diff for _, diff in self._scan(start_after) if diff is not None]

    def run(self, dry_run: bool = True, chunk_size: Optional[int] = None,
            start_after: Optional[str] = None) -> MigrationReport:
        """
        Run (or project) the migration.

        Args:
            dry_run: Compute the report without persisting anything
            chunk_size: Records per transaction; None or 0 for one transaction
            start_after: Resume cursor, only records with a greater id are processed

        Returns:
            MigrationReport

        Raises:
            MigrationError: In single-transaction mode, on the first failed write
        """
        scanned = self._scan(start_after)
        report = MigrationReport(dry_run=dry_run, records_scanned=len(scanned))

        type_counts: Counter = Counter()
        legacy_before: Counter = Counter()
        for record, diff in scanned:
            packages = record.packages or []
            for registry_type in {registry_type_of(p) or "unknown" for p in packages if isinstance(p, dict)}:
                type_counts[registry_type] += 1
            legacy_types = _legacy_types(packages)
            legacy_before.update(legacy_types)
            if legacy_types:
                report.legacy_before += 1
            if diff is not None:
                report.diffs.append(diff)
        report.records_changed = len(report.diffs)
        report.registry_type_counts = dict(sorted(type_counts.items()))

        mode = "dry run" if dry_run else ("chunked" if chunk_size else "single transaction")
        logger.info(f"Migration {mode}: {report.records_scanned} records scanned, "
                    f"{report.records_changed} to rewrite")

        failed_ids: set = set()
        if not dry_run:
            if chunk_size:
                failed_ids = self._run_chunked(scanned, chunk_size, report)
            else:
                self._run_single(scanned, report)

        legacy_after: Counter = Counter()
        for record, diff in scanned:
            if diff is None:
                final = record.packages or []
            elif record.id in failed_ids:
                final = diff.before
            else:
                final = diff.after
            legacy_types = _legacy_types(final)
            legacy_after.update(legacy_types)
            if legacy_types:
                report.legacy_after += 1

        report.legacy_by_type = {
            registry_type: (legacy_before[registry_type], legacy_after[registry_type])
            for registry_type in sorted(set(legacy_before) | set(legacy_after))
        }

        logger.info(f"Migration {mode} finished: {report.records_written} written, "
                    f"legacy records {report.legacy_before} -> {report.legacy_after}")
        return report

    def _write(self, diff: RecordDiff) -> None:
        try:
            self.store.write_packages(diff.record_id, diff.after)
        except MigrationError as e:
            if e.record_id is None:
                e.record_id = diff.record_id
            raise
        except Exception as e:
            raise MigrationError(f"Failed to write record {diff.record_id}: {e}",
                                 record_id=diff.record_id) from e

    def _run_single(self, scanned: List[Tuple[Record, Optional[RecordDiff]]],
                    report: MigrationReport) -> None:
        diffs = [diff for _, diff in scanned if diff is not None]
        try:
            with self.store.transaction():
                for diff in diffs:
                    self._write(diff)
        except MigrationError as e:
            logger.error(f"Migration aborted at record {e.record_id}; no records were written: {e}")
            raise
        report.records_written = len(diffs)
        if scanned:
            report.last_committed_id = scanned[-1][0].id

    def _run_chunked(self, scanned: List[Tuple[Record, Optional[RecordDiff]]], chunk_size: int,
                     report: MigrationReport) -> set:
        failed_ids: set = set()
        contiguous = True
        for start in range(0, len(scanned), chunk_size):
            chunk = scanned[start:start + chunk_size]
            diffs = [diff for _, diff in chunk if diff is not None]
            try:
                with self.store.transaction():
                    for diff in diffs:
                        self._write(diff)
            except MigrationError as e:
                logger.error(f"Chunk ending at {chunk[-1][0].id} rolled back: {e}")
                report.failures.append(MigrationFailure(record_id=e.record_id or chunk[0][0].id, error=str(e)))
                failed_ids.update(diff.record_id for diff in diffs)
                # The cursor only advances over an unbroken run of committed chunks
                contiguous = False
                continue

            report.records_written += len(diffs)
            if contiguous:
                report.last_committed_id = chunk[-1][0].id
            logger.debug(f"Committed chunk of {len(chunk)} records ending at {chunk[-1][0].id}")
        return failed_ids


__all__ = [
    "FieldChange",
    "RecordDiff",
    "MigrationFailure",
    "MigrationReport",
    "MigrationRunner",
]
