"""Migration of stored package references to the canonical shape."""
from .runner import FieldChange, MigrationFailure, MigrationReport, MigrationRunner, RecordDiff
from .store import JsonFileRecordStore, Record, RecordStore

__all__ = [
    "FieldChange",
    "MigrationFailure",
    "MigrationReport",
    "MigrationRunner",
    "RecordDiff",
    "JsonFileRecordStore",
    "Record",
    "RecordStore",
]
