"""Test doubles for the remote registry and record store protocols."""
from .fake_record_store import InMemoryRecordStore
from .fake_remote_registry import FakeRemoteRegistry

__all__ = ["FakeRemoteRegistry", "InMemoryRecordStore"]
