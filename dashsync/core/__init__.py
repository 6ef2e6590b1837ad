"""Shared engine types and the last-known data snapshot."""

from dashsync.core.snapshot import DataSnapshot, DataSnapshotStore

__all__ = ["DataSnapshot", "DataSnapshotStore"]
