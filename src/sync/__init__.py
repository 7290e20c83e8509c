"""Dosekeeper offline sync and reconciliation.

Modules:
    base     — SyncQueueItem / DomainSnapshot models and the strategy enum
    errors   — StorageError / QueueCorruptedError / RemoteSyncError
    storage  — KeyValueStore collaborators and snapshot cache helpers
    queue    — Durable, serialized, deduplicating offline mutation queue
    resolver — Pure local/server snapshot merge
    remote   — httpx client for the authoritative server
    engine   — Smart sync cycle: drain, fetch, resolve, write back
"""

from src.sync.base import ConflictResolutionStrategy, DomainSnapshot, SyncQueueItem
from src.sync.errors import (
    QueueCorruptedError,
    RemoteSyncError,
    StorageError,
    SyncError,
)
from src.sync.queue import OfflineQueue
from src.sync.resolver import resolve
from src.sync.storage import InMemoryKeyValueStore, KeyValueStore, PostgresKeyValueStore

__all__ = [
    "ConflictResolutionStrategy",
    "DomainSnapshot",
    "SyncQueueItem",
    "SyncError",
    "StorageError",
    "QueueCorruptedError",
    "RemoteSyncError",
    "OfflineQueue",
    "resolve",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "PostgresKeyValueStore",
]
