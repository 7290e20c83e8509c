"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from src.config import Settings, get_settings
from src.scheduling.config_loader import get_scheduler_config
from src.scheduling.scheduler import SmartMedicationScheduler
from src.services.database import pool_ready
from src.sync.queue import OfflineQueue
from src.sync.remote import RemoteDataClient
from src.sync.storage import InMemoryKeyValueStore, KeyValueStore, PostgresKeyValueStore

# Process-wide collaborators. One OfflineQueue per (store, key) so every
# request shares the same lock around the persisted queue.
_memory_store = InMemoryKeyValueStore()
_postgres_store = PostgresKeyValueStore()
_queues: dict[tuple[KeyValueStore, str], OfflineQueue] = {}


def get_store() -> KeyValueStore:
    """Postgres-backed store once the pool is up, otherwise the in-process store."""
    return _postgres_store if pool_ready() else _memory_store


def get_queue(
    store: Annotated[KeyValueStore, Depends(get_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> OfflineQueue:
    key = (store, settings.queue_storage_key)
    queue = _queues.get(key)
    if queue is None:
        queue = _queues[key] = OfflineQueue(store, settings.queue_storage_key)
    return queue


def get_scheduler() -> SmartMedicationScheduler:
    # Re-read per request so a hot reload of scheduler_config.yaml takes effect
    return SmartMedicationScheduler(get_scheduler_config())


def get_remote(settings: Annotated[Settings, Depends(get_settings)]) -> RemoteDataClient:
    return RemoteDataClient(
        settings.remote_api_base_url,
        token=settings.remote_api_token,
        health_path=settings.remote_health_path,
        timeout_seconds=settings.remote_timeout_seconds,
    )


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_settings)]
Store = Annotated[KeyValueStore, Depends(get_store)]
Queue = Annotated[OfflineQueue, Depends(get_queue)]
Scheduler = Annotated[SmartMedicationScheduler, Depends(get_scheduler)]
Remote = Annotated[RemoteDataClient, Depends(get_remote)]
