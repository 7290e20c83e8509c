"""Shared fixtures for the offline queue and reconciler tests."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.sync.base import DomainSnapshot
from src.sync.queue import OfflineQueue
from src.sync.storage import InMemoryKeyValueStore, KeyValueStore

T0 = "2025-08-09T09:00:00Z"
T1 = "2025-08-09T10:00:00Z"
T2 = "2025-08-09T11:00:00Z"


class FailingStore(KeyValueStore):
    """Store whose reads and/or writes raise, to exercise error propagation."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = True) -> None:
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.data: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        if self.fail_reads:
            raise OSError("disk unavailable")
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("no space left on device")
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


# ---------------------------------------------------------------------------
# Store / queue fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def queue(store: InMemoryKeyValueStore) -> OfflineQueue:
    return OfflineQueue(store)


@pytest.fixture
def mock_remote() -> AsyncMock:
    """RemoteDataClient stand-in: online, accepts every mutation, empty snapshot."""
    from src.sync.remote import NetworkStatus

    remote = AsyncMock()
    remote.check_network_quality = AsyncMock(return_value=NetworkStatus(is_online=True, rtt_ms=42.0))
    remote.submit_mutation = AsyncMock(return_value=None)
    remote.fetch_snapshot = AsyncMock(return_value=DomainSnapshot())
    remote.push_snapshot = AsyncMock(return_value=None)
    return remote


# ---------------------------------------------------------------------------
# Snapshot fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def local_snapshot() -> DomainSnapshot:
    """Device view: newer 'taken' log, an unidentified log, local dose text."""
    return DomainSnapshot(
        medication_logs=[
            {"id": "1", "status": "taken", "timestamp": T1},
            {"status": "missed", "timestamp": T2},
        ],
        prescriptions=[{"id": "rx1", "dose": "10mg (local)"}],
        user_preferences={"reminders": True, "tone": "chime"},
    )


@pytest.fixture
def server_snapshot() -> DomainSnapshot:
    """Server view: older 'missed' log for the same id, server dose text."""
    return DomainSnapshot(
        medication_logs=[{"id": "1", "status": "missed", "timestamp": T0}],
        prescriptions=[{"id": "rx1", "dose": "20mg (server)"}],
        user_preferences={"reminders": False},
    )
