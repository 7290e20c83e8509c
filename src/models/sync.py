"""Pydantic models for the offline queue and snapshot reconciliation endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from src.models.base import DosekeeperBase
from src.sync.base import ConflictResolutionStrategy, SyncQueueItem
from src.sync.engine import SyncCycleResult, SyncMode


# ---------- Queue ----------

class EnqueueRequest(DosekeeperBase):
    action: str = Field(min_length=1, max_length=100)
    payload: Any = None


class QueueItemRead(DosekeeperBase):
    id: str
    action: str
    payload: Any = None
    queued_at: datetime

    @classmethod
    def from_item(cls, item: SyncQueueItem) -> QueueItemRead:
        return cls(id=item.id, action=item.action, payload=item.payload, queued_at=item.queued_at)


class QueueRead(DosekeeperBase):
    count: int
    items: list[QueueItemRead]


class OptimizeResponse(DosekeeperBase):
    removed: int
    remaining: int


# ---------- Reconciliation ----------

class ResolveRequest(DosekeeperBase):
    """Snapshots use the client's camelCase shape (medicationLogs, prescriptions, userPreferences)."""

    local: dict[str, Any] = Field(default_factory=dict)
    server: dict[str, Any] = Field(default_factory=dict)
    strategy: ConflictResolutionStrategy = ConflictResolutionStrategy.medical_priority


class ResolveResponse(DosekeeperBase):
    strategy: ConflictResolutionStrategy
    snapshot: dict[str, Any]


class SyncRunRequest(DosekeeperBase):
    battery_level: float | None = Field(default=None, ge=0.0, le=1.0)


class SyncRunResponse(DosekeeperBase):
    status: str
    mode: SyncMode
    replayed: list[str]
    requeued: list[str]
    duplicates_removed: int
    reconciled: bool
    error: str | None = None
    finished_at: datetime

    @classmethod
    def from_result(cls, result: SyncCycleResult) -> SyncRunResponse:
        return cls(
            status=result.status,
            mode=result.mode,
            replayed=result.replayed,
            requeued=result.requeued,
            duplicates_removed=result.duplicates_removed,
            reconciled=result.reconciled,
            error=result.error,
            finished_at=result.finished_at,
        )
