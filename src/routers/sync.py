"""Offline queue management, snapshot reconciliation and sync cycles."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import AppSettings, Queue, Remote, Store
from src.models.sync import (
    EnqueueRequest,
    OptimizeResponse,
    QueueItemRead,
    QueueRead,
    ResolveRequest,
    ResolveResponse,
    SyncRunRequest,
    SyncRunResponse,
)
from src.sync.base import DomainSnapshot
from src.sync.engine import SyncEngine
from src.sync.resolver import resolve

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger("dosekeeper.sync.api")


# ---------- Queue ----------

@router.get("/queue", response_model=QueueRead)
async def list_queue(queue: Queue) -> Any:
    items = await queue.load_queue()
    return QueueRead(count=len(items), items=[QueueItemRead.from_item(i) for i in items])


@router.post("/queue", response_model=QueueItemRead, status_code=201)
async def enqueue_mutation(body: EnqueueRequest, queue: Queue) -> Any:
    item = await queue.enqueue(body.action, body.payload)
    return QueueItemRead.from_item(item)


@router.post("/queue/optimize", response_model=OptimizeResponse)
async def optimize_queue(queue: Queue) -> Any:
    removed = await queue.optimize_offline_storage()
    return OptimizeResponse(removed=removed, remaining=len(queue))


@router.delete("/queue/{item_id}", status_code=204)
async def discard_queued_item(item_id: str, queue: Queue) -> None:
    if not await queue.discard(item_id):
        raise HTTPException(status_code=404, detail="Queue item not found")


# ---------- Reconciliation ----------

@router.post("/resolve", response_model=ResolveResponse)
async def resolve_snapshots(body: ResolveRequest) -> Any:
    merged = resolve(
        DomainSnapshot.from_dict(body.local),
        DomainSnapshot.from_dict(body.server),
        body.strategy,
    )
    return ResolveResponse(strategy=body.strategy, snapshot=merged.to_dict())


@router.post("/run", response_model=SyncRunResponse)
async def run_sync_cycle(
    queue: Queue,
    store: Store,
    remote: Remote,
    settings: AppSettings,
    body: SyncRunRequest | None = None,
) -> Any:
    """Run one smart sync cycle against the configured remote API.

    The caller reports the device battery level; omitting it runs the
    cycle in power-saving mode.
    """
    battery_level = body.battery_level if body else None

    async def battery() -> float | None:
        return battery_level

    engine = SyncEngine(
        queue,
        remote,
        store,
        snapshot_key=settings.snapshot_storage_key,
        battery_provider=battery,
        batch_size=settings.sync_batch_size,
        power_saving_batch_size=settings.sync_power_saving_batch_size,
        low_battery_threshold=settings.low_battery_threshold,
        probe_timeout_seconds=settings.network_probe_timeout_seconds,
    )
    result = await engine.smart_sync()
    return SyncRunResponse.from_result(result)
