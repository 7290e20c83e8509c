"""Sync engine — drains the offline queue and reconciles snapshots.

A smart sync cycle:
1. Probe connectivity.
2. Offline → deduplicate the queue to bound storage growth, then stop.
3. Online → pick a batch size from the battery level (normal / power saving).
4. Replay up to one batch of queued mutations; stop at the first failure
   and move the failed item to the tail for a later retry.
5. Fetch the server snapshot, merge it with the cached local snapshot under
   ``medical_priority``, write the result to the cache and push it back.

Remote failures are reported in the ``SyncCycleResult``; storage failures
propagate to the caller, since they risk losing a queued clinical mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable

from src.sync.base import ConflictResolutionStrategy, DomainSnapshot
from src.sync.errors import RemoteSyncError
from src.sync.queue import OfflineQueue
from src.sync.remote import RemoteDataClient
from src.sync.resolver import resolve
from src.sync.storage import KeyValueStore, load_snapshot, save_snapshot

logger = logging.getLogger("dosekeeper.sync.engine")

DEFAULT_SNAPSHOT_KEY = "offline_service_snapshot"

BatteryProvider = Callable[[], Awaitable[float | None]]


class SyncMode(str, Enum):
    normal = "normal"
    power_saving = "power_saving"
    offline = "offline"


@dataclass
class SyncCycleResult:
    """Outcome of one ``smart_sync`` cycle.

    Attributes:
        mode:            Mode the cycle ran in.
        replayed:        Ids of mutations successfully replayed and removed.
        requeued:        Ids of mutations that failed and moved to the tail.
        duplicates_removed: Items dropped by the offline optimization pass.
        reconciled:      True if a merged snapshot was written and pushed.
        error:           Remote failure message, if any.
        finished_at:     UTC timestamp of completion.
    """

    mode: SyncMode
    replayed: list[str] = field(default_factory=list)
    requeued: list[str] = field(default_factory=list)
    duplicates_removed: int = 0
    reconciled: bool = False
    error: str | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status(self) -> str:
        if self.error and not self.replayed and not self.reconciled:
            return "error"
        if self.error or self.requeued:
            return "partial"
        return "success"


class SyncEngine:
    """Coordinates queue draining and snapshot reconciliation.

    Usage::

        engine = SyncEngine(queue, remote, store, battery_provider=device.battery_level)
        result = await engine.smart_sync()
    """

    def __init__(
        self,
        queue: OfflineQueue,
        remote: RemoteDataClient,
        store: KeyValueStore,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
        battery_provider: BatteryProvider | None = None,
        batch_size: int = 50,
        power_saving_batch_size: int = 10,
        low_battery_threshold: float = 0.2,
        probe_timeout_seconds: float = 4.0,
    ) -> None:
        """Initialize the engine.

        Args:
            queue:                   The offline mutation queue.
            remote:                  Remote data collaborator.
            store:                   Store holding the cached local snapshot.
            snapshot_key:            Key of the cached local snapshot.
            battery_provider:        Async callable → battery level 0..1 or None.
            batch_size:              Items replayed per cycle in normal mode.
            power_saving_batch_size: Items replayed per cycle on low battery.
            low_battery_threshold:   Levels at or below this switch to power saving.
            probe_timeout_seconds:   Timeout for the connectivity probe.
        """
        self._queue = queue
        self._remote = remote
        self._store = store
        self._snapshot_key = snapshot_key
        self._battery_provider = battery_provider
        self._batch_sizes = {
            SyncMode.normal: batch_size,
            SyncMode.power_saving: power_saving_batch_size,
        }
        self._low_battery_threshold = low_battery_threshold
        self._probe_timeout = probe_timeout_seconds

    async def smart_sync(self) -> SyncCycleResult:
        """Run one sync cycle, choosing the online or offline path."""
        status = await self._remote.check_network_quality(self._probe_timeout)
        if not status.is_online:
            removed = await self._queue.optimize_offline_storage()
            logger.info("Offline: optimized queue, %d duplicates removed", removed)
            return SyncCycleResult(mode=SyncMode.offline, duplicates_removed=removed)

        mode = await self.select_mode()
        logger.info("Online (rtt=%sms): syncing in %s mode", status.rtt_ms, mode.value)
        result = SyncCycleResult(mode=mode)
        await self._drain(result)
        await self._reconcile(result)
        result.finished_at = datetime.now(timezone.utc)

        logger.info(
            "Sync cycle complete: %d replayed, %d requeued, reconciled=%s, status=%s",
            len(result.replayed), len(result.requeued), result.reconciled, result.status,
        )
        return result

    async def select_mode(self) -> SyncMode:
        """Pick normal or power-saving mode from the battery level.

        An unknown level (no provider, provider returns None or fails) is
        treated as low battery.
        """
        if self._battery_provider is None:
            return SyncMode.power_saving
        try:
            level = await self._battery_provider()
        except Exception as exc:
            logger.warning("Battery level unavailable: %s", exc)
            return SyncMode.power_saving
        if level is not None and level > self._low_battery_threshold:
            return SyncMode.normal
        return SyncMode.power_saving

    async def _drain(self, result: SyncCycleResult) -> None:
        batch = await self._queue.peek(self._batch_sizes[result.mode])
        for item in batch:
            try:
                await self._remote.submit_mutation(item)
            except RemoteSyncError as exc:
                logger.warning("Replay of %s (%s) failed: %s", item.action, item.id, exc)
                result.requeued.append(item.id)
                result.error = str(exc)
                break
            result.replayed.append(item.id)

        await self._queue.remove(result.replayed)
        await self._queue.requeue(result.requeued)

    async def _reconcile(self, result: SyncCycleResult) -> None:
        try:
            server = await self._remote.fetch_snapshot()
        except RemoteSyncError as exc:
            logger.warning("Could not fetch server snapshot: %s", exc)
            result.error = str(exc)
            return

        local = await load_snapshot(self._store, self._snapshot_key)
        merged = self.resolve_conflicts(local, server)
        await save_snapshot(self._store, self._snapshot_key, merged)

        try:
            await self._remote.push_snapshot(merged)
        except RemoteSyncError as exc:
            logger.warning("Could not push merged snapshot: %s", exc)
            result.error = str(exc)
            return
        result.reconciled = True

    @staticmethod
    def resolve_conflicts(local: DomainSnapshot, server: DomainSnapshot) -> DomainSnapshot:
        """Merge under the medical-priority policy."""
        return resolve(local, server, ConflictResolutionStrategy.medical_priority)
