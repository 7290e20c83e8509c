"""Offline mutation queue.

Every locally-recorded mutation is appended here and persisted immediately,
whether or not the device is online.  Items leave the queue only after a
successful replay against the server or an explicit discard.

All store access is serialized on a single ``asyncio.Lock`` so a user action
and a background retry can never interleave a read-modify-write of the
persisted queue.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable

from src.sync.base import SyncQueueItem
from src.sync.errors import QueueCorruptedError, StorageError
from src.sync.storage import KeyValueStore

logger = logging.getLogger("dosekeeper.sync.queue")

DEFAULT_QUEUE_KEY = "offline_service_sync_queue"


class OfflineQueue:
    """Durable, deduplicating queue of pending mutations.

    Usage::

        queue = OfflineQueue(store)
        await queue.enqueue("log_medication", {"scheduleId": 7, "actualTime": "..."})
        removed = await queue.optimize_offline_storage()
    """

    def __init__(self, store: KeyValueStore, storage_key: str = DEFAULT_QUEUE_KEY) -> None:
        """Initialize the queue.

        Args:
            store:       Durable key-value store collaborator.
            storage_key: Key under which the serialized queue is kept.
        """
        self._store = store
        self._key = storage_key
        self._items: list[SyncQueueItem] = []
        self._lock = asyncio.Lock()

    @property
    def items(self) -> list[SyncQueueItem]:
        """Snapshot of the in-memory queue (as of the last load or write)."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------
    # Persistence (callers must hold the lock)
    # ------------------------------------------------------------------

    async def _read(self) -> list[SyncQueueItem]:
        try:
            raw = await self._store.get_item(self._key)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to read queue '{self._key}': {exc}", key=self._key) from exc

        if raw is None:
            return []
        try:
            decoded = json.loads(raw)
            if not isinstance(decoded, list):
                raise ValueError(f"expected a list, got {type(decoded).__name__}")
            return [SyncQueueItem.from_dict(entry) for entry in decoded]
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise QueueCorruptedError(
                f"Stored queue '{self._key}' cannot be decoded: {exc}", key=self._key
            ) from exc

    async def _write(self, items: list[SyncQueueItem]) -> None:
        payload = json.dumps([item.to_dict() for item in items], default=str)
        try:
            await self._store.set_item(self._key, payload)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to write queue '{self._key}': {exc}", key=self._key) from exc
        self._items = items

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def load_queue(self) -> list[SyncQueueItem]:
        """Rehydrate the in-memory queue from the store.

        Idempotent; an absent key yields an empty queue.

        Raises:
            StorageError:        If the store read fails.
            QueueCorruptedError: If the stored value cannot be decoded.
        """
        async with self._lock:
            self._items = await self._read()
            return list(self._items)

    async def enqueue(self, action: str, payload: Any = None) -> SyncQueueItem:
        """Append a mutation intent and persist it.

        Never touches the network.  On a storage failure nothing is
        recorded and the error propagates so the caller can retry.

        Args:
            action:  Mutation kind (e.g. 'log_medication').
            payload: JSON-serializable mutation data.

        Returns:
            The queued item.
        """
        async with self._lock:
            items = await self._read()
            item = SyncQueueItem(action=action, payload=payload)
            items.append(item)
            await self._write(items)
        logger.info("Enqueued %s (%s), queue length %d", item.action, item.id, len(items))
        return item

    async def optimize_offline_storage(self) -> int:
        """Drop items whose (action, payload) signature repeats an earlier item.

        The earliest occurrence of each signature is kept and order is
        preserved.  Distinct intents are never trimmed.

        Returns:
            Number of duplicate items removed.
        """
        async with self._lock:
            items = await self._read()
            seen: set[str] = set()
            deduped: list[SyncQueueItem] = []
            for item in items:
                sig = item.signature
                if sig in seen:
                    continue
                seen.add(sig)
                deduped.append(item)
            await self._write(deduped)

        removed = len(items) - len(deduped)
        logger.info("Optimized offline queue: %d → %d items", len(items), len(deduped))
        return removed

    async def peek(self, limit: int) -> list[SyncQueueItem]:
        """Return up to ``limit`` items from the head of the persisted queue."""
        async with self._lock:
            self._items = await self._read()
            return self._items[:limit]

    async def remove(self, item_ids: Iterable[str]) -> int:
        """Remove items by id after successful replay. Returns the count removed."""
        targets = set(item_ids)
        if not targets:
            return 0
        async with self._lock:
            items = await self._read()
            kept = [item for item in items if item.id not in targets]
            await self._write(kept)
        removed = len(items) - len(kept)
        logger.debug("Removed %d replayed items from queue", removed)
        return removed

    async def discard(self, item_id: str) -> bool:
        """Explicitly discard one item. Returns False if it was not queued."""
        removed = await self.remove([item_id])
        if removed:
            logger.info("Discarded queued item %s", item_id)
        return removed > 0

    async def requeue(self, item_ids: Iterable[str]) -> None:
        """Move the given items to the tail of the queue for a later retry."""
        targets = list(dict.fromkeys(item_ids))
        if not targets:
            return
        async with self._lock:
            items = await self._read()
            moving = [item for item in items if item.id in targets]
            kept = [item for item in items if item.id not in targets]
            await self._write(kept + moving)
        logger.warning("Requeued %d item(s) for retry", len(moving))
