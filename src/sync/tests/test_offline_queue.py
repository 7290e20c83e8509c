"""Tests for the offline mutation queue — persistence, dedup, and failure propagation."""

from __future__ import annotations

import asyncio
import json

import pytest

from src.sync.errors import QueueCorruptedError, StorageError
from src.sync.queue import DEFAULT_QUEUE_KEY, OfflineQueue
from src.sync.storage import InMemoryKeyValueStore
from src.sync.tests.conftest import FailingStore


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueue_persists_immediately(
        self, queue: OfflineQueue, store: InMemoryKeyValueStore
    ) -> None:
        item = await queue.enqueue("log_medication", {"scheduleId": 7})
        stored = json.loads(await store.get_item(DEFAULT_QUEUE_KEY))
        assert stored == [item.to_dict()]
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_generated_ids_are_unique(self, queue: OfflineQueue) -> None:
        a = await queue.enqueue("log_medication", {"a": 1})
        b = await queue.enqueue("log_medication", {"a": 1})
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_survives_reload(self, store: InMemoryKeyValueStore) -> None:
        await OfflineQueue(store).enqueue("update_preference", {"tone": "chime"})
        reloaded = await OfflineQueue(store).load_queue()
        assert [(i.action, i.payload) for i in reloaded] == [("update_preference", {"tone": "chime"})]

    @pytest.mark.asyncio
    async def test_write_failure_raises_and_records_nothing(self) -> None:
        queue = OfflineQueue(FailingStore(fail_writes=True))
        with pytest.raises(StorageError):
            await queue.enqueue("log_medication", {"a": 1})
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_concurrent_enqueues_are_serialized(self, queue: OfflineQueue) -> None:
        await asyncio.gather(*(queue.enqueue("log_medication", {"n": n}) for n in range(20)))
        items = await queue.load_queue()
        assert sorted(i.payload["n"] for i in items) == list(range(20))


class TestLoadQueue:
    @pytest.mark.asyncio
    async def test_absent_key_is_empty(self, queue: OfflineQueue) -> None:
        assert await queue.load_queue() == []

    @pytest.mark.asyncio
    async def test_idempotent(self, queue: OfflineQueue) -> None:
        await queue.enqueue("log_medication", {"a": 1})
        first = await queue.load_queue()
        second = await queue.load_queue()
        assert first == second

    @pytest.mark.asyncio
    async def test_read_failure_raises(self) -> None:
        queue = OfflineQueue(FailingStore(fail_reads=True))
        with pytest.raises(StorageError, match="disk unavailable"):
            await queue.load_queue()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not json", '{"action": "x"}', '[{"payload": 1}]'])
    async def test_corrupted_queue_raises(self, raw: str) -> None:
        store = InMemoryKeyValueStore({DEFAULT_QUEUE_KEY: raw})
        with pytest.raises(QueueCorruptedError):
            await OfflineQueue(store).load_queue()

    @pytest.mark.asyncio
    async def test_custom_storage_key(self, store: InMemoryKeyValueStore) -> None:
        queue = OfflineQueue(store, storage_key="other")
        await queue.enqueue("log_medication")
        assert "other" in store
        assert DEFAULT_QUEUE_KEY not in store


class TestOptimizeOfflineStorage:
    @pytest.mark.asyncio
    async def test_duplicate_pair_collapses_to_one(self, queue: OfflineQueue) -> None:
        await queue.enqueue("log_medication", {"a": 1})
        await queue.enqueue("log_medication", {"a": 1})
        removed = await queue.optimize_offline_storage()
        items = await queue.load_queue()
        assert removed == 1
        assert len([i for i in items if i.action == "log_medication" and i.payload == {"a": 1}]) == 1

    @pytest.mark.asyncio
    async def test_keeps_earliest_and_distinct_intents_in_order(self, queue: OfflineQueue) -> None:
        first = await queue.enqueue("log_medication", {"a": 1, "b": 2})
        await queue.enqueue("update_preference", {"a": 1, "b": 2})
        await queue.enqueue("log_medication", {"b": 2, "a": 1})
        await queue.enqueue("log_medication", {"a": 2})
        await queue.enqueue("log_medication", None)
        await queue.enqueue("log_medication", {})

        await queue.optimize_offline_storage()
        items = await queue.load_queue()
        assert items[0].id == first.id
        assert [(i.action, i.payload) for i in items] == [
            ("log_medication", {"a": 1, "b": 2}),
            ("update_preference", {"a": 1, "b": 2}),
            ("log_medication", {"a": 2}),
            ("log_medication", None),
        ]

    @pytest.mark.asyncio
    async def test_signatures_unique_after_pass(self, queue: OfflineQueue) -> None:
        for n in (1, 2, 1, 3, 2, 1):
            await queue.enqueue("log_medication", {"n": n})
        await queue.optimize_offline_storage()
        signatures = [i.signature for i in await queue.load_queue()]
        assert len(signatures) == len(set(signatures)) == 3

    @pytest.mark.asyncio
    async def test_empty_queue(self, queue: OfflineQueue) -> None:
        assert await queue.optimize_offline_storage() == 0


class TestRemoval:
    @pytest.mark.asyncio
    async def test_discard(self, queue: OfflineQueue) -> None:
        item = await queue.enqueue("log_medication", {"a": 1})
        assert await queue.discard(item.id)
        assert not await queue.discard(item.id)
        assert await queue.load_queue() == []

    @pytest.mark.asyncio
    async def test_requeue_moves_to_tail(self, queue: OfflineQueue) -> None:
        a = await queue.enqueue("log_medication", {"n": 1})
        b = await queue.enqueue("log_medication", {"n": 2})
        await queue.requeue([a.id])
        assert [i.id for i in await queue.load_queue()] == [b.id, a.id]

    @pytest.mark.asyncio
    async def test_peek(self, queue: OfflineQueue) -> None:
        for n in range(5):
            await queue.enqueue("log_medication", {"n": n})
        head = await queue.peek(2)
        assert [i.payload["n"] for i in head] == [0, 1]
