"""End-to-end tests for the scheduling and sync routes."""

from __future__ import annotations

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from src.dependencies import get_remote
from src.sync.base import DomainSnapshot
from src.sync.errors import StorageError
from src.sync.queue import DEFAULT_QUEUE_KEY
from src.sync.remote import NetworkStatus
from src.sync.storage import InMemoryKeyValueStore

V1 = "/api/v1"


class TestHealth:
    def test_reports_memory_store(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["store"] == "memory"


class TestScheduleConflicts:
    def test_interaction_reported(self, client: TestClient) -> None:
        resp = client.post(
            f"{V1}/schedules/conflicts",
            json={
                "schedule": {"time": "09:00", "medication": {"name": "Warfarin", "interactions": ["Aspirin"]}},
                "existing": [
                    {"id": 5, "time": "11:00", "medication": {"name": "Aspirin"}},
                    {"id": 6, "time": "15:00", "medication": {"name": "Vitamin D"}},
                ],
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["has_conflicts"] is True
        assert [c["id"] for c in body["conflicts"]] == [5]
        assert body["findings"][0]["type"] == "interaction"
        assert body["findings"][0]["severity"] == "high"

    def test_timing_overlap_with_legacy_key(self, client: TestClient) -> None:
        resp = client.post(
            f"{V1}/schedules/conflicts",
            json={
                "schedule": {"scheduledTime": "08:00", "medication": {"name": "A"}},
                "existing": [{"scheduledTime": "08:20", "medication": {"name": "B"}}],
            },
        )
        assert resp.json()["findings"][0]["type"] == "timing_overlap"

    def test_malformed_medication_is_not_a_server_error(self, client: TestClient) -> None:
        resp = client.post(
            f"{V1}/schedules/conflicts",
            json={
                "schedule": {"time": "08:00", "medication": "Aspirin"},
                "existing": [
                    {"id": {"nested": 1}, "time": 800, "medication": {"name": "B", "interactions": 5}},
                    {"id": 2, "time": "08:10", "medication": {"name": "C", "enrichedData": {"interactions": [{"medications": 7}]}}},
                ],
            },
        )
        assert resp.status_code == 200
        assert [c["id"] for c in resp.json()["conflicts"]] == [2]

    def test_no_existing_schedules(self, client: TestClient) -> None:
        resp = client.post(f"{V1}/schedules/conflicts", json={"schedule": {"time": "09:00"}})
        assert resp.json() == {"has_conflicts": False, "conflicts": [], "findings": []}


class TestDosingTimes:
    def test_twice_daily_defaults(self, client: TestClient) -> None:
        resp = client.post(f"{V1}/schedules/dosing-times", json={"frequency": "twice daily"})
        assert resp.status_code == 200
        assert resp.json()["times"] == ["07:00", "19:00"]

    def test_meal_override(self, client: TestClient) -> None:
        resp = client.post(
            f"{V1}/schedules/dosing-times",
            json={"frequency": "TID", "meal_times": {"breakfast": "08:00"}},
        )
        body = resp.json()
        assert body["times"] == ["08:00", "13:00", "19:00"]
        assert body["meal_times"]["breakfast"] == "08:00"


class TestQueueRoutes:
    def test_enqueue_list_optimize_discard(self, client: TestClient) -> None:
        first = client.post(f"{V1}/sync/queue", json={"action": "log_medication", "payload": {"a": 1}})
        client.post(f"{V1}/sync/queue", json={"action": "log_medication", "payload": {"a": 1}})
        assert first.status_code == 201

        assert client.get(f"{V1}/sync/queue").json()["count"] == 2

        optimized = client.post(f"{V1}/sync/queue/optimize").json()
        assert optimized == {"removed": 1, "remaining": 1}

        item_id = first.json()["id"]
        assert client.delete(f"{V1}/sync/queue/{item_id}").status_code == 204
        assert client.delete(f"{V1}/sync/queue/{item_id}").status_code == 404
        assert client.get(f"{V1}/sync/queue").json() == {"count": 0, "items": []}

    def test_empty_action_rejected(self, client: TestClient) -> None:
        assert client.post(f"{V1}/sync/queue", json={"action": ""}).status_code == 422

    def test_corrupted_store_is_503(self, client: TestClient, api_store: InMemoryKeyValueStore) -> None:
        api_store._data[DEFAULT_QUEUE_KEY] = "not json"
        resp = client.get(f"{V1}/sync/queue")
        assert resp.status_code == 503


class TestResolveRoute:
    def test_medical_priority_default(self, client: TestClient) -> None:
        resp = client.post(
            f"{V1}/sync/resolve",
            json={
                "local": {"prescriptions": [{"id": "rx1", "dose": "10mg"}], "userPreferences": {"tone": "chime"}},
                "server": {"prescriptions": [{"id": "rx1", "dose": "20mg"}], "userPreferences": {"tone": "bell"}},
            },
        )
        body = resp.json()
        assert body["strategy"] == "medical_priority"
        assert body["snapshot"]["prescriptions"] == [{"id": "rx1", "dose": "20mg"}]
        assert body["snapshot"]["userPreferences"] == {"tone": "chime"}

    def test_unknown_strategy_rejected(self, client: TestClient) -> None:
        resp = client.post(f"{V1}/sync/resolve", json={"strategy": "merge"})
        assert resp.status_code == 422


class TestSyncRun:
    def test_offline_cycle(self, client: TestClient) -> None:
        remote = AsyncMock()
        remote.check_network_quality = AsyncMock(return_value=NetworkStatus(is_online=False))
        client.app.dependency_overrides[get_remote] = lambda: remote
        client.post(f"{V1}/sync/queue", json={"action": "log_medication", "payload": {"a": 1}})
        client.post(f"{V1}/sync/queue", json={"action": "log_medication", "payload": {"a": 1}})

        body = client.post(f"{V1}/sync/run", json={"battery_level": 0.9}).json()

        assert body["mode"] == "offline"
        assert body["duplicates_removed"] == 1

    def test_online_cycle_replays_queue(self, client: TestClient) -> None:
        remote = AsyncMock()
        remote.check_network_quality = AsyncMock(return_value=NetworkStatus(is_online=True, rtt_ms=10.0))
        remote.fetch_snapshot = AsyncMock(return_value=DomainSnapshot())
        client.app.dependency_overrides[get_remote] = lambda: remote
        client.post(f"{V1}/sync/queue", json={"action": "log_medication", "payload": {"a": 1}})

        body = client.post(f"{V1}/sync/run", json={"battery_level": 0.9}).json()

        assert body["mode"] == "normal"
        assert body["status"] == "success"
        assert len(body["replayed"]) == 1
        assert client.get(f"{V1}/sync/queue").json()["count"] == 0

    def test_storage_failure_is_503(self, client: TestClient) -> None:
        remote = AsyncMock()
        remote.check_network_quality = AsyncMock(side_effect=StorageError("boom"))
        client.app.dependency_overrides[get_remote] = lambda: remote
        assert client.post(f"{V1}/sync/run").status_code == 503


class TestRequestLogging:
    def test_request_id_generated(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.headers["X-Request-ID"]
        assert resp.headers["Cache-Control"] == "no-store"

    def test_request_id_echoed(self, client: TestClient) -> None:
        resp = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"
