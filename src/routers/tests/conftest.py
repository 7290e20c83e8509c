"""Fixtures for exercising the HTTP API with FastAPI's TestClient."""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from src.dependencies import get_queue, get_store
from src.main import create_app
from src.sync.queue import OfflineQueue
from src.sync.storage import InMemoryKeyValueStore


@pytest.fixture
def api_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def client(api_store: InMemoryKeyValueStore) -> Iterator[TestClient]:
    """App wired to a fresh in-memory store per test."""
    app = create_app()
    queue = OfflineQueue(api_store)
    app.dependency_overrides[get_store] = lambda: api_store
    app.dependency_overrides[get_queue] = lambda: queue
    yield TestClient(app)
    app.dependency_overrides.clear()
