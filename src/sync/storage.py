"""Durable key-value store collaborators for the offline queue and snapshot cache.

The reconciler only needs string get/set/remove.  Every implementation must
raise on failure rather than returning a default, so a failed write is
never mistaken for an empty queue.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod

from src.sync.base import DomainSnapshot
from src.sync.errors import StorageError

logger = logging.getLogger("dosekeeper.sync.storage")


class KeyValueStore(ABC):
    """Abstract async key-value store.

    Subclasses hold serialized strings only; encoding belongs to the caller.
    """

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store used in tests and when no database is configured."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class PostgresKeyValueStore(KeyValueStore):
    """Key-value store backed by the ``kv_store`` table via the asyncpg pool."""

    async def get_item(self, key: str) -> str | None:
        from src.services.database import fetchval

        try:
            return await fetchval("SELECT value FROM kv_store WHERE key = $1", key)
        except Exception as exc:
            raise StorageError(f"Failed to read '{key}': {exc}", key=key) from exc

    async def set_item(self, key: str, value: str) -> None:
        from src.services.database import execute

        try:
            await execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                """,
                key,
                value,
            )
        except Exception as exc:
            raise StorageError(f"Failed to write '{key}': {exc}", key=key) from exc

    async def remove_item(self, key: str) -> None:
        from src.services.database import execute

        try:
            await execute("DELETE FROM kv_store WHERE key = $1", key)
        except Exception as exc:
            raise StorageError(f"Failed to delete '{key}': {exc}", key=key) from exc


# ---------------------------------------------------------------------------
# Snapshot cache helpers
# ---------------------------------------------------------------------------


async def load_snapshot(store: KeyValueStore, key: str) -> DomainSnapshot:
    """Read the cached local snapshot; an absent key yields an empty snapshot.

    Raises:
        StorageError: If the store fails or the cached value is not valid JSON.
    """
    try:
        raw = await store.get_item(key)
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(f"Failed to read snapshot '{key}': {exc}", key=key) from exc
    if raw is None:
        return DomainSnapshot()
    try:
        return DomainSnapshot.from_dict(json.loads(raw))
    except (TypeError, ValueError, AttributeError) as exc:
        raise StorageError(f"Cached snapshot '{key}' is unreadable: {exc}", key=key) from exc


async def save_snapshot(store: KeyValueStore, key: str, snapshot: DomainSnapshot) -> None:
    """Persist a snapshot as JSON.

    Raises:
        StorageError: If the store fails.
    """
    payload = json.dumps(snapshot.to_dict(), default=str)
    try:
        await store.set_item(key, payload)
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(f"Failed to write snapshot '{key}': {exc}", key=key) from exc
    logger.debug("Saved snapshot '%s' (%d bytes)", key, len(payload))
