"""Canonical data models for the Dosekeeper offline reconciler.

``SyncQueueItem`` is a durable mutation intent recorded while the device may
be offline.  ``DomainSnapshot`` is the unit the resolver merges: three
independently-merged partitions (medication logs, prescriptions, user
preferences) plus any other top-level sections the server sends.

Both serialize to the camelCase JSON shape the mobile client and the
remote API exchange.
"""

from __future__ import annotations

import copy
import json
import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger("dosekeeper.sync")

_PARTITION_KEYS = ("medicationLogs", "prescriptions", "userPreferences")


class ConflictResolutionStrategy(str, Enum):
    """Closed set of merge policies understood by ``resolve``."""

    local_wins = "local_wins"
    server_wins = "server_wins"
    medical_priority = "medical_priority"


def generate_item_id() -> str:
    """Return a unique queue item id of the form ``<epoch-ms>_<random>``."""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def canonical_json(value: Any) -> str:
    """Serialize a JSON-compatible value deterministically (sorted keys)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


# ---------------------------------------------------------------------------
# Queue items
# ---------------------------------------------------------------------------


@dataclass
class SyncQueueItem:
    """A durable, timestamped mutation intent.

    Attributes:
        action:    Mutation kind (e.g. 'log_medication'); opaque to the queue.
        payload:   JSON-serializable data for the mutation.
        id:        Generated unique identifier.
        queued_at: UTC timestamp of enqueue.
    """

    action: str
    payload: Any = None
    id: str = field(default_factory=generate_item_id)
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def signature(self) -> str:
        """Dedup key: action plus canonical payload (missing payload → ``{}``)."""
        payload = self.payload if self.payload is not None else {}
        return f"{self.action}:{canonical_json(payload)}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "payload": self.payload,
            "queuedAt": self.queued_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SyncQueueItem:
        """Rebuild an item from its stored form.

        Raises:
            KeyError:   If ``action`` is missing.
            ValueError: If ``queuedAt`` is not an ISO-8601 timestamp.
        """
        queued_raw = data.get("queuedAt") or data.get("queued_at")
        queued_at = (
            datetime.fromisoformat(str(queued_raw).replace("Z", "+00:00"))
            if queued_raw
            else datetime.now(timezone.utc)
        )
        return cls(
            action=str(data["action"]),
            payload=data.get("payload"),
            id=str(data.get("id") or generate_item_id()),
            queued_at=queued_at,
        )


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass
class DomainSnapshot:
    """A point-in-time view of a patient's tracked data.

    Attributes:
        medication_logs:  Log entries; an entry may carry a stable ``id``.
        prescriptions:    Prescription records keyed by ``id``.
        user_preferences: Flat map of device-local settings.
        extra:            Any other top-level sections, carried verbatim.
    """

    medication_logs: list[dict[str, Any]] = field(default_factory=list)
    prescriptions: list[dict[str, Any]] = field(default_factory=list)
    user_preferences: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> DomainSnapshot:
        """Deep copy, so callers can never mutate a merge input through its output."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data.update(
            {
                "medicationLogs": copy.deepcopy(self.medication_logs),
                "prescriptions": copy.deepcopy(self.prescriptions),
                "userPreferences": copy.deepcopy(self.user_preferences),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> DomainSnapshot:
        """Build a snapshot from a client/server payload, tolerating missing partitions."""
        if not data:
            return cls()
        return cls(
            medication_logs=[dict(e) for e in (data.get("medicationLogs") or []) if isinstance(e, Mapping)],
            prescriptions=[dict(e) for e in (data.get("prescriptions") or []) if isinstance(e, Mapping)],
            user_preferences=dict(data.get("userPreferences") or {}),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _PARTITION_KEYS},
        )
