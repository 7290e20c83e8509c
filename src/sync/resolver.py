"""Conflict resolution between a local and a server snapshot.

``resolve`` is pure: no I/O, deterministic, and it never mutates its inputs.
Each ``ConflictResolutionStrategy`` is dispatched to one merge function:

- ``local_wins``       — the local snapshot, verbatim.
- ``server_wins``      — the server snapshot, verbatim.
- ``medical_priority`` — per-partition rules:
    * medication logs: matched by ``id``; the later timestamp wins, a tie
      goes to the local entry.  Entries without an ``id`` can never be proven
      redundant, so every one of them from both sides is kept.
    * prescriptions: matched by ``id``; the server entry wins.
    * user preferences: server map overlaid by the local map.
    * any other section: server value, filled from local where absent.
"""

from __future__ import annotations

import copy
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from src.sync.base import ConflictResolutionStrategy, DomainSnapshot

logger = logging.getLogger("dosekeeper.sync.resolver")

# Fields consulted, in order, for a log entry's effective time
LOG_TIMESTAMP_FIELDS = ("updatedAt", "timestamp", "actualTime", "scheduledTime")

# Sorts below every real timestamp
MISSING_TIMESTAMP = float("-inf")

# Numbers above this are epoch milliseconds (JS Date.now()), not seconds
EPOCH_MILLIS_THRESHOLD = 1e11


# ---------------------------------------------------------------------------
# Entry helpers
# ---------------------------------------------------------------------------


def entry_id(entry: Mapping[str, Any]) -> str | None:
    """Return the entry's stable id as a string, or None if it has none."""
    value = entry.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _number_to_epoch(value: int | float) -> float:
    try:
        seconds = float(value)
    except OverflowError:
        return MISSING_TIMESTAMP
    if not math.isfinite(seconds):
        return MISSING_TIMESTAMP
    if abs(seconds) > EPOCH_MILLIS_THRESHOLD:
        seconds /= 1000.0
    return seconds


def _to_epoch(value: Any) -> float:
    if isinstance(value, bool):
        return MISSING_TIMESTAMP
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        return _number_to_epoch(value)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return MISSING_TIMESTAMP
    else:
        return MISSING_TIMESTAMP
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def log_timestamp(entry: Mapping[str, Any]) -> float:
    """Effective time of a log entry as epoch seconds.

    The first present field of ``LOG_TIMESTAMP_FIELDS`` decides.  Missing or
    unparseable values return ``MISSING_TIMESTAMP``, which loses against any
    real timestamp.  Naive datetimes are taken as UTC.  Numbers are epoch
    seconds, or epoch milliseconds when above ``EPOCH_MILLIS_THRESHOLD``;
    non-finite or out-of-range numbers count as missing.
    """
    for name in LOG_TIMESTAMP_FIELDS:
        value = entry.get(name)
        if value is not None and value != "":
            return _to_epoch(value)
    return MISSING_TIMESTAMP


# ---------------------------------------------------------------------------
# Partition merges
# ---------------------------------------------------------------------------


def merge_medication_logs(
    local_logs: list[dict[str, Any]], server_logs: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Merge log entries, keeping the most recent version of each identified entry.

    Output order: identified entries in first-seen order (server first, then
    local-only), then unidentified local entries, then unidentified server
    entries.  Nothing is truncated or deduplicated beyond id matches.
    """
    by_id: dict[str, tuple[dict[str, Any], str]] = {}
    unidentified_server: list[dict[str, Any]] = []
    unidentified_local: list[dict[str, Any]] = []

    for log in server_logs:
        key = entry_id(log)
        if key is None:
            unidentified_server.append(log)
            continue
        current = by_id.get(key)
        if current is None or log_timestamp(log) >= log_timestamp(current[0]):
            by_id[key] = (log, "server")

    for log in local_logs:
        key = entry_id(log)
        if key is None:
            unidentified_local.append(log)
            continue
        current = by_id.get(key)
        if current is None or log_timestamp(log) >= log_timestamp(current[0]):
            if current is not None and current[1] == "server":
                logger.debug("Log %s: local entry supersedes server entry", key)
            by_id[key] = (log, "local")

    merged = [entry for entry, _ in by_id.values()]
    merged.extend(unidentified_local)
    merged.extend(unidentified_server)
    return copy.deepcopy(merged)


def merge_prescriptions(
    local_rx: list[dict[str, Any]], server_rx: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Merge prescriptions by id; the server is authoritative for shared ids."""
    server_ids = {key for key in (entry_id(rx) for rx in server_rx) if key is not None}
    merged = list(server_rx)
    for rx in local_rx:
        key = entry_id(rx)
        if key is not None and key in server_ids:
            continue
        merged.append(rx)
    return copy.deepcopy(merged)


def merge_preferences(local_prefs: Mapping[str, Any], server_prefs: Mapping[str, Any]) -> dict[str, Any]:
    """Server preferences overlaid by local ones; the user's latest choice wins."""
    return copy.deepcopy({**server_prefs, **local_prefs})


def merge_extra(local_extra: Mapping[str, Any], server_extra: Mapping[str, Any]) -> dict[str, Any]:
    """Unlisted sections: prefer the server, fill from local where absent."""
    merged = dict(server_extra)
    for key, value in local_extra.items():
        if merged.get(key) is None:
            merged[key] = value
    return copy.deepcopy(merged)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def _local_wins(local: DomainSnapshot, server: DomainSnapshot) -> DomainSnapshot:
    return local.copy()


def _server_wins(local: DomainSnapshot, server: DomainSnapshot) -> DomainSnapshot:
    return server.copy()


def _medical_priority(local: DomainSnapshot, server: DomainSnapshot) -> DomainSnapshot:
    if local == server:
        return local.copy()
    return DomainSnapshot(
        medication_logs=merge_medication_logs(local.medication_logs, server.medication_logs),
        prescriptions=merge_prescriptions(local.prescriptions, server.prescriptions),
        user_preferences=merge_preferences(local.user_preferences, server.user_preferences),
        extra=merge_extra(local.extra, server.extra),
    )


_STRATEGIES: dict[ConflictResolutionStrategy, Callable[[DomainSnapshot, DomainSnapshot], DomainSnapshot]] = {
    ConflictResolutionStrategy.local_wins: _local_wins,
    ConflictResolutionStrategy.server_wins: _server_wins,
    ConflictResolutionStrategy.medical_priority: _medical_priority,
}


def resolve(
    local: DomainSnapshot,
    server: DomainSnapshot,
    strategy: ConflictResolutionStrategy | str = ConflictResolutionStrategy.medical_priority,
) -> DomainSnapshot:
    """Reconcile a local snapshot with a server snapshot.

    Args:
        local:    The device's snapshot (possibly stale, possibly ahead).
        server:   The authoritative remote snapshot.
        strategy: Merge policy; strings are coerced to the enum.

    Returns:
        A new merged DomainSnapshot.  Inputs are never modified.

    Raises:
        ValueError: If ``strategy`` is not a known strategy name.
    """
    strategy = ConflictResolutionStrategy(strategy)
    merged = _STRATEGIES[strategy](local, server)
    logger.debug(
        "Resolved snapshots with %s: %d logs, %d prescriptions, %d preferences",
        strategy.value,
        len(merged.medication_logs),
        len(merged.prescriptions),
        len(merged.user_preferences),
    )
    return merged
