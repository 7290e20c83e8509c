"""Schedule conflict detection.

Decides, before a new or edited schedule is saved, which existing schedules
are unsafe to run alongside it.  A pair conflicts when either:

1. **Interaction heuristic** — one medication's name appears (case-insensitive
   substring) in the other's ``interactions`` or enriched interaction lists,
   checked in both directions.  Independent of dosing times.
2. **Timing heuristic** — only when both times are valid ``HH:MM``:
     - the doses are within ``proximity_minutes`` (30) of each other, or
     - an ``empty_stomach`` dose is within ``empty_stomach_proximity_minutes``
       of the other dose and the other dose sits inside a meal window, or
     - a ``before_meal`` dose is within ``before_meal_minutes`` (60) of a
       ``with_meal`` / ``after_meal`` dose.

Malformed times never raise; the timing heuristic is skipped for that pair.
Every check is symmetric, so swapping candidate and existing schedule gives
the same verdict.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from src.scheduling.base import (
    ConflictFinding,
    ConflictSeverity,
    ConflictType,
    MealRelation,
    MealTimes,
    MedicationRef,
    ScheduleEntry,
    parse_clock,
)
from src.scheduling.config_loader import SchedulerConfig, get_scheduler_config

logger = logging.getLogger("dosekeeper.scheduling.conflicts")

_MEAL_PARTNERS = (MealRelation.with_meal, MealRelation.after_meal)

_SEVERITY: dict[ConflictType, ConflictSeverity] = {
    ConflictType.interaction: ConflictSeverity.high,
    ConflictType.timing_overlap: ConflictSeverity.medium,
    ConflictType.meal_conflict: ConflictSeverity.medium,
}


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _lists_other(a: MedicationRef, b_name: str) -> bool:
    return any(b_name in name for name in a.interacting_names())


def has_interaction(a: MedicationRef | None, b: MedicationRef | None) -> bool:
    """Return True if either medication lists the other as interacting.

    Blank or missing names never interact.
    """
    if a is None or b is None:
        return False
    a_name = a.normalized_name
    b_name = b.normalized_name
    if not a_name or not b_name:
        return False
    return _lists_other(a, b_name) or _lists_other(b, a_name)


def meal_windows(
    meal_times: MealTimes, before_minutes: int, after_minutes: int
) -> list[tuple[int, int]]:
    """Return ``(start, end)`` minute bounds for each well-formed meal anchor."""
    windows = []
    for anchor in meal_times.anchors():
        center = parse_clock(anchor)
        if center is None:
            logger.debug("Skipping malformed meal anchor %r", anchor)
            continue
        windows.append((center - before_minutes, center + after_minutes))
    return windows


def _in_any_window(minutes: int, windows: list[tuple[int, int]]) -> bool:
    return any(start <= minutes <= end for start, end in windows)


def _timing_conflict_type(
    a: ScheduleEntry,
    b: ScheduleEntry,
    meal_times: MealTimes,
    config: SchedulerConfig,
) -> ConflictType | None:
    """Classify the timing conflict between two schedules, if any."""
    a_min = a.minutes
    b_min = b.minutes
    if a_min is None or b_min is None:
        return None

    diff = abs(a_min - b_min)
    if diff <= config.proximity_minutes:
        return ConflictType.timing_overlap

    windows = meal_windows(
        meal_times, config.meal_window.before_minutes, config.meal_window.after_minutes
    )
    near = diff <= config.empty_stomach_proximity_minutes
    if a.meal_relation is MealRelation.empty_stomach and near and _in_any_window(b_min, windows):
        return ConflictType.meal_conflict
    if b.meal_relation is MealRelation.empty_stomach and near and _in_any_window(a_min, windows):
        return ConflictType.meal_conflict

    if diff <= config.before_meal_minutes:
        if a.meal_relation is MealRelation.before_meal and b.meal_relation in _MEAL_PARTNERS:
            return ConflictType.meal_conflict
        if b.meal_relation is MealRelation.before_meal and a.meal_relation in _MEAL_PARTNERS:
            return ConflictType.meal_conflict

    return None


def has_timing_conflict(
    a: ScheduleEntry,
    b: ScheduleEntry,
    meal_times: MealTimes | Mapping[str, Any] | None = None,
    config: SchedulerConfig | None = None,
) -> bool:
    """Return True if the two schedules collide on timing or meal relation."""
    cfg = config or get_scheduler_config()
    meals = cfg.meal_times.with_overrides(meal_times)
    return _timing_conflict_type(a, b, meals, cfg) is not None


def _classify(
    candidate: ScheduleEntry,
    other: ScheduleEntry,
    meals: MealTimes,
    cfg: SchedulerConfig,
) -> ConflictType | None:
    if has_interaction(candidate.medication, other.medication):
        return ConflictType.interaction
    return _timing_conflict_type(candidate, other, meals, cfg)


def _describe(kind: ConflictType, candidate: ScheduleEntry, other: ScheduleEntry) -> str:
    if kind is ConflictType.interaction:
        return f"Possible interaction between {candidate.label} and {other.label}"
    if kind is ConflictType.timing_overlap:
        return f"{candidate.label} is scheduled too close to {other.label}"
    return (
        f"Meal instructions for {candidate.label} ({candidate.meal_relation.value}) "
        f"clash with {other.label} ({other.meal_relation.value})"
    )


def _coerce(schedule: Any) -> ScheduleEntry:
    if isinstance(schedule, ScheduleEntry):
        return schedule
    return ScheduleEntry.from_dict(schedule)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_schedule_conflicts(
    candidate: ScheduleEntry | Mapping[str, Any],
    existing: Sequence[Any],
    meal_times: MealTimes | Mapping[str, Any] | None = None,
    config: SchedulerConfig | None = None,
) -> list[Any]:
    """Return the subset of ``existing`` that conflicts with ``candidate``.

    Args:
        candidate:  The schedule about to be saved.
        existing:   All schedules already on file.
        meal_times: Partial meal anchor overrides (breakfast/lunch/dinner).
        config:     SchedulerConfig (loaded from singleton if None).

    Returns:
        The conflicting elements of ``existing`` themselves (dicts stay
        the caller's dicts), in input order.
    """
    cfg = config or get_scheduler_config()
    meals = cfg.meal_times.with_overrides(meal_times)
    new = _coerce(candidate)
    return [raw for raw in existing if _classify(new, _coerce(raw), meals, cfg) is not None]


def find_schedule_conflicts(
    candidate: ScheduleEntry | Mapping[str, Any],
    existing: Sequence[Any],
    meal_times: MealTimes | Mapping[str, Any] | None = None,
    config: SchedulerConfig | None = None,
) -> list[ConflictFinding]:
    """Like ``detect_schedule_conflicts`` but returns typed findings.

    The first matching rule decides the finding type, in the order
    interaction, timing overlap, meal conflict.
    """
    cfg = config or get_scheduler_config()
    meals = cfg.meal_times.with_overrides(meal_times)
    new = _coerce(candidate)

    findings: list[ConflictFinding] = []
    for raw in existing:
        other = _coerce(raw)
        kind = _classify(new, other, meals, cfg)
        if kind is None:
            continue
        logger.debug("Conflict (%s): %s vs %s", kind.value, new.label, other.label)
        findings.append(
            ConflictFinding(
                type=kind,
                severity=_SEVERITY[kind],
                description=_describe(kind, new, other),
                related_schedule=other,
            )
        )

    if findings:
        logger.info(
            "Schedule %s conflicts with %d of %d existing schedules",
            new.label, len(findings), len(existing),
        )
    return findings
