"""Canonical data models for the Dosekeeper medication scheduler.

Schedules arrive from the registration flow as loosely-shaped JSON (the
mobile client sends camelCase keys, may omit the meal relation, and may
carry either ``time`` or ``scheduledTime``).  ``ScheduleEntry.from_dict``
normalizes those shapes into the dataclasses below, which are the only
types the conflict detector and dosing-time optimizer consume.

Clock helpers live here too so both consumers agree on what counts as a
valid ``HH:MM`` value.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger("dosekeeper.scheduling")

# One or two digit hour, exactly two digit minute
_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

MINUTES_PER_DAY = 24 * 60


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MealRelation(str, Enum):
    before_meal = "before_meal"
    with_meal = "with_meal"
    after_meal = "after_meal"
    empty_stomach = "empty_stomach"
    any = "any"

    @classmethod
    def parse(cls, value: Any) -> MealRelation:
        """Coerce a raw value to a MealRelation, defaulting to ``any``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                logger.debug("Unknown meal relation %r, treating as 'any'", value)
        return cls.any


class ConflictType(str, Enum):
    interaction = "interaction"
    timing_overlap = "timing_overlap"
    meal_conflict = "meal_conflict"


class ConflictSeverity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


# ---------------------------------------------------------------------------
# Clock helpers
# ---------------------------------------------------------------------------


def parse_clock(value: Any) -> int | None:
    """Parse an ``HH:MM`` string into minutes after midnight.

    Args:
        value: Candidate clock string (e.g. ``"7:05"`` or ``"19:00"``).

    Returns:
        Minutes after midnight, or None when the value is not a valid
        24-hour clock time.  Hours above 23 are rejected rather than rolled
        over to the next day, since conflict checks compare same-day times.
    """
    if not isinstance(value, str):
        return None
    match = _HHMM_RE.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    """Format minutes after midnight as zero-padded ``HH:MM``."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _name_list(value: Any) -> list[str]:
    """Names from a list-shaped field; any other shape reads as no names."""
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v is not None]


def _identifier(value: Any) -> str | int | None:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return value


# ---------------------------------------------------------------------------
# Medication reference
# ---------------------------------------------------------------------------


@dataclass
class InteractionGroup:
    """One enriched interaction record from the medication knowledge source.

    Attributes:
        medications: Names of medications involved in the interaction.
        severity:    Severity label as supplied by the knowledge source.
        description: Free-text explanation, if supplied.
    """

    medications: list[str] = field(default_factory=list)
    severity: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InteractionGroup:
        return cls(
            medications=_name_list(data.get("medications")),
            severity=data.get("severity"),
            description=data.get("description"),
        )


@dataclass
class MedicationRef:
    """The slice of a medication record the interaction heuristic reads.

    Attributes:
        name:                  Display name of the medication.
        interactions:          Plain list of interacting medication names.
        enriched_interactions: Structured interaction groups (``enrichedData``).
    """

    name: str = ""
    interactions: list[str] = field(default_factory=list)
    enriched_interactions: list[InteractionGroup] = field(default_factory=list)

    @property
    def normalized_name(self) -> str:
        return (self.name or "").strip().lower()

    def interacting_names(self) -> list[str]:
        """Every interacting name from both plain and enriched lists, lower-cased."""
        names = [n.lower() for n in self.interactions]
        for group in self.enriched_interactions:
            names.extend(n.lower() for n in group.medications)
        return names

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> MedicationRef | None:
        if not isinstance(data, Mapping) or not data:
            return None
        enriched = data.get("enrichedData") or data.get("enriched_data") or {}
        groups_raw: Any = []
        if isinstance(enriched, Mapping):
            groups_raw = enriched.get("interactions")
        if not isinstance(groups_raw, (list, tuple)):
            groups_raw = []
        return cls(
            name=str(data.get("name") or ""),
            interactions=_name_list(data.get("interactions")),
            enriched_interactions=[
                InteractionGroup.from_dict(g) for g in groups_raw if isinstance(g, Mapping)
            ],
        )


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


@dataclass
class ScheduleEntry:
    """One planned administration of a medication.

    The detector needs no persistent identity; ``id`` and ``medication_id``
    are carried only so callers can match results back to their records.

    Attributes:
        time:          Local clock time ``HH:MM`` (may be malformed).
        medication:    Medication reference, if known.
        meal_relation: Relation of the dose to meals.
        id:            Caller's schedule identifier.
        medication_id: Caller's medication identifier.
    """

    time: str | None = None
    medication: MedicationRef | None = None
    meal_relation: MealRelation = MealRelation.any
    id: str | int | None = None
    medication_id: str | int | None = None

    @property
    def minutes(self) -> int | None:
        """Minutes after midnight, or None when ``time`` is malformed."""
        return parse_clock(self.time)

    @classmethod
    def from_dict(cls, data: Any) -> ScheduleEntry:
        """Build a ScheduleEntry from a client payload.

        Accepts ``time`` or the legacy ``scheduledTime`` key and either
        ``mealRelation`` or ``meal_relation``.  Fields of the wrong shape
        are dropped, and a payload that is not an object yields an empty
        entry.
        """
        if not isinstance(data, Mapping):
            return cls()
        raw_time = data.get("time") or data.get("scheduledTime") or data.get("scheduled_time")
        relation = data.get("mealRelation", data.get("meal_relation"))
        return cls(
            time=raw_time if isinstance(raw_time, str) else None,
            medication=MedicationRef.from_dict(data.get("medication")),
            meal_relation=MealRelation.parse(relation),
            id=_identifier(data.get("id")),
            medication_id=_identifier(data.get("medicationId", data.get("medication_id"))),
        )

    @property
    def label(self) -> str:
        name = self.medication.name if self.medication and self.medication.name else "medication"
        return f"{name} at {self.time or '?'}"


@dataclass
class MealTimes:
    """Meal anchors used for window checks and dosing-time defaults."""

    breakfast: str = "07:00"
    lunch: str = "13:00"
    dinner: str = "19:00"

    def with_overrides(self, overrides: Mapping[str, Any] | MealTimes | None) -> MealTimes:
        """Return a copy with any supplied anchors replaced.

        Keys that are absent or None keep the current anchor.
        """
        if overrides is None:
            return MealTimes(self.breakfast, self.lunch, self.dinner)
        if isinstance(overrides, MealTimes):
            return MealTimes(overrides.breakfast, overrides.lunch, overrides.dinner)
        return MealTimes(
            breakfast=overrides.get("breakfast") or self.breakfast,
            lunch=overrides.get("lunch") or self.lunch,
            dinner=overrides.get("dinner") or self.dinner,
        )

    def anchors(self) -> list[str]:
        return [self.breakfast, self.lunch, self.dinner]


@dataclass
class ConflictFinding:
    """A conflict between a candidate schedule and one existing schedule.

    Severity and description are informative only; the detector's contract
    is the per-pair conflict decision.
    """

    type: ConflictType
    severity: ConflictSeverity
    description: str
    related_schedule: ScheduleEntry
