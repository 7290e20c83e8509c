"""Pydantic models for schedule conflict checks and dosing-time suggestions.

Schedules are accepted as loose objects because clients send both the
``time`` and legacy ``scheduledTime`` shapes; ``ScheduleEntry.from_dict``
normalizes them.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from src.models.base import DosekeeperBase
from src.scheduling.base import (
    ConflictFinding,
    ConflictSeverity,
    ConflictType,
    MealRelation,
    MealTimes,
    ScheduleEntry,
)


class MealTimesIn(DosekeeperBase):
    """Partial meal anchor overrides; omitted anchors use the configured defaults."""

    breakfast: str | None = None
    lunch: str | None = None
    dinner: str | None = None

    def to_overrides(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class ConflictCheckRequest(DosekeeperBase):
    schedule: dict[str, Any]
    existing: list[dict[str, Any]] = Field(default_factory=list)
    meal_times: MealTimesIn | None = None


class ScheduleRead(DosekeeperBase):
    id: str | int | None = None
    medication_id: str | int | None = None
    medication_name: str | None = None
    time: str | None = None
    meal_relation: MealRelation = MealRelation.any

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> ScheduleRead:
        return cls(
            id=entry.id,
            medication_id=entry.medication_id,
            medication_name=entry.medication.name if entry.medication else None,
            time=entry.time,
            meal_relation=entry.meal_relation,
        )


class ConflictFindingRead(DosekeeperBase):
    type: ConflictType
    severity: ConflictSeverity
    description: str
    schedule: ScheduleRead

    @classmethod
    def from_finding(cls, finding: ConflictFinding) -> ConflictFindingRead:
        return cls(
            type=finding.type,
            severity=finding.severity,
            description=finding.description,
            schedule=ScheduleRead.from_entry(finding.related_schedule),
        )


class ConflictCheckResponse(DosekeeperBase):
    has_conflicts: bool
    conflicts: list[ScheduleRead]
    findings: list[ConflictFindingRead]


class DosingTimesRequest(DosekeeperBase):
    frequency: str = Field(default="", max_length=200)
    meal_times: MealTimesIn | None = None


class DosingTimesResponse(DosekeeperBase):
    frequency: str
    times: list[str]
    meal_times: dict[str, str]

    @classmethod
    def build(cls, frequency: str, times: list[str], meals: MealTimes) -> DosingTimesResponse:
        return cls(
            frequency=frequency,
            times=times,
            meal_times={"breakfast": meals.breakfast, "lunch": meals.lunch, "dinner": meals.dinner},
        )
