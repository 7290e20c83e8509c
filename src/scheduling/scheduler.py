"""SmartMedicationScheduler — facade used by the schedule registration flow."""

from __future__ import annotations

from typing import Any, Mapping

from src.scheduling.base import ConflictFinding, MealTimes, ScheduleEntry
from src.scheduling.config_loader import SchedulerConfig, get_scheduler_config
from src.scheduling.conflict_detector import (
    detect_schedule_conflicts,
    find_schedule_conflicts,
)
from src.scheduling.dosing_times import optimize_dosing_times


class SmartMedicationScheduler:
    """Conflict detection and dosing-time suggestions bound to one config.

    Stateless apart from the config it was built with, so a single instance
    can be shared across requests.

    Usage::

        scheduler = SmartMedicationScheduler()
        clashes = scheduler.detect_schedule_conflicts(new_schedule, existing)
        defaults = scheduler.optimize_dosing_times("twice daily")
    """

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        self._config = config or get_scheduler_config()

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    def detect_schedule_conflicts(
        self,
        candidate: ScheduleEntry | Mapping[str, Any],
        existing: list,
        meal_times: MealTimes | Mapping[str, Any] | None = None,
    ) -> list[Any]:
        return detect_schedule_conflicts(candidate, existing, meal_times, self._config)

    def find_schedule_conflicts(
        self,
        candidate: ScheduleEntry | Mapping[str, Any],
        existing: list,
        meal_times: MealTimes | Mapping[str, Any] | None = None,
    ) -> list[ConflictFinding]:
        return find_schedule_conflicts(candidate, existing, meal_times, self._config)

    def optimize_dosing_times(
        self,
        frequency: str,
        meal_times: MealTimes | Mapping[str, Any] | None = None,
    ) -> list[str]:
        return optimize_dosing_times(frequency, meal_times, self._config)
