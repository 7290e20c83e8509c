"""Dosekeeper smart medication scheduler.

Stateless helpers consumed by the schedule registration flow before a new
or edited schedule is committed.

Core modules:
    base              — Schedule / medication data models and clock helpers
    config_loader     — Load/validate/hot-reload scheduler_config.yaml
    conflict_detector — Interaction and timing conflict detection
    dosing_times      — Frequency → default dosing times
    scheduler         — SmartMedicationScheduler facade
"""

from src.scheduling.base import (
    ConflictFinding,
    ConflictSeverity,
    ConflictType,
    MealRelation,
    MealTimes,
    MedicationRef,
    ScheduleEntry,
)
from src.scheduling.config_loader import SchedulerConfig, get_scheduler_config
from src.scheduling.conflict_detector import (
    detect_schedule_conflicts,
    find_schedule_conflicts,
)
from src.scheduling.dosing_times import optimize_dosing_times
from src.scheduling.scheduler import SmartMedicationScheduler

__all__ = [
    "ConflictFinding",
    "ConflictSeverity",
    "ConflictType",
    "MealRelation",
    "MealTimes",
    "MedicationRef",
    "ScheduleEntry",
    "SchedulerConfig",
    "get_scheduler_config",
    "detect_schedule_conflicts",
    "find_schedule_conflicts",
    "optimize_dosing_times",
    "SmartMedicationScheduler",
]
