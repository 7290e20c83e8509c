"""Shared fixtures for scheduler tests."""

from __future__ import annotations

import pytest

from src.scheduling.base import MealRelation, MedicationRef, ScheduleEntry
from src.scheduling.config_loader import SchedulerConfig, load_scheduler_config


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scheduler_config() -> SchedulerConfig:
    """Load the bundled scheduler config for tests."""
    return load_scheduler_config()


# ---------------------------------------------------------------------------
# Schedule builders
# ---------------------------------------------------------------------------


def make_schedule(
    time: str | None,
    name: str = "MedA",
    meal_relation: MealRelation = MealRelation.any,
    interactions: list[str] | None = None,
) -> ScheduleEntry:
    return ScheduleEntry(
        time=time,
        medication=MedicationRef(name=name, interactions=interactions or []),
        meal_relation=meal_relation,
    )


@pytest.fixture
def warfarin_morning() -> ScheduleEntry:
    """Warfarin at 09:00, listing aspirin as an interaction."""
    return make_schedule("09:00", name="Warfarin", interactions=["Aspirin"])


@pytest.fixture
def aspirin_late_morning() -> ScheduleEntry:
    return make_schedule("11:00", name="Aspirin")
