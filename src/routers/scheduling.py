"""Schedule conflict checks and dosing-time suggestions."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from src.dependencies import Scheduler
from src.models.scheduling import (
    ConflictCheckRequest,
    ConflictCheckResponse,
    ConflictFindingRead,
    DosingTimesRequest,
    DosingTimesResponse,
    ScheduleRead,
)

router = APIRouter(prefix="/schedules", tags=["schedules"])
logger = logging.getLogger("dosekeeper.schedules")


@router.post("/conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(body: ConflictCheckRequest, scheduler: Scheduler) -> Any:
    """Check a schedule about to be saved against the schedules already on file."""
    overrides = body.meal_times.to_overrides() if body.meal_times else None
    findings = scheduler.find_schedule_conflicts(body.schedule, body.existing, overrides)
    logger.info(
        "Conflict check: %d existing schedule(s), %d conflict(s)", len(body.existing), len(findings)
    )
    return ConflictCheckResponse(
        has_conflicts=bool(findings),
        conflicts=[ScheduleRead.from_entry(f.related_schedule) for f in findings],
        findings=[ConflictFindingRead.from_finding(f) for f in findings],
    )


@router.post("/dosing-times", response_model=DosingTimesResponse)
async def suggest_dosing_times(body: DosingTimesRequest, scheduler: Scheduler) -> Any:
    overrides = body.meal_times.to_overrides() if body.meal_times else None
    times = scheduler.optimize_dosing_times(body.frequency, overrides)
    meals = scheduler.config.meal_times.with_overrides(overrides)
    return DosingTimesResponse.build(body.frequency, times, meals)
