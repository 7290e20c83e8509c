"""Dosing-time optimizer.

Maps a free-text frequency descriptor (``"twice daily"``, ``"BID"``,
``"3x/day"``) to a canonical list of ``HH:MM`` times anchored to meals.

Frequency matching is an ordered list of predicates; the first match wins
and anything unrecognized falls back to breakfast + dinner.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from src.scheduling.base import MealTimes, format_clock, parse_clock
from src.scheduling.config_loader import SchedulerConfig, get_scheduler_config

logger = logging.getLogger("dosekeeper.scheduling.dosing")

_SEPARATORS_RE = re.compile(r"[\s\-]+")
_ALL_SEPARATORS_RE = re.compile(r"[\s\-_]+")


def normalize_frequency(frequency: Any) -> str:
    """Lower-case a frequency and collapse whitespace and hyphens to ``_``."""
    if not isinstance(frequency, str):
        return ""
    return _SEPARATORS_RE.sub("_", frequency.strip().lower())


def compact_frequency(frequency: Any) -> str:
    """Lower-case a frequency with every separator removed (``"3 x daily"`` -> ``"3xdaily"``)."""
    if not isinstance(frequency, str):
        return ""
    return _ALL_SEPARATORS_RE.sub("", frequency.strip().lower())


def midpoint(a: str, b: str, fallback: str = "12:00") -> str:
    """Clock-time average of two ``HH:MM`` values, rounded to the minute.

    Half minutes round up.  Returns ``fallback`` if either input is malformed.
    """
    a_min = parse_clock(a)
    b_min = parse_clock(b)
    if a_min is None or b_min is None:
        return fallback
    return format_clock((a_min + b_min + 1) // 2)


# ---------------------------------------------------------------------------
# Frequency patterns
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FrequencyPattern:
    """A named frequency predicate and the meal slots it expands to."""

    name: str
    matches: Callable[[str], bool]
    slots: tuple[str, ...]


def _once(f: str) -> bool:
    return "once" in f or f in ("qd", "od", "daily")


def _twice(f: str) -> bool:
    return "twice" in f or f == "bid" or "2x" in f


def _three(f: str) -> bool:
    return "three" in f or "thrice" in f or f == "tid" or "3x" in f


def _four(f: str) -> bool:
    return "four" in f or f == "qid" or "4x" in f


FREQUENCY_PATTERNS: tuple[FrequencyPattern, ...] = (
    FrequencyPattern("once_daily", _once, ("breakfast",)),
    FrequencyPattern("twice_daily", _twice, ("breakfast", "dinner")),
    FrequencyPattern("three_times_daily", _three, ("breakfast", "lunch", "dinner")),
    FrequencyPattern("four_times_daily", _four, ("breakfast", "mid_morning", "dinner", "bedtime")),
)

_DEFAULT_SLOTS: tuple[str, ...] = ("breakfast", "dinner")


def match_frequency(frequency: Any) -> FrequencyPattern | None:
    """Return the first pattern matching ``frequency``, or None.

    Each pattern is tried against the normalized form and the compact form,
    so spacing inside tokens like ``"3 x"`` does not matter.
    """
    f = normalize_frequency(frequency)
    if not f:
        return None
    compact = compact_frequency(frequency)
    for pattern in FREQUENCY_PATTERNS:
        if pattern.matches(f) or pattern.matches(compact):
            return pattern
    return None


def optimize_dosing_times(
    frequency: Any,
    meal_times: MealTimes | Mapping[str, Any] | None = None,
    config: SchedulerConfig | None = None,
) -> list[str]:
    """Suggest default dosing times for a frequency descriptor.

    Args:
        frequency:  Free-text frequency (e.g. ``"once_daily"``, ``"bid"``).
        meal_times: Partial meal anchor overrides.
        config:     SchedulerConfig (loaded from singleton if None).

    Returns:
        Ordered ``HH:MM`` times.  Unrecognized frequencies yield
        ``[breakfast, dinner]``.
    """
    cfg = config or get_scheduler_config()
    meals = cfg.meal_times.with_overrides(meal_times)

    pattern = match_frequency(frequency)
    if pattern is None:
        logger.debug("Unrecognized frequency %r, using breakfast + dinner", frequency)
        slots = _DEFAULT_SLOTS
    else:
        slots = pattern.slots

    resolved = {
        "breakfast": meals.breakfast,
        "lunch": meals.lunch,
        "dinner": meals.dinner,
        "bedtime": cfg.bedtime,
    }
    times = []
    for slot in slots:
        if slot == "mid_morning":
            times.append(midpoint(meals.breakfast, meals.lunch, cfg.midpoint_fallback))
        else:
            times.append(resolved[slot])
    return times
