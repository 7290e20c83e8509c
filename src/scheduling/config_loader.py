"""Load, validate, and hot-reload the Dosekeeper scheduler configuration.

The config lives in ``scheduler_config.yaml`` alongside this module.  It is
loaded once on first use and cached.  Call ``reload_scheduler_config()`` to
re-read from disk after an update — no restart required.

Usage::

    from src.scheduling.config_loader import get_scheduler_config

    config = get_scheduler_config()
    config.proximity_minutes          # 30
    config.meal_times.breakfast       # "07:00"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.scheduling.base import MealTimes, parse_clock

logger = logging.getLogger("dosekeeper.scheduling.config")

_CONFIG_PATH = Path(__file__).parent / "scheduler_config.yaml"


# ---------------------------------------------------------------------------
# Typed config
# ---------------------------------------------------------------------------


@dataclass
class MealWindowConfig:
    """Span of a meal window around its anchor, in minutes."""

    before_minutes: int = 120
    after_minutes: int = 60


@dataclass
class SchedulerConfig:
    """Complete, validated scheduler configuration.

    Attributes:
        version:                         Config schema version string.
        meal_times:                      Default meal anchors.
        bedtime:                         Last dose of a four-times-daily regimen.
        midpoint_fallback:               Returned when a midpoint can't be computed.
        proximity_minutes:               Absolute proximity conflict threshold.
        empty_stomach_proximity_minutes: Proximity for the empty-stomach rule.
        before_meal_minutes:             Proximity for the before-meal rule.
        meal_window:                     Window span around each meal anchor.
    """

    version: str = "1.0"
    meal_times: MealTimes = field(default_factory=MealTimes)
    bedtime: str = "21:00"
    midpoint_fallback: str = "12:00"
    proximity_minutes: int = 30
    empty_stomach_proximity_minutes: int = 30
    before_meal_minutes: int = 60
    meal_window: MealWindowConfig = field(default_factory=MealWindowConfig)
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when scheduler_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError:     If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Scheduler config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> SchedulerConfig:
    """Validate the raw YAML dict and construct a SchedulerConfig.

    Missing sections fall back to the defaults; present values must be
    well-formed.  Every problem is collected before raising.

    Raises:
        ConfigValidationError: If any value is invalid.
    """
    errors: list[str] = []

    def _clock(section: dict, key: str, default: str, where: str) -> str:
        value = section.get(key, default)
        if parse_clock(value) is None:
            errors.append(f"{where}.{key} must be an HH:MM time, got {value!r}")
            return default
        return str(value)

    def _minutes(section: dict, key: str, default: int, where: str) -> int:
        value = section.get(key, default)
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be an integer, got {value!r}")
            return default
        if minutes < 0:
            errors.append(f"{where}.{key} = {minutes} must not be negative")
        return minutes

    version = str(raw.get("version", "1.0"))

    # ── Meal anchors ──
    mt_raw = raw.get("meal_times") or {}
    defaults = MealTimes()
    meal_times = MealTimes(
        breakfast=_clock(mt_raw, "breakfast", defaults.breakfast, "meal_times"),
        lunch=_clock(mt_raw, "lunch", defaults.lunch, "meal_times"),
        dinner=_clock(mt_raw, "dinner", defaults.dinner, "meal_times"),
    )

    # ── Dosing ──
    dosing_raw = raw.get("dosing") or {}
    bedtime = _clock(dosing_raw, "bedtime", "21:00", "dosing")
    midpoint_fallback = _clock(dosing_raw, "midpoint_fallback", "12:00", "dosing")

    # ── Conflict thresholds ──
    conf_raw = raw.get("conflicts") or {}
    proximity = _minutes(conf_raw, "proximity_minutes", 30, "conflicts")
    empty_stomach = _minutes(conf_raw, "empty_stomach_proximity_minutes", 30, "conflicts")
    before_meal = _minutes(conf_raw, "before_meal_minutes", 60, "conflicts")

    # ── Meal window ──
    mw_raw = raw.get("meal_window") or {}
    meal_window = MealWindowConfig(
        before_minutes=_minutes(mw_raw, "before_minutes", 120, "meal_window"),
        after_minutes=_minutes(mw_raw, "after_minutes", 60, "meal_window"),
    )

    if errors:
        raise ConfigValidationError(
            f"scheduler_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SchedulerConfig(
        version=version,
        meal_times=meal_times,
        bedtime=bedtime,
        midpoint_fallback=midpoint_fallback,
        proximity_minutes=proximity,
        empty_stomach_proximity_minutes=empty_stomach,
        before_meal_minutes=before_meal,
        meal_window=meal_window,
        _raw=raw,
    )


def load_scheduler_config(path: Path | None = None) -> SchedulerConfig:
    """Load and validate the scheduler config from disk.

    Args:
        path: Override path to YAML. Uses the bundled scheduler_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded scheduler config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SchedulerConfig | None = None
_config_lock = threading.Lock()


def get_scheduler_config() -> SchedulerConfig:
    """Return the global SchedulerConfig, loading it on first call. Thread-safe."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_scheduler_config()
    return _config


def reload_scheduler_config(path: Path | None = None) -> SchedulerConfig:
    """Reload the scheduler config and replace the global singleton.

    If validation fails, the old config is retained and the error re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_scheduler_config(path)
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded scheduler config: %s → %s", old_version, new_config.version)
    return new_config


def config_from_dict(raw: dict[str, Any]) -> SchedulerConfig:
    """Build a validated config from an in-memory mapping (tests, admin tools)."""
    return _validate_and_build(raw)
