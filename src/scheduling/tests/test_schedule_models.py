"""Tests for schedule data models and clock helpers."""

from __future__ import annotations

import pytest

from src.scheduling.base import (
    MealRelation,
    MealTimes,
    ScheduleEntry,
    format_clock,
    parse_clock,
)


class TestClock:
    @pytest.mark.parametrize(
        "value, expected",
        [("00:00", 0), ("7:05", 425), ("23:59", 1439), (" 12:30 ", 750)],
    )
    def test_parse_valid(self, value: str, expected: int) -> None:
        assert parse_clock(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "12:60", "123:00", "12:5", "noon", 1200, None])
    def test_parse_invalid(self, value: object) -> None:
        assert parse_clock(value) is None

    @pytest.mark.parametrize("value", ["24:30", "36:00", "99:59"])
    def test_hours_past_midnight_rejected(self, value: str) -> None:
        assert parse_clock(value) is None

    def test_format(self) -> None:
        assert format_clock(425) == "07:05"
        assert format_clock(0) == "00:00"


class TestMealRelation:
    def test_parse_known(self) -> None:
        assert MealRelation.parse("With_Meal") is MealRelation.with_meal

    @pytest.mark.parametrize("value", [None, "", "after_lunch", 3])
    def test_unknown_defaults_to_any(self, value: object) -> None:
        assert MealRelation.parse(value) is MealRelation.any


class TestScheduleEntryFromDict:
    def test_full_payload(self) -> None:
        entry = ScheduleEntry.from_dict(
            {
                "id": 4,
                "medicationId": 9,
                "time": "08:00",
                "mealRelation": "before_meal",
                "medication": {
                    "name": "Metformin",
                    "interactions": ["Alcohol"],
                    "enrichedData": {"interactions": [{"medications": ["Contrast dye"]}]},
                },
            }
        )
        assert entry.id == 4
        assert entry.medication_id == 9
        assert entry.minutes == 480
        assert entry.meal_relation is MealRelation.before_meal
        assert entry.medication is not None
        assert entry.medication.interacting_names() == ["alcohol", "contrast dye"]

    def test_minimal_payload(self) -> None:
        entry = ScheduleEntry.from_dict({})
        assert entry.time is None
        assert entry.minutes is None
        assert entry.medication is None
        assert entry.meal_relation is MealRelation.any

    def test_enriched_data_not_a_mapping(self) -> None:
        entry = ScheduleEntry.from_dict({"medication": {"name": "X", "enrichedData": "n/a"}})
        assert entry.medication is not None
        assert entry.medication.enriched_interactions == []

    @pytest.mark.parametrize("medication", ["Aspirin", 42, ["Aspirin"], None])
    def test_medication_not_a_mapping(self, medication: object) -> None:
        assert ScheduleEntry.from_dict({"time": "08:00", "medication": medication}).medication is None

    @pytest.mark.parametrize(
        "medication",
        [
            {"name": "X", "interactions": 5},
            {"name": "X", "interactions": "Aspirin"},
            {"name": "X", "enrichedData": {"interactions": 7}},
            {"name": "X", "enrichedData": {"interactions": [{"medications": 7}]}},
            {"name": "X", "enrichedData": {"interactions": [{"medications": "Aspirin"}]}},
        ],
    )
    def test_malformed_interaction_lists_read_as_empty(self, medication: dict) -> None:
        entry = ScheduleEntry.from_dict({"medication": medication})
        assert entry.medication is not None
        assert entry.medication.interacting_names() == []

    @pytest.mark.parametrize("payload", ["08:00", 7, None, ["08:00"]])
    def test_payload_not_a_mapping(self, payload: object) -> None:
        assert ScheduleEntry.from_dict(payload) == ScheduleEntry()

    def test_wrong_shaped_scalars_dropped(self) -> None:
        entry = ScheduleEntry.from_dict({"time": 800, "id": {"x": 1}, "medicationId": True})
        assert entry.time is None
        assert entry.id is None
        assert entry.medication_id is None


class TestMealTimes:
    def test_partial_override(self) -> None:
        meals = MealTimes().with_overrides({"lunch": "12:00", "dinner": None})
        assert meals == MealTimes(breakfast="07:00", lunch="12:00", dinner="19:00")

    def test_no_override_copies(self) -> None:
        base = MealTimes()
        copy = base.with_overrides(None)
        assert copy == base
        assert copy is not base
