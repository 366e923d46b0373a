"""Unit tests for data models."""
from datetime import date, datetime

import pytest
from pydantic import ValidationError

from workout_planner_api.models import (
    ExerciseSearchFilters,
    NewExercise,
    PlanDayRow,
    Profile,
    ProfileUpdate,
    WorkoutRow,
)


class TestProfile:
    """Test cases for the profile model."""

    def test_accepts_camel_case_keys(self):
        profile = Profile.model_validate(
            {
                "userId": 3,
                "availableDays": ["Monday", " wednesday "],
                "preferredStyles": "Strength",
                "workoutDuration": 45,
                "environment": "commercial_gym",
            }
        )

        assert profile.user_id == 3
        assert profile.available_days == ["monday", "wednesday"]
        assert profile.preferred_styles == ["strength"]
        assert profile.missing_required_fields() == []

    def test_null_columns_get_defaults(self):
        profile = Profile.model_validate(
            {"user_id": 1, "goals": None, "include_warmup": None, "include_cooldown": False, "intensity_level": 2}
        )

        assert profile.goals == []
        assert profile.include_warmup is True
        assert profile.include_cooldown is False
        assert profile.intensity_level == "2"

    def test_missing_required_fields_use_external_names(self):
        profile = Profile(user_id=1, available_days=["monday"])

        assert profile.missing_required_fields() == ["preferredStyles", "workoutDuration", "environment"]

    def test_zero_duration_counts_as_missing(self):
        profile = Profile(
            user_id=1,
            available_days=["monday"],
            preferred_styles=["yoga"],
            workout_duration=0,
            environment="home_gym",
        )

        assert profile.missing_required_fields() == ["workoutDuration"]


    def test_merged_with_applies_only_set_fields(self):
        profile = Profile(user_id=1, available_days=["monday"], workout_duration=30, environment="home_gym")
        update = ProfileUpdate.model_validate({"workoutStyles": ["Yoga"], "workoutDuration": 45})

        merged = profile.merged_with(update)

        assert merged.preferred_styles == ["yoga"]
        assert merged.workout_duration == 45
        assert merged.available_days == ["monday"]
        assert merged.environment == "home_gym"
        assert profile.workout_duration == 30

    def test_merged_with_nothing_is_unchanged(self):
        profile = Profile(user_id=1)

        assert profile.merged_with(None) is profile


class TestProfileUpdate:
    def test_workout_styles_alias(self):
        update = ProfileUpdate.model_validate({"workoutStyles": ["hiit"], "workoutDuration": 30})

        assert update.preferred_styles == ["hiit"]
        assert update.workout_duration == 30

    def test_environment_list_takes_first_value(self):
        assert ProfileUpdate.model_validate({"environment": ["home_gym"]}).environment == "home_gym"
        assert ProfileUpdate.model_validate({"environment": []}).environment is None

    def test_unset_fields_stay_none(self):
        update = ProfileUpdate.model_validate({"age": 30})

        assert update.model_dump(exclude_none=True) == {"age": 30}


class TestExerciseSearchFilters:
    @pytest.mark.parametrize(
        "equipment, expected",
        [
            (["bodyweight_only"], True),
            (["Bodyweight"], True),
            (["bodyweight", "dumbbells"], False),
            ([], False),
        ],
    )
    def test_bodyweight_only(self, equipment, expected):
        assert ExerciseSearchFilters(equipment=equipment).is_bodyweight_only is expected

    def test_string_filters_become_lists(self):
        filters = ExerciseSearchFilters.model_validate({"muscleGroups": "chest", "difficulty": None})

        assert filters.muscle_groups == ["chest"]
        assert filters.difficulty == []

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            ExerciseSearchFilters(limit=0)


class TestNewExercise:
    def test_instruction_steps_are_joined(self):
        exercise = NewExercise.model_validate(
            {"name": "  Bear Crawl ", "muscleGroups": "core", "instructions": ["Start on all fours", "Crawl forward"]}
        )

        row = exercise.to_row()
        assert row["name"] == "Bear Crawl"
        assert row["muscle_groups"] == ["core"]
        assert row["instructions"] == "Start on all fours\nCrawl forward"

    def test_name_is_required(self):
        with pytest.raises(ValidationError):
            NewExercise(name="")


class TestRowModels:
    def test_dates_are_normalised_to_iso_strings(self):
        plan_day = PlanDayRow(id=1, workout_id=2, date=datetime(2025, 1, 8, 9, 30))
        workout = WorkoutRow(id=2, user_id=1, name="Plan", start_date=date(2025, 1, 7), end_date="2025-01-13")

        assert plan_day.date == "2025-01-08"
        assert workout.start_date == "2025-01-07"
        assert workout.end_date == "2025-01-13"

    def test_null_children_become_empty_lists(self):
        workout = WorkoutRow.model_validate(
            {
                "id": 2,
                "user_id": 1,
                "name": "Plan",
                "start_date": "2025-01-07",
                "end_date": "2025-01-13",
                "plan_days": [{"id": 1, "workout_id": 2, "date": "2025-01-08", "blocks": None}],
            }
        )

        assert workout.plan_days[0].blocks == []
