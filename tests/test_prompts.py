"""Tests for prompt compilation."""
import json

import pytest

from fakes import make_profile
from workout_planner_api.generation.prompts import (
    BODYWEIGHT_ONLY_EQUIPMENT,
    COMMERCIAL_GYM_EQUIPMENT,
    DEFAULT_USER_MESSAGE,
    GENERIC_EQUIPMENT,
    SEARCH_REQUEST_MARKER,
    STYLE_GUIDANCE,
    build_chunk_user_message,
    build_day_count_correction,
    build_duration_requirements,
    build_style_guidance,
    build_system_prompt,
    build_user_message,
    format_previous_workout,
    format_search_results,
    get_equipment_description,
    minimum_block_count,
    plan_chunks,
)
from workout_planner_api.models import ExerciseMetadata, ExerciseSearchFilters, PlanDayRow


class TestEquipmentDescription:
    def test_commercial_gym(self):
        assert get_equipment_description(make_profile(environment="commercial_gym")) == COMMERCIAL_GYM_EQUIPMENT

    def test_bodyweight_only(self):
        assert get_equipment_description(make_profile(environment="bodyweight_only")) == BODYWEIGHT_ONLY_EQUIPMENT

    def test_home_gym_lists_equipment(self):
        profile = make_profile(
            environment="home_gym",
            equipment=["dumbbells", "resistance_bands"],
            other_equipment="pull-up bar",
        )
        text = get_equipment_description(profile)

        assert "dumbbells, resistance bands, pull-up bar" in text
        assert "ONLY" in text

    def test_home_gym_without_equipment(self):
        text = get_equipment_description(make_profile(environment="home_gym", equipment=[]))
        assert "treat as bodyweight" in text

    def test_unknown_environment(self):
        assert get_equipment_description(make_profile(environment="park")) == GENERIC_EQUIPMENT


class TestStyleGuidance:
    def test_lists_every_style_and_marks_preferred(self):
        text = build_style_guidance(["HIIT", "yoga"])

        for guidance in STYLE_GUIDANCE.values():
            assert guidance in text
        assert "preferred styles are: hiit, yoga" in text

    def test_no_preferred_styles(self):
        assert "preferred styles" not in build_style_guidance([])


class TestDurationRequirements:
    @pytest.mark.parametrize(
        "duration,expected",
        [(20, 3), (30, 4), (45, 6), (60, 7)],
    )
    def test_minimum_block_count(self, duration, expected):
        assert minimum_block_count(duration) == expected

    def test_without_warmup_and_cooldown(self):
        assert minimum_block_count(45, include_warmup=False, include_cooldown=False) == 4

    def test_window_and_bookends(self):
        text = build_duration_requirements(45, tolerance=5)

        assert "between 40 and 50 minutes" in text
        assert "at least 6 blocks" in text
        assert '"warmup" block' in text
        assert '"cooldown" block' in text

    def test_excluded_bookends(self):
        text = build_duration_requirements(30, include_warmup=False, include_cooldown=False)

        assert "Do NOT include a warmup block" in text
        assert "Do NOT include a cooldown block" in text


class TestSystemPrompt:
    def test_weekly_prompt_has_all_sections(self):
        prompt = build_system_prompt(make_profile(), "weekly")

        assert "USER PROFILE:" in prompt
        assert "exactly 3 days" in prompt
        assert SEARCH_REQUEST_MARKER in prompt
        assert '"workoutPlan"' in prompt
        assert "DURATION REQUIREMENTS" in prompt

    def test_profile_without_days_plans_a_full_week(self):
        prompt = build_system_prompt(make_profile(available_days=[]), "weekly")
        assert "exactly 7 days" in prompt

    def test_chunk_prompt_names_its_window(self):
        window = plan_chunks(3, 2)[1]
        prompt = build_system_prompt(make_profile(), "chunk", chunk=window)

        assert "part 2 of 2" in prompt
        assert "exactly 1 day(s), numbered 3 to 3" in prompt

    def test_chunk_context_requires_window(self):
        with pytest.raises(ValueError):
            build_system_prompt(make_profile(), "chunk")

    def test_unknown_context(self):
        with pytest.raises(ValueError):
            build_system_prompt(make_profile(), "monthly")

    def test_daily_prompt_with_rest_day_and_previous_workout(self):
        prompt = build_system_prompt(
            make_profile(),
            "daily",
            day_number=2,
            is_rest_day=True,
            previous_workout='{"day": 2}',
            styles=["yoga"],
        )

        assert "day 2 of the user's current plan" in prompt
        assert "active-recovery" in prompt
        assert "PREVIOUS VERSION OF THIS DAY" in prompt
        assert "Preferred styles: yoga" in prompt
        assert '"workoutPlan"' not in prompt


class TestUserMessages:
    def test_default_message(self):
        assert build_user_message(None) == DEFAULT_USER_MESSAGE
        assert build_user_message("   ") == DEFAULT_USER_MESSAGE

    def test_feedback_is_quoted(self):
        message = build_user_message("  more core work ")
        assert message.startswith('SPECIFIC USER FEEDBACK: "more core work"')

    def test_chunk_messages(self):
        first, second = plan_chunks(4, 2)

        assert build_chunk_user_message(first, "less running").startswith("SPECIFIC USER FEEDBACK")
        assert "days 3 to 4" in build_chunk_user_message(second, "less running")

    def test_day_count_correction(self):
        assert "generated 2 days instead of the required 3" in build_day_count_correction(2, 3)

    def test_day_count_correction_for_extra_days(self):
        message = build_day_count_correction(5, 3)

        assert "generated 5 days instead of the required 3" in message
        assert "exactly 3 days" in message


class TestPlanChunks:
    def test_windows(self):
        windows = plan_chunks(5, 2)

        assert [(w.start_day, w.end_day) for w in windows] == [(1, 2), (3, 4), (5, 5)]
        assert [w.day_count for w in windows] == [2, 2, 1]
        assert all(w.total_chunks == 3 for w in windows)


class TestFollowUpFormatting:
    def test_previous_workout_summary(self):
        plan_day = PlanDayRow.model_validate(
            {
                "id": 9,
                "workout_id": 1,
                "date": "2025-01-08",
                "name": "Leg Day",
                "day_number": 1,
                "blocks": [
                    {
                        "id": 1,
                        "plan_day_id": 9,
                        "exercises": [
                            {
                                "id": 5,
                                "workout_block_id": 1,
                                "exercise_id": 3,
                                "sets": 4,
                                "reps": 8,
                                "exercise": {"id": 3, "name": "Barbell Back Squat"},
                            }
                        ],
                    }
                ],
            }
        )
        summary = json.loads(format_previous_workout(plan_day))

        assert summary["name"] == "Leg Day"
        assert summary["exercises"][0]["exerciseName"] == "Barbell Back Squat"
        assert summary["exercises"][0]["sets"] == 4

    def test_search_results_in_one_message(self):
        results = [
            (
                ExerciseSearchFilters(muscle_groups=["chest"]),
                [ExerciseMetadata(name="Push-Up", muscle_groups=["chest"], difficulty="beginner")],
            ),
            (ExerciseSearchFilters(equipment=["kettlebells"]), []),
        ]
        message = format_search_results(results)

        assert "### Search 1" in message
        assert "- Push-Up (equipment: bodyweight; muscles: chest; difficulty: beginner)" in message
        assert "### Search 2" in message
        assert "No exercises matched this search." in message
        assert "valid JSON only" in message
