"""Tests for the background job runner and retry classification."""
import pytest

from fakes import as_json, day, plan_document
from workout_planner_api.errors import (
    ActiveWorkoutConflictError,
    GenerationFailedError,
    GenerationParseError,
    ProfileIncompleteError,
    StoreError,
)
from workout_planner_api.jobs import WorkoutJobPayload, process_job, should_retry_job


class TestShouldRetryJob:
    @pytest.mark.parametrize(
        "error",
        [
            ProfileIncompleteError(["environment"]),
            GenerationParseError("bad json"),
            ActiveWorkoutConflictError(1),
            Exception("Error code: 429 - rate limit exceeded"),
            Exception("401 Unauthorized"),
            Exception("Invalid API key provided"),
            ValueError("plan_day_id is required"),
        ],
    )
    def test_not_retried(self, error):
        assert should_retry_job(error) is False

    @pytest.mark.parametrize(
        "error",
        [
            Exception("503 Service Unavailable"),
            Exception("Request timed out"),
            Exception("Overloaded"),
            StoreError("connection reset", retriable=True),
        ],
    )
    def test_retried(self, error):
        assert should_retry_job(error) is True

    def test_store_error_classification(self):
        assert should_retry_job(StoreError("constraint violated", retriable=False)) is False

    def test_generation_failure_follows_its_cause(self):
        transient = GenerationFailedError("Workout generation failed")
        transient.__cause__ = Exception("502 Bad Gateway")
        parse = GenerationFailedError("Workout generation failed")
        parse.__cause__ = GenerationParseError("bad json")

        assert should_retry_job(transient) is True
        assert should_retry_job(parse) is False


@pytest.mark.asyncio
async def test_generation_job(service, chat_model):
    chat_model.queue(as_json(plan_document([1, 2])), as_json(plan_document([3])))

    outcome = await process_job(service, "workout_generation", WorkoutJobPayload(user_id=1, job_id=7))

    assert outcome.status == "completed"
    assert outcome.job_id == 7
    assert outcome.workout_name == "Strength Builder"
    assert outcome.plan_days_count == 3
    assert outcome.total_exercises == 3
    assert outcome.error is None


@pytest.mark.asyncio
async def test_regeneration_job_saves_profile(service, chat_model, store):
    chat_model.queue(as_json(plan_document([1, 2])))
    payload = WorkoutJobPayload(
        user_id=1,
        custom_feedback="two days only",
        profile_data={"availableDays": ["monday", "thursday"]},
    )

    outcome = await process_job(service, "workout_regeneration", payload)

    assert outcome.status == "completed"
    assert outcome.plan_days_count == 2
    assert store.profiles[1].available_days == ["monday", "thursday"]


@pytest.mark.asyncio
async def test_daily_job(service, chat_model):
    chat_model.queue(as_json(plan_document([1, 2])), as_json(plan_document([3])))
    workout = await service.generate_workout_plan(1)
    chat_model.queue(as_json(day(1, name="Fresh Legs")))

    outcome = await process_job(
        service,
        "daily_workout_regeneration",
        WorkoutJobPayload(user_id=1, plan_day_id=workout.plan_days[0].id, regeneration_reason="tired"),
    )

    assert outcome.status == "completed"
    assert outcome.plan_day_id == workout.plan_days[0].id
    assert outcome.workout_id == workout.id
    assert outcome.plan_days_count == 1
    assert outcome.total_exercises == 1


@pytest.mark.asyncio
async def test_daily_job_requires_plan_day(service):
    outcome = await process_job(service, "daily_workout_regeneration", WorkoutJobPayload(user_id=1))

    assert outcome.status == "failed"
    assert outcome.should_retry is False
    assert outcome.details["error_type"] == "ValueError"


@pytest.mark.asyncio
async def test_incomplete_profile_is_reported(service, store):
    store.profiles[1] = store.profiles[1].model_copy(update={"environment": None})

    outcome = await process_job(service, "workout_generation", WorkoutJobPayload(user_id=1))

    assert outcome.status == "failed"
    assert outcome.should_retry is False
    assert outcome.details["missing_fields"] == ["environment"]


@pytest.mark.asyncio
async def test_failed_generation_is_reported(service, chat_model):
    chat_model.queue("not json", "still not json")

    outcome = await process_job(service, "workout_generation", WorkoutJobPayload(user_id=1))

    assert outcome.status == "failed"
    assert outcome.details["error_type"] == "GenerationFailedError"
    assert outcome.should_retry is False
    assert outcome.generation_time_ms >= 0


@pytest.mark.asyncio
async def test_parse_error_excerpt(service, chat_model, store):
    chat_model.queue(as_json(plan_document([1, 2])), as_json(plan_document([3])))
    workout = await service.generate_workout_plan(1)
    chat_model.queue("definitely not a workout")

    outcome = await process_job(
        service,
        "daily_workout_regeneration",
        WorkoutJobPayload(user_id=1, plan_day_id=workout.plan_days[0].id),
    )

    assert outcome.details["error_type"] == "GenerationParseError"
    assert outcome.details["response_excerpt"] == "definitely not a workout"
