"""
Background job entry points.

A queue worker hands each job's payload to ``process_job``, which runs the
matching WorkoutService operation and always returns a terminal
``JobOutcome``. Failures are logged and reported in the outcome together
with ``should_retry`` so the queue can decide whether another attempt is
worthwhile.
"""
import logging
import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from workout_planner_api.ai.retry import is_retryable_error
from workout_planner_api.errors import (
    ActiveWorkoutConflictError,
    GenerationCancelledError,
    GenerationFailedError,
    GenerationInProgressError,
    GenerationParseError,
    PlanDayNotFoundError,
    ProfileIncompleteError,
    ProfileNotFoundError,
    StoreError,
)
from workout_planner_api.services.workout_service import WorkoutService


logger = logging.getLogger(__name__)

JobType = Literal["workout_generation", "workout_regeneration", "daily_workout_regeneration"]
JobStatus = Literal["completed", "failed"]

NON_RETRYABLE_ERRORS = (
    ProfileNotFoundError,
    ProfileIncompleteError,
    PlanDayNotFoundError,
    GenerationParseError,
    GenerationCancelledError,
    GenerationInProgressError,
    ActiveWorkoutConflictError,
)

NON_RETRYABLE_MARKERS = (
    "429",
    "rate limit",
    "rate_limit",
    "too many requests",
    "quota exceeded",
    "resource exhausted",
    "401",
    "403",
    "unauthorized",
    "forbidden",
    "invalid api key",
    "invalid_api_key",
)


class WorkoutJobPayload(BaseModel):
    """Input data queued with a workout job."""
    user_id: int
    job_id: Optional[int] = None
    custom_feedback: Optional[str] = None
    profile_data: Optional[Dict[str, Any]] = None
    plan_day_id: Optional[int] = None
    regeneration_reason: Optional[str] = None
    thread_id: Optional[str] = None
    timezone: Optional[str] = None
    styles: Optional[List[str]] = None


class JobOutcome(BaseModel):
    """Terminal result of one job run."""
    job_type: JobType
    status: JobStatus
    user_id: int
    job_id: Optional[int] = None
    workout_id: Optional[int] = None
    workout_name: Optional[str] = None
    plan_day_id: Optional[int] = None
    plan_days_count: int = 0
    total_exercises: int = 0
    generation_time_ms: int = 0
    error: Optional[str] = None
    should_retry: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)


def should_retry_job(error: BaseException) -> bool:
    """Classify a job failure; rate limits, auth and domain errors are never retried."""
    if isinstance(error, NON_RETRYABLE_ERRORS):
        return False

    message = str(error).lower()
    if any(marker in message for marker in NON_RETRYABLE_MARKERS):
        return False

    if isinstance(error, StoreError):
        return error.retriable

    cause = error.__cause__
    if isinstance(error, GenerationFailedError) and cause is not None:
        if isinstance(cause, GenerationParseError):
            return False
        return should_retry_job(cause)

    return is_retryable_error(error)


async def process_job(service: WorkoutService, job_type: JobType, payload: WorkoutJobPayload) -> JobOutcome:
    """
    Run one queued workout job.

    Args:
        service: The workout service
        job_type: Which operation to run
        payload: Job data

    Returns:
        A completed or failed JobOutcome; exceptions are reported, not raised
    """
    started = time.monotonic()
    logger.info(
        f"Starting {job_type} job {payload.job_id} for user {payload.user_id} "
        f"(feedback={bool(payload.custom_feedback)}, profile_data={bool(payload.profile_data)})"
    )

    try:
        outcome = await _dispatch(service, job_type, payload)
    except Exception as e:
        elapsed = int((time.monotonic() - started) * 1000)
        retry = should_retry_job(e)
        logger.error(
            f"{job_type} job {payload.job_id} for user {payload.user_id} failed after {elapsed}ms "
            f"({type(e).__name__}, should_retry={retry}): {e}"
        )
        details: Dict[str, Any] = {"error_type": type(e).__name__}
        if isinstance(e, GenerationParseError):
            details["response_excerpt"] = e.response_excerpt
        if isinstance(e, ProfileIncompleteError):
            details["missing_fields"] = list(e.missing_fields)
        return JobOutcome(
            job_type=job_type,
            status="failed",
            user_id=payload.user_id,
            job_id=payload.job_id,
            plan_day_id=payload.plan_day_id,
            generation_time_ms=elapsed,
            error=str(e),
            should_retry=retry,
            details=details,
        )

    outcome.generation_time_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        f"{job_type} job {payload.job_id} completed for user {payload.user_id} in {outcome.generation_time_ms}ms "
        f"({outcome.plan_days_count} plan days, {outcome.total_exercises} exercises)"
    )
    return outcome


async def _dispatch(service: WorkoutService, job_type: JobType, payload: WorkoutJobPayload) -> JobOutcome:
    if job_type == "daily_workout_regeneration":
        if payload.plan_day_id is None:
            raise ValueError("plan_day_id is required for daily workout regeneration")
        plan_day = await service.regenerate_daily_workout(
            payload.user_id,
            payload.plan_day_id,
            payload.regeneration_reason,
            styles=payload.styles,
            thread_id=payload.thread_id,
        )
        return JobOutcome(
            job_type=job_type,
            status="completed",
            user_id=payload.user_id,
            job_id=payload.job_id,
            workout_id=plan_day.workout_id,
            plan_day_id=plan_day.id,
            plan_days_count=1,
            total_exercises=plan_day.exercise_count,
        )

    if job_type == "workout_regeneration":
        workout = await service.regenerate_workout_plan(
            payload.user_id,
            custom_feedback=payload.custom_feedback,
            profile_data=payload.profile_data,
            thread_id=payload.thread_id,
            timezone=payload.timezone,
        )
    elif job_type == "workout_generation":
        workout = await service.generate_workout_plan(
            payload.user_id,
            custom_feedback=payload.custom_feedback,
            timezone=payload.timezone,
            thread_id=payload.thread_id,
        )
    else:
        raise ValueError(f"Unknown job type: {job_type}")

    return JobOutcome(
        job_type=job_type,
        status="completed",
        user_id=payload.user_id,
        job_id=payload.job_id,
        workout_id=workout.id,
        workout_name=workout.name,
        plan_days_count=len(workout.plan_days),
        total_exercises=workout.exercise_count,
    )
