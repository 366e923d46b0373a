"""
Workout Planner API Routes

Thin controllers over WorkoutService:
- POST /workouts/generate            - generate a new active weekly plan
- POST /workouts/regenerate          - persist profile changes, then generate
- POST /plan-days/{id}/regenerate    - regenerate one plan day in place
- POST /workouts/generate/cancel     - cancel the caller's running generation
- GET  /health                       - liveness probe

The caller is identified by the X-User-Id header.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

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
    WorkoutPlannerError,
)
from workout_planner_api.models import PlanDayWithExercises, WorkoutWithDetails
from workout_planner_api.services.service_factory import build_workout_service
from workout_planner_api.services.workout_service import WorkoutService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Workouts"])

_service: Optional[WorkoutService] = None


async def get_workout_service() -> WorkoutService:
    global _service
    if _service is None:
        _service = await build_workout_service()
    return _service


def get_user_id(x_user_id: int = Header(..., alias="X-User-Id")) -> int:
    return x_user_id


# ============================================================================
# Request / Response Models
# ============================================================================

class GenerateWorkoutRequest(BaseModel):
    custom_feedback: Optional[str] = None
    timezone: Optional[str] = None
    thread_id: Optional[str] = None


class RegenerateWorkoutRequest(BaseModel):
    custom_feedback: Optional[str] = None
    profile_data: Optional[Dict[str, Any]] = None
    timezone: Optional[str] = None
    thread_id: Optional[str] = None


class RegenerateDayRequest(BaseModel):
    regeneration_reason: Optional[str] = None
    styles: Optional[List[str]] = None
    thread_id: Optional[str] = None


class CancelResponse(BaseModel):
    success: bool
    message: str


# ============================================================================
# Error mapping
# ============================================================================

def to_http_exception(error: WorkoutPlannerError) -> HTTPException:
    """Map the planner error taxonomy onto HTTP status codes."""
    if isinstance(error, (ProfileNotFoundError, PlanDayNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ProfileIncompleteError):
        return HTTPException(
            status_code=422,
            detail={"message": str(error), "missing_fields": error.missing_fields},
        )
    if isinstance(error, (GenerationParseError, GenerationFailedError)):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, (GenerationCancelledError, GenerationInProgressError, ActiveWorkoutConflictError)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, StoreError):
        return HTTPException(status_code=503 if error.retriable else 500, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/workouts/generate", response_model=WorkoutWithDetails)
async def generate_workout(
    request: GenerateWorkoutRequest,
    user_id: int = Depends(get_user_id),
    service: WorkoutService = Depends(get_workout_service),
):
    """Generate a new active weekly workout plan from the caller's profile."""
    try:
        return await service.generate_workout_plan(
            user_id,
            custom_feedback=request.custom_feedback,
            timezone=request.timezone,
            thread_id=request.thread_id,
        )
    except WorkoutPlannerError as e:
        logger.error(f"Workout generation failed for user {user_id}: {e}")
        raise to_http_exception(e) from e


@router.post("/workouts/regenerate", response_model=WorkoutWithDetails)
async def regenerate_workout(
    request: RegenerateWorkoutRequest,
    user_id: int = Depends(get_user_id),
    service: WorkoutService = Depends(get_workout_service),
):
    """
    Regenerate the caller's plan.

    Profile fields in ``profile_data`` are saved before generation starts.
    """
    try:
        return await service.regenerate_workout_plan(
            user_id,
            custom_feedback=request.custom_feedback,
            profile_data=request.profile_data,
            thread_id=request.thread_id,
            timezone=request.timezone,
        )
    except WorkoutPlannerError as e:
        logger.error(f"Workout regeneration failed for user {user_id}: {e}")
        raise to_http_exception(e) from e


@router.post("/plan-days/{plan_day_id}/regenerate", response_model=PlanDayWithExercises)
async def regenerate_plan_day(
    plan_day_id: int,
    request: RegenerateDayRequest,
    user_id: int = Depends(get_user_id),
    service: WorkoutService = Depends(get_workout_service),
):
    """Regenerate one plan day; the day keeps its id and is marked incomplete."""
    try:
        return await service.regenerate_daily_workout(
            user_id,
            plan_day_id,
            request.regeneration_reason,
            styles=request.styles,
            thread_id=request.thread_id,
        )
    except WorkoutPlannerError as e:
        logger.error(f"Daily regeneration failed for user {user_id}, plan day {plan_day_id}: {e}")
        raise to_http_exception(e) from e


@router.post("/workouts/generate/cancel", response_model=CancelResponse)
async def cancel_generation(
    user_id: int = Depends(get_user_id),
    service: WorkoutService = Depends(get_workout_service),
):
    """
    Cancel the caller's running generation.

    Only generations still waiting on the model can be cancelled; once
    scheduling has started the plan is written to completion.
    """
    success = service.cancel_user_generation(user_id)
    return {
        "success": success,
        "message": "Generation cancelled" if success else "No cancellable generation in progress",
    }


@router.get("/health")
def health():
    """Health check endpoint."""
    return {"ok": True}
