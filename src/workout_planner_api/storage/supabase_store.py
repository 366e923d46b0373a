"""Supabase (PostgREST) implementation of the planner repositories.

Every query goes through ``_execute``, which translates PostgREST and
transport failures into ``StoreError`` and retries the transient ones
(connection loss, serialization failures, deadlocks, 5xx) with
exponential backoff.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from postgrest.exceptions import APIError

from workout_planner_api.ai.retry import create_retry_decorator
from workout_planner_api.config import settings
from workout_planner_api.errors import ActiveWorkoutConflictError, StoreError
from workout_planner_api.models import (
    ExerciseRow,
    ExerciseSearchFilters,
    PlanDayExerciseRow,
    PlanDayRow,
    Profile,
    ProfileUpdate,
    PromptRecord,
    WorkoutBlockRow,
    WorkoutRow,
)
from .base import ExerciseRepository, ProfileRepository, PromptRepository, WorkoutRepository


logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
TRANSIENT_SQLSTATES = {"40001", "40P01", "57P01", "53300"}

EXERCISE_SELECT = "*, exercise:exercises(*)"
BLOCK_SELECT = f"*, exercises:plan_day_exercises({EXERCISE_SELECT})"
PLAN_DAY_SELECT = f"*, blocks:workout_blocks({BLOCK_SELECT})"
WORKOUT_SELECT = f"*, plan_days:plan_days({PLAN_DAY_SELECT})"

BODYWEIGHT_EQUIPMENT_FILTER = "equipment.is.null,equipment.eq.{},equipment.cs.{bodyweight}"

# Transport errors raised before the request reached the server
REQUEST_NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


async def get_supabase_client():
    """Get an async Supabase client, or None when credentials are missing."""
    from supabase import acreate_client

    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        logger.warning("Supabase credentials not configured. Workout storage is unavailable.")
        return None

    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def is_transient_sqlstate(code: Optional[str]) -> bool:
    if not code:
        return False
    return code.startswith("08") or code in TRANSIENT_SQLSTATES


def is_retryable_store_error(exception: BaseException) -> bool:
    return isinstance(exception, StoreError) and exception.retriable


def _translate(operation: str, exception: Exception, idempotent: bool = True) -> StoreError:
    """
    Wrap a PostgREST or transport error as a StoreError.

    Transient SQLSTATEs mean the statement was rolled back, so they are
    retriable for any call. A timeout or 5xx after the request was sent may
    hide a committed write; non-idempotent writes are only retried when the
    request never left the client.
    """
    if isinstance(exception, APIError):
        code = exception.code
        return StoreError(
            f"{operation} failed: {exception.message}",
            retriable=is_transient_sqlstate(code),
            code=code,
        )
    if isinstance(exception, httpx.HTTPStatusError):
        return StoreError(
            f"{operation} failed: {exception}",
            retriable=idempotent and exception.response.status_code >= 500,
        )
    return StoreError(
        f"{operation} failed: {exception}",
        retriable=idempotent or isinstance(exception, REQUEST_NOT_SENT_ERRORS),
    )


_store_retry = create_retry_decorator(
    should_retry=is_retryable_store_error,
    max_attempts=3,
    min_wait_seconds=0.5,
    max_wait_seconds=4,
)


@_store_retry
async def _execute(query: Any, operation: str, idempotent: bool = True) -> Any:
    try:
        return await query.execute()
    except (APIError, httpx.HTTPError) as e:
        raise _translate(operation, e, idempotent) from e


def _first(rows: Optional[List[Dict[str, Any]]], operation: str) -> Dict[str, Any]:
    if not rows:
        raise StoreError(f"{operation} returned no rows")
    return rows[0]


def _order_key(row: Dict[str, Any]) -> tuple:
    order = row.get("order")
    return (order is None, order or 0, row.get("id") or 0)


def _sort_plan_day(plan_day: Dict[str, Any]) -> Dict[str, Any]:
    blocks = sorted(plan_day.get("blocks") or [], key=_order_key)
    for block in blocks:
        block["exercises"] = sorted(block.get("exercises") or [], key=_order_key)
    plan_day["blocks"] = blocks
    return plan_day


def _sort_workout(workout: Dict[str, Any]) -> Dict[str, Any]:
    plan_days = [_sort_plan_day(day) for day in workout.get("plan_days") or []]
    workout["plan_days"] = sorted(plan_days, key=lambda day: (day.get("date") or "", day.get("id") or 0))
    return workout


class SupabaseStore(ProfileRepository, ExerciseRepository, PromptRepository, WorkoutRepository):
    """All planner repositories over one Supabase client."""

    def __init__(self, client: Any):
        self.client = client

    def _table(self, name: str) -> Any:
        return self.client.table(name)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: int) -> Optional[Profile]:
        result = await _execute(
            self._table("profiles").select("*").eq("user_id", user_id).limit(1),
            "get_profile",
        )
        if not result.data:
            return None
        return Profile.model_validate(result.data[0])

    async def upsert_profile(self, user_id: int, update: ProfileUpdate) -> Profile:
        values = {"user_id": user_id, **update.model_dump(exclude_none=True)}
        result = await _execute(
            self._table("profiles").upsert(values, on_conflict="user_id"),
            "upsert_profile",
        )
        return Profile.model_validate(_first(result.data, "upsert_profile"))

    # ------------------------------------------------------------------
    # Exercises
    # ------------------------------------------------------------------

    async def find_by_name(self, name: str) -> Optional[ExerciseRow]:
        result = await _execute(
            self._table("exercises").select("*").ilike("name", f"%{name.strip()}%").order("id").limit(1),
            "find_exercise_by_name",
        )
        if not result.data:
            return None
        return ExerciseRow.model_validate(result.data[0])

    async def get_exercise(self, exercise_id: int) -> Optional[ExerciseRow]:
        result = await _execute(
            self._table("exercises").select("*").eq("id", exercise_id).limit(1),
            "get_exercise",
        )
        if not result.data:
            return None
        return ExerciseRow.model_validate(result.data[0])

    async def insert_exercise(self, values: Dict[str, Any]) -> ExerciseRow:
        result = await _execute(self._table("exercises").insert(values), "insert_exercise", idempotent=False)
        return ExerciseRow.model_validate(_first(result.data, "insert_exercise"))

    async def search_exercises(self, filters: ExerciseSearchFilters, limit: int) -> List[ExerciseRow]:
        query = self._table("exercises").select("*")
        if filters.muscle_groups:
            query = query.overlaps("muscle_groups", filters.muscle_groups)
        if filters.is_bodyweight_only:
            query = query.or_(BODYWEIGHT_EQUIPMENT_FILTER)
        elif filters.equipment:
            query = query.overlaps("equipment", filters.equipment)
        if filters.difficulty:
            query = query.in_("difficulty", filters.difficulty)
        if filters.styles:
            query = query.in_("tag", filters.styles)

        result = await _execute(query.order("id").limit(limit), "search_exercises")
        return [ExerciseRow.model_validate(row) for row in result.data or []]

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    async def create_prompt(
        self,
        user_id: int,
        prompt: str,
        response: str,
        thread_id: Optional[str] = None,
    ) -> PromptRecord:
        values = {"user_id": user_id, "prompt": prompt, "response": response, "thread_id": thread_id}
        result = await _execute(self._table("prompts").insert(values), "create_prompt", idempotent=False)
        return PromptRecord.model_validate(_first(result.data, "create_prompt"))

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------

    async def insert_workout(self, values: Dict[str, Any]) -> int:
        result = await _execute(self._table("workouts").insert(values), "insert_workout", idempotent=False)
        return _first(result.data, "insert_workout")["id"]

    async def create_active_workout(self, values: Dict[str, Any]) -> int:
        user_id = values["user_id"]
        try:
            result = await _execute(
                self.client.rpc("create_active_workout", {"p_workout": values}),
                "create_active_workout",
                idempotent=False,
            )
        except StoreError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ActiveWorkoutConflictError(user_id) from e
            raise

        data = result.data
        if isinstance(data, list):
            data = _first(data, "create_active_workout")
        if isinstance(data, dict):
            data = data.get("id") or data.get("create_active_workout")
        if data is None:
            raise StoreError("create_active_workout returned no workout id")
        return int(data)

    async def get_workout(self, workout_id: int) -> Optional[WorkoutRow]:
        result = await _execute(
            self._table("workouts").select(WORKOUT_SELECT).eq("id", workout_id).limit(1),
            "get_workout",
        )
        if not result.data:
            return None
        return WorkoutRow.model_validate(_sort_workout(result.data[0]))

    async def get_workout_owner(self, workout_id: int) -> Optional[int]:
        result = await _execute(
            self._table("workouts").select("user_id").eq("id", workout_id).limit(1),
            "get_workout_owner",
        )
        if not result.data:
            return None
        return result.data[0]["user_id"]

    async def insert_plan_day(self, values: Dict[str, Any]) -> PlanDayRow:
        result = await _execute(self._table("plan_days").insert(values), "insert_plan_day", idempotent=False)
        return PlanDayRow.model_validate(_first(result.data, "insert_plan_day"))

    async def update_plan_day(self, plan_day_id: int, values: Dict[str, Any]) -> PlanDayRow:
        result = await _execute(
            self._table("plan_days").update(values).eq("id", plan_day_id),
            "update_plan_day",
        )
        return PlanDayRow.model_validate(_first(result.data, "update_plan_day"))

    async def get_plan_day(self, plan_day_id: int) -> Optional[PlanDayRow]:
        result = await _execute(
            self._table("plan_days").select(PLAN_DAY_SELECT).eq("id", plan_day_id).limit(1),
            "get_plan_day",
        )
        if not result.data:
            return None
        return PlanDayRow.model_validate(_sort_plan_day(result.data[0]))

    async def insert_workout_block(self, values: Dict[str, Any]) -> WorkoutBlockRow:
        result = await _execute(self._table("workout_blocks").insert(values), "insert_workout_block", idempotent=False)
        return WorkoutBlockRow.model_validate(_first(result.data, "insert_workout_block"))

    async def update_workout_block(self, block_id: int, values: Dict[str, Any]) -> WorkoutBlockRow:
        result = await _execute(
            self._table("workout_blocks").update(values).eq("id", block_id),
            "update_workout_block",
        )
        return WorkoutBlockRow.model_validate(_first(result.data, "update_workout_block"))

    async def delete_workout_blocks(self, block_ids: Sequence[int]) -> None:
        await _execute(
            self._table("workout_blocks").delete().in_("id", list(block_ids)),
            "delete_workout_blocks",
        )

    async def insert_plan_day_exercise(self, values: Dict[str, Any]) -> PlanDayExerciseRow:
        inserted = await _execute(
            self._table("plan_day_exercises").insert(values), "insert_plan_day_exercise", idempotent=False
        )
        row_id = _first(inserted.data, "insert_plan_day_exercise")["id"]

        result = await _execute(
            self._table("plan_day_exercises").select(EXERCISE_SELECT).eq("id", row_id).limit(1),
            "read_plan_day_exercise",
        )
        return PlanDayExerciseRow.model_validate(_first(result.data, "read_plan_day_exercise"))

    async def delete_plan_day_exercises(self, plan_day_exercise_ids: Sequence[int]) -> None:
        await _execute(
            self._table("plan_day_exercises").delete().in_("id", list(plan_day_exercise_ids)),
            "delete_plan_day_exercises",
        )

    async def delete_exercise_logs(self, plan_day_exercise_ids: Sequence[int]) -> None:
        await _execute(
            self._table("exercise_logs").delete().in_("plan_day_exercise_id", list(plan_day_exercise_ids)),
            "delete_exercise_logs",
        )
