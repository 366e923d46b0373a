"""Writes the workout hierarchy and maps nested reads to response models.

Response defaults for nullable columns:

=====================  ==========================================
Field                  Default
=====================  ==========================================
workout.is_active      False
workout.completed      False
plan_day.name          "Day {index + 1}"
plan_day.day_number    index + 1 (only when the column is null)
plan_day.is_complete   False
exercise.completed     False
exercise.category      first muscle group, else "general"
exercise.difficulty    "beginner"
exercise.equipment     list joined with ", ", else None
missing exercise row   placeholder named "Unknown exercise"
created_at/updated_at  the parent's timestamp, else the transform time
=====================  ==========================================
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Sequence

from workout_planner_api.errors import ExerciseNotFoundError, StoreError
from workout_planner_api.models import (
    ExerciseDetails,
    ExerciseRow,
    PlanDayExerciseRow,
    PlanDayExerciseWithDetails,
    PlanDayRow,
    PlanDayWithExercises,
    WorkoutBlockRow,
    WorkoutBlockWithExercises,
    WorkoutRow,
    WorkoutWithDetails,
)
from workout_planner_api.storage.base import WorkoutRepository


logger = logging.getLogger(__name__)


def _date_values(values: Dict[str, Any]) -> Dict[str, Any]:
    converted = dict(values)
    for key in ("start_date", "end_date", "date"):
        if isinstance(converted.get(key), date):
            converted[key] = converted[key].isoformat()
    return converted


class WorkoutPersistence:
    def __init__(self, repository: WorkoutRepository):
        self.repository = repository

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_workout(self, values: Dict[str, Any]) -> WorkoutRow:
        """Insert a workout and return it fully hydrated by the nested read."""
        workout_id = await self.repository.insert_workout(_date_values(values))
        return await self._read_back(workout_id)

    async def create_active_workout(self, values: Dict[str, Any]) -> WorkoutRow:
        """Deactivate the user's current plan and insert the new active one in one step."""
        workout_id = await self.repository.create_active_workout(_date_values({**values, "is_active": True}))
        return await self._read_back(workout_id)

    async def _read_back(self, workout_id: int) -> WorkoutRow:
        workout = await self.repository.get_workout(workout_id)
        if workout is None:
            raise StoreError(f"Failed to read back workout {workout_id} after insert")
        return workout

    async def create_plan_day(self, values: Dict[str, Any]) -> PlanDayRow:
        return await self.repository.insert_plan_day(_date_values(values))

    async def create_workout_block(self, values: Dict[str, Any]) -> WorkoutBlockRow:
        return await self.repository.insert_workout_block(values)

    async def create_plan_day_exercise(self, values: Dict[str, Any]) -> PlanDayExerciseRow:
        """Insert a plan day exercise; the returned row embeds its catalog exercise."""
        row = await self.repository.insert_plan_day_exercise(values)
        if row.exercise is None:
            raise ExerciseNotFoundError(str(values.get("exercise_id")))
        return row

    async def update_plan_day(self, plan_day_id: int, values: Dict[str, Any]) -> PlanDayRow:
        return await self.repository.update_plan_day(plan_day_id, values)

    async def update_workout_block(self, block_id: int, values: Dict[str, Any]) -> WorkoutBlockRow:
        return await self.repository.update_workout_block(block_id, values)

    async def remove_plan_day_exercises(self, plan_day_exercise_ids: Sequence[int]) -> None:
        """Delete plan day exercises, removing the exercise logs that reference them first."""
        ids = list(plan_day_exercise_ids)
        if not ids:
            return
        await self.repository.delete_exercise_logs(ids)
        await self.repository.delete_plan_day_exercises(ids)
        logger.info(f"Removed {len(ids)} plan day exercise(s) and their logs")

    async def remove_workout_blocks(self, block_ids: Sequence[int]) -> None:
        ids = list(block_ids)
        if ids:
            await self.repository.delete_workout_blocks(ids)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_workout(self, workout_id: int) -> Optional[WorkoutRow]:
        return await self.repository.get_workout(workout_id)

    async def get_plan_day(self, plan_day_id: int) -> Optional[PlanDayRow]:
        return await self.repository.get_plan_day(plan_day_id)

    async def get_workout_owner(self, workout_id: int) -> Optional[int]:
        return await self.repository.get_workout_owner(workout_id)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    @staticmethod
    def transform_workout(workout: WorkoutRow, now: Optional[datetime] = None) -> WorkoutWithDetails:
        now = now or datetime.now(timezone.utc)
        created_at = workout.created_at or now
        updated_at = workout.updated_at or created_at
        return WorkoutWithDetails(
            id=workout.id,
            user_id=workout.user_id,
            name=workout.name,
            description=workout.description,
            start_date=workout.start_date,
            end_date=workout.end_date,
            prompt_id=workout.prompt_id,
            is_active=workout.is_active or False,
            completed=workout.completed or False,
            created_at=created_at,
            updated_at=updated_at,
            plan_days=[
                WorkoutPersistence.transform_plan_day(plan_day, index, now=created_at)
                for index, plan_day in enumerate(workout.plan_days)
            ],
        )

    @staticmethod
    def transform_plan_day(plan_day: PlanDayRow, index: int = 0, now: Optional[datetime] = None) -> PlanDayWithExercises:
        now = now or datetime.now(timezone.utc)
        created_at = plan_day.created_at or now
        updated_at = plan_day.updated_at or created_at
        return PlanDayWithExercises(
            id=plan_day.id,
            workout_id=plan_day.workout_id,
            date=plan_day.date,
            instructions=plan_day.instructions,
            name=plan_day.name or f"Day {index + 1}",
            description=plan_day.description,
            day_number=plan_day.day_number if plan_day.day_number is not None else index + 1,
            is_complete=plan_day.is_complete or False,
            created_at=created_at,
            updated_at=updated_at,
            blocks=[_transform_block(block, created_at) for block in plan_day.blocks],
        )


def _transform_block(block: WorkoutBlockRow, now: datetime) -> WorkoutBlockWithExercises:
    created_at = block.created_at or now
    return WorkoutBlockWithExercises(
        id=block.id,
        plan_day_id=block.plan_day_id,
        block_type=block.block_type,
        block_name=block.block_name,
        block_duration_minutes=block.block_duration_minutes,
        time_cap_minutes=block.time_cap_minutes,
        rounds=block.rounds,
        instructions=block.instructions,
        order=block.order,
        created_at=created_at,
        updated_at=block.updated_at or created_at,
        exercises=[_transform_plan_day_exercise(item, created_at) for item in block.exercises],
    )


def _transform_plan_day_exercise(item: PlanDayExerciseRow, now: datetime) -> PlanDayExerciseWithDetails:
    created_at = item.created_at or now
    return PlanDayExerciseWithDetails(
        id=item.id,
        workout_block_id=item.workout_block_id,
        exercise_id=item.exercise_id,
        sets=item.sets,
        reps=item.reps,
        weight=item.weight,
        duration=item.duration,
        rest_time=item.rest_time,
        completed=item.completed or False,
        notes=item.notes,
        order=item.order,
        created_at=created_at,
        updated_at=item.updated_at or created_at,
        exercise=_exercise_details(item.exercise, item.exercise_id, created_at),
    )


def _exercise_details(exercise: Optional[ExerciseRow], exercise_id: int, now: datetime) -> ExerciseDetails:
    if exercise is None:
        return ExerciseDetails(
            id=exercise_id,
            name="Unknown exercise",
            category="general",
            difficulty="beginner",
            created_at=now,
            updated_at=now,
        )

    created_at = exercise.created_at or now
    return ExerciseDetails(
        id=exercise.id,
        name=exercise.name,
        description=exercise.description,
        category=exercise.muscle_groups[0] if exercise.muscle_groups else "general",
        difficulty=exercise.difficulty or "beginner",
        equipment=", ".join(exercise.equipment) if exercise.equipment else None,
        instructions=exercise.instructions,
        link=exercise.link,
        muscles_targeted=list(exercise.muscle_groups),
        created_at=created_at,
        updated_at=exercise.updated_at or created_at,
    )
