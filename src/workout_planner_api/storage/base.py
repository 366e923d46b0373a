"""Repository interfaces consumed by the planner services."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

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


class ProfileRepository(ABC):
    @abstractmethod
    async def get_profile(self, user_id: int) -> Optional[Profile]:
        ...

    @abstractmethod
    async def upsert_profile(self, user_id: int, update: ProfileUpdate) -> Profile:
        """Create the profile or overwrite the fields set on ``update``."""


class ExerciseRepository(ABC):
    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[ExerciseRow]:
        """Case-insensitive substring match; lowest id wins when several match."""

    @abstractmethod
    async def get_exercise(self, exercise_id: int) -> Optional[ExerciseRow]:
        ...

    @abstractmethod
    async def insert_exercise(self, values: Dict[str, Any]) -> ExerciseRow:
        ...

    @abstractmethod
    async def search_exercises(self, filters: ExerciseSearchFilters, limit: int) -> List[ExerciseRow]:
        ...


class PromptRepository(ABC):
    @abstractmethod
    async def create_prompt(
        self,
        user_id: int,
        prompt: str,
        response: str,
        thread_id: Optional[str] = None,
    ) -> PromptRecord:
        ...


class WorkoutRepository(ABC):
    """Workout hierarchy: workout -> plan day -> block -> plan day exercise."""

    @abstractmethod
    async def insert_workout(self, values: Dict[str, Any]) -> int:
        ...

    @abstractmethod
    async def create_active_workout(self, values: Dict[str, Any]) -> int:
        """
        Deactivate the user's active workouts and insert a new active one atomically.

        Raises:
            ActiveWorkoutConflictError: A concurrent writer won the active slot
        """

    @abstractmethod
    async def get_workout(self, workout_id: int) -> Optional[WorkoutRow]:
        """Nested read: plan days, blocks, plan day exercises and their exercises."""

    @abstractmethod
    async def get_workout_owner(self, workout_id: int) -> Optional[int]:
        """The owning user id, or None when the workout does not exist."""

    @abstractmethod
    async def insert_plan_day(self, values: Dict[str, Any]) -> PlanDayRow:
        ...

    @abstractmethod
    async def update_plan_day(self, plan_day_id: int, values: Dict[str, Any]) -> PlanDayRow:
        ...

    @abstractmethod
    async def get_plan_day(self, plan_day_id: int) -> Optional[PlanDayRow]:
        """Nested read of one plan day with its blocks and exercises."""

    @abstractmethod
    async def insert_workout_block(self, values: Dict[str, Any]) -> WorkoutBlockRow:
        ...

    @abstractmethod
    async def update_workout_block(self, block_id: int, values: Dict[str, Any]) -> WorkoutBlockRow:
        ...

    @abstractmethod
    async def delete_workout_blocks(self, block_ids: Sequence[int]) -> None:
        ...

    @abstractmethod
    async def insert_plan_day_exercise(self, values: Dict[str, Any]) -> PlanDayExerciseRow:
        """Insert and return the row with its catalog exercise embedded."""

    @abstractmethod
    async def delete_plan_day_exercises(self, plan_day_exercise_ids: Sequence[int]) -> None:
        ...

    @abstractmethod
    async def delete_exercise_logs(self, plan_day_exercise_ids: Sequence[int]) -> None:
        """Remove exercise logs pointing at the given plan day exercises."""
