"""Exception taxonomy for workout plan generation."""
from typing import Sequence


class WorkoutPlannerError(Exception):
    """Base class for all planner errors."""


class ProfileNotFoundError(WorkoutPlannerError):
    def __init__(self, user_id: int):
        super().__init__(f"Profile not found for user {user_id}")
        self.user_id = user_id


class ProfileIncompleteError(WorkoutPlannerError):
    """Profile is missing fields required for generation. Never retried."""

    def __init__(self, missing_fields: Sequence[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Profile is missing required fields: " + ", ".join(self.missing_fields)
        )


class PlanDayNotFoundError(WorkoutPlannerError):
    def __init__(self, plan_day_id: int):
        super().__init__(f"Plan day {plan_day_id} not found")
        self.plan_day_id = plan_day_id


class GenerationParseError(WorkoutPlannerError):
    """The model's final document is not valid JSON or violates the plan schema."""

    def __init__(self, message: str, raw_response: str | None = None):
        super().__init__(message)
        self.raw_response = raw_response

    @property
    def response_excerpt(self) -> str:
        if not self.raw_response:
            return ""
        return self.raw_response[-200:]


class GenerationFailedError(WorkoutPlannerError):
    """Both the chunked and the single-shot strategies failed."""


class GenerationCancelledError(WorkoutPlannerError):
    def __init__(self, message: str = "Generation was cancelled"):
        super().__init__(message)


class GenerationInProgressError(WorkoutPlannerError):
    def __init__(self, user_id: int):
        super().__init__(f"A workout generation is already running for user {user_id}")
        self.user_id = user_id


class ExerciseNotFoundError(WorkoutPlannerError):
    def __init__(self, name: str):
        super().__init__(f"Exercise not found in catalog: {name}")
        self.name = name


class ActiveWorkoutConflictError(WorkoutPlannerError):
    """A concurrent writer already holds the user's single active workout slot."""

    def __init__(self, user_id: int):
        super().__init__(f"Another active workout was created concurrently for user {user_id}")
        self.user_id = user_id


class StoreError(WorkoutPlannerError):
    """Upstream store failure, classified as retriable or not."""

    def __init__(self, message: str, retriable: bool = False, code: str | None = None):
        super().__init__(message)
        self.retriable = retriable
        self.code = code
