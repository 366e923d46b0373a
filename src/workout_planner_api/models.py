"""Data models for workout plan generation.

Three families live here:
- input models (Profile, exercise catalog entries, search filters),
- row models that mirror the nullable database shape returned by the
  nested workout read,
- response models returned to controllers and job consumers.

Attributes are snake_case; the external (JSON) shape is camelCase.
"""
from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Index matches datetime.date.weekday()
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Values the model may use for "equipment" on new exercises
AVAILABLE_EQUIPMENT = (
    "dumbbells",
    "resistance_bands",
    "machines",
    "bodyweight",
    "kettlebells",
    "medicine_ball",
    "foam_roller",
    "treadmill",
    "bike",
    "yoga_mat",
)


def _as_list(value: Any) -> Any:
    """Coerce None to [] and a bare string to a one-item list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return value


class CamelModel(BaseModel):
    """Base model accepting snake_case or camelCase keys, dumping camelCase by alias."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class Profile(CamelModel):
    """Per-user fitness attributes. Read-only input to generation."""

    user_id: int
    age: Optional[int] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    gender: Optional[str] = None
    goals: List[str] = Field(default_factory=list)
    limitations: List[str] = Field(default_factory=list)
    fitness_level: Optional[str] = None
    environment: Optional[str] = None
    equipment: List[str] = Field(default_factory=list)
    other_equipment: Optional[str] = None
    preferred_styles: List[str] = Field(default_factory=list)
    available_days: List[str] = Field(default_factory=list)
    workout_duration: Optional[int] = None
    intensity_level: Optional[str] = None
    include_warmup: bool = True
    include_cooldown: bool = True
    medical_notes: Optional[str] = None
    ai_provider: Optional[str] = None
    ai_model: Optional[str] = None

    @field_validator("goals", "limitations", "equipment", "preferred_styles", "available_days", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("available_days", "preferred_styles", mode="after")
    @classmethod
    def _lowercase(cls, value: List[str]) -> List[str]:
        return [v.strip().lower() for v in value if v and v.strip()]

    @field_validator("intensity_level", mode="before")
    @classmethod
    def _intensity_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("include_warmup", "include_cooldown", mode="before")
    @classmethod
    def _null_flag(cls, value: Any) -> Any:
        return True if value is None else value

    def missing_required_fields(self) -> List[str]:
        missing = []
        if not self.available_days:
            missing.append("availableDays")
        if not self.preferred_styles:
            missing.append("preferredStyles")
        if not self.workout_duration:
            missing.append("workoutDuration")
        if not self.environment:
            missing.append("environment")
        return missing

    def merged_with(self, update: Optional["ProfileUpdate"]) -> "Profile":
        """Apply the fields set on ``update``; unset fields keep their current value."""
        if update is None:
            return self
        changes = update.model_dump(exclude_none=True)
        return Profile.model_validate({**self.model_dump(), **changes})


class ProfileUpdate(CamelModel):
    """Partial profile sent along with a full regeneration request."""

    age: Optional[int] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    gender: Optional[str] = None
    goals: Optional[List[str]] = None
    limitations: Optional[List[str]] = None
    fitness_level: Optional[str] = None
    environment: Optional[str] = None
    equipment: Optional[List[str]] = None
    other_equipment: Optional[str] = None
    preferred_styles: Optional[List[str]] = Field(
        default=None,
        validation_alias=AliasChoices("preferred_styles", "preferredStyles", "workoutStyles", "workout_styles"),
    )
    available_days: Optional[List[str]] = None
    workout_duration: Optional[int] = None
    intensity_level: Optional[str] = None
    include_warmup: Optional[bool] = None
    include_cooldown: Optional[bool] = None
    medical_notes: Optional[str] = None

    @field_validator("environment", mode="before")
    @classmethod
    def _first_environment(cls, value: Any) -> Any:
        # Older clients send the environment as a single-item list
        if isinstance(value, list):
            return value[0] if value else None
        return value

    @field_validator("intensity_level", mode="before")
    @classmethod
    def _intensity_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


# ---------------------------------------------------------------------------
# Exercise catalog
# ---------------------------------------------------------------------------


class ExerciseRow(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    muscle_groups: List[str] = Field(default_factory=list)
    equipment: Optional[List[str]] = None
    difficulty: Optional[str] = None
    instructions: Optional[str] = None
    link: Optional[str] = None
    tag: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("muscle_groups", mode="before")
    @classmethod
    def _muscles(cls, value: Any) -> Any:
        return _as_list(value)


class ExerciseMetadata(CamelModel):
    """Minimal exercise view handed to the model during the tool round."""

    name: str
    equipment: List[str] = Field(default_factory=list)
    muscle_groups: List[str] = Field(default_factory=list)
    difficulty: Optional[str] = None

    @field_validator("equipment", "muscle_groups", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _as_list(value)


class ExerciseSearchFilters(CamelModel):
    muscle_groups: List[str] = Field(default_factory=list)
    equipment: List[str] = Field(default_factory=list)
    difficulty: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)
    limit: Optional[int] = Field(default=None, ge=1, le=500)

    @field_validator("muscle_groups", "equipment", "difficulty", "styles", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _as_list(value)

    @property
    def is_bodyweight_only(self) -> bool:
        values = {v.strip().lower() for v in self.equipment}
        return "bodyweight_only" in values or values == {"bodyweight"}


class NewExercise(CamelModel):
    """An exercise the model invented and declared under exercisesToAdd."""

    name: str = Field(min_length=1)
    description: Optional[str] = None
    equipment: List[str] = Field(default_factory=list)
    muscle_groups: List[str] = Field(default_factory=list)
    difficulty: Optional[str] = None
    instructions: str = ""
    link: Optional[str] = None
    tag: Optional[str] = None

    @field_validator("equipment", "muscle_groups", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("instructions", mode="before")
    @classmethod
    def _join_instructions(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, list):
            return "\n".join(str(v) for v in value)
        return value

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name.strip(),
            "description": self.description,
            "equipment": self.equipment,
            "muscle_groups": self.muscle_groups,
            "difficulty": self.difficulty,
            "instructions": self.instructions,
            "link": self.link,
            "tag": self.tag,
        }


# ---------------------------------------------------------------------------
# Row models (nested read shape, nullable columns)
# ---------------------------------------------------------------------------


def _date_to_str(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


class PlanDayExerciseRow(CamelModel):
    id: int
    workout_block_id: int
    exercise_id: int
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    duration: Optional[int] = None
    rest_time: Optional[int] = None
    completed: Optional[bool] = None
    notes: Optional[str] = None
    order: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    exercise: Optional[ExerciseRow] = None


class WorkoutBlockRow(CamelModel):
    id: int
    plan_day_id: int
    block_type: Optional[str] = None
    block_name: Optional[str] = None
    block_duration_minutes: Optional[int] = None
    time_cap_minutes: Optional[int] = None
    rounds: Optional[int] = None
    instructions: Optional[str] = None
    order: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    exercises: List[PlanDayExerciseRow] = Field(default_factory=list)

    @field_validator("exercises", mode="before")
    @classmethod
    def _exercises(cls, value: Any) -> Any:
        return _as_list(value)


class PlanDayRow(CamelModel):
    id: int
    workout_id: int
    date: str
    instructions: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    day_number: Optional[int] = None
    is_complete: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    blocks: List[WorkoutBlockRow] = Field(default_factory=list)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value: Any) -> Any:
        return _date_to_str(value)

    @field_validator("blocks", mode="before")
    @classmethod
    def _blocks(cls, value: Any) -> Any:
        return _as_list(value)


class WorkoutRow(CamelModel):
    id: int
    user_id: int
    start_date: str
    end_date: str
    prompt_id: Optional[int] = None
    is_active: Optional[bool] = None
    completed: Optional[bool] = None
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    plan_days: List[PlanDayRow] = Field(default_factory=list)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _dates(cls, value: Any) -> Any:
        return _date_to_str(value)

    @field_validator("plan_days", mode="before")
    @classmethod
    def _plan_days(cls, value: Any) -> Any:
        return _as_list(value)


class PromptRecord(CamelModel):
    id: int
    user_id: int
    prompt: str
    response: str
    thread_id: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Response models (non-null with explicit defaults)
# ---------------------------------------------------------------------------


class ExerciseDetails(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    category: str
    difficulty: str
    equipment: Optional[str] = None
    instructions: Optional[str] = None
    link: Optional[str] = None
    muscles_targeted: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PlanDayExerciseWithDetails(CamelModel):
    id: int
    workout_block_id: int
    exercise_id: int
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    duration: Optional[int] = None
    rest_time: Optional[int] = None
    completed: bool = False
    notes: Optional[str] = None
    order: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    exercise: ExerciseDetails


class WorkoutBlockWithExercises(CamelModel):
    id: int
    plan_day_id: int
    block_type: Optional[str] = None
    block_name: Optional[str] = None
    block_duration_minutes: Optional[int] = None
    time_cap_minutes: Optional[int] = None
    rounds: Optional[int] = None
    instructions: Optional[str] = None
    order: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    exercises: List[PlanDayExerciseWithDetails] = Field(default_factory=list)


class PlanDayWithExercises(CamelModel):
    id: int
    workout_id: int
    date: str
    instructions: Optional[str] = None
    name: str
    description: Optional[str] = None
    day_number: int
    is_complete: bool = False
    created_at: datetime
    updated_at: datetime
    blocks: List[WorkoutBlockWithExercises] = Field(default_factory=list)

    @property
    def exercise_count(self) -> int:
        return sum(len(block.exercises) for block in self.blocks)


class WorkoutWithDetails(CamelModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    start_date: str
    end_date: str
    prompt_id: Optional[int] = None
    is_active: bool = False
    completed: bool = False
    created_at: datetime
    updated_at: datetime
    plan_days: List[PlanDayWithExercises] = Field(default_factory=list)

    @property
    def exercise_count(self) -> int:
        return sum(day.exercise_count for day in self.plan_days)
