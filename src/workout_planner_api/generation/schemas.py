"""Schema for the workout documents the model returns.

Blocks are a tagged union on ``blockType``: timed formats must carry a time
cap, round-based formats must carry a round count. Documents are validated
right after JSON parsing; any violation surfaces as ``GenerationParseError``.
"""
import logging
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, Field, ValidationError, ValidationInfo, field_validator

from workout_planner_api.errors import GenerationParseError
from workout_planner_api.models import CamelModel, NewExercise
from .block_config import BlockDefaults, determine_rounds, determine_time_cap, generate_block_name


logger = logging.getLogger(__name__)

TIMED_BLOCK_TYPES = ("amrap", "emom", "for_time")
ROUNDS_BLOCK_TYPES = ("circuit", "flow", "tabata")


def _to_int(value: Any) -> Any:
    """Accept numeric strings ("12") and floats; drop ranges like "8-12"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(float(text))
        except ValueError:
            return None
    return value


class GeneratedExercise(CamelModel):
    exercise_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("exerciseName", "exercise_name", "name"),
    )
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    duration: Optional[int] = None
    rest_time: Optional[int] = None
    notes: Optional[str] = None
    order: Optional[int] = None

    @field_validator("sets", "reps", "duration", "rest_time", "order", mode="before")
    @classmethod
    def _ints(cls, value: Any) -> Any:
        return _to_int(value)

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return None
        return value


class _BlockBase(CamelModel):
    block_name: str
    block_duration_minutes: Optional[int] = Field(default=None, ge=0)
    instructions: Optional[str] = None
    order: Optional[int] = None
    exercises: List[GeneratedExercise] = Field(default_factory=list)

    @field_validator("block_duration_minutes", "order", mode="before")
    @classmethod
    def _ints(cls, value: Any) -> Any:
        return _to_int(value)


class TraditionalBlock(_BlockBase):
    block_type: Literal["traditional"]
    time_cap_minutes: Optional[int] = None
    rounds: Optional[int] = None


class TimedBlock(_BlockBase):
    block_type: Literal["amrap", "emom", "for_time"]
    time_cap_minutes: int = Field(ge=1)
    rounds: Optional[int] = None


class RoundsBlock(_BlockBase):
    block_type: Literal["circuit", "flow", "tabata"]
    rounds: int = Field(ge=1)
    time_cap_minutes: Optional[int] = None


class BookendBlock(_BlockBase):
    block_type: Literal["warmup", "cooldown"]
    time_cap_minutes: Optional[int] = None
    rounds: Optional[int] = None


GeneratedBlock = Annotated[
    Union[TraditionalBlock, TimedBlock, RoundsBlock, BookendBlock],
    Field(discriminator="block_type"),
]


class GeneratedDay(CamelModel):
    day: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    blocks: List[GeneratedBlock] = Field(default_factory=list)

    @field_validator("day", mode="before")
    @classmethod
    def _day(cls, value: Any) -> Any:
        return _to_int(value)

    @property
    def total_block_minutes(self) -> int:
        return sum(block.block_duration_minutes or 0 for block in self.blocks)

    @property
    def exercise_count(self) -> int:
        return sum(len(block.exercises) for block in self.blocks)


class GeneratedPlan(CamelModel):
    name: str = "Custom Workout Plan"
    description: str = "Comprehensive weekly workout plan"
    workout_plan: List[GeneratedDay]
    exercises_to_add: List[NewExercise] = Field(default_factory=list)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value


class GeneratedDailyWorkout(GeneratedDay):
    exercises_to_add: List[NewExercise] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Raw document normalisation
# ---------------------------------------------------------------------------


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _apply_block_defaults(block: Any, index: int, block_count: int, defaults: Optional[BlockDefaults]) -> Any:
    if not isinstance(block, dict) or defaults is None:
        return block

    block = dict(block)
    block_type = _first(block, "blockType", "block_type")
    if isinstance(block_type, str) and block_type.strip():
        block_type = block_type.strip().lower()
    else:
        block_type = defaults.block_type
    block["blockType"] = block_type
    block.pop("block_type", None)

    if _first(block, "blockName", "block_name") is None:
        block["blockName"] = generate_block_name(block_type, defaults.styles)

    duration = _to_int(_first(block, "blockDurationMinutes", "block_duration_minutes"))
    if duration is None and block_count == 1:
        duration = defaults.block_duration_minutes
        block["blockDurationMinutes"] = duration
    reference_minutes = duration or defaults.block_duration_minutes

    if block_type in TIMED_BLOCK_TYPES and _first(block, "timeCapMinutes", "time_cap_minutes") is None:
        block["timeCapMinutes"] = determine_time_cap(block_type, reference_minutes) or reference_minutes or None

    if block_type in ROUNDS_BLOCK_TYPES and _first(block, "rounds") is None:
        block["rounds"] = determine_rounds(block_type, reference_minutes)

    if _first(block, "order") is None:
        block["order"] = index + 1

    return block


def _normalise_day(day: Any, defaults: Optional[BlockDefaults]) -> Any:
    if not isinstance(day, dict):
        return day
    if _first(day, "blocks") is None and isinstance(day.get("exercises"), list):
        exercises = day["exercises"]
        day = {k: v for k, v in day.items() if k != "exercises"}
        day["blocks"] = [{"exercises": exercises}]
    blocks = day.get("blocks")
    if isinstance(blocks, list):
        day = dict(day)
        day["blocks"] = [
            _apply_block_defaults(block, i, len(blocks), defaults) for i, block in enumerate(blocks)
        ]
    return day


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors()[:5]:
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


def parse_plan_document(
    document: Any,
    defaults: Optional[BlockDefaults] = None,
    raw_response: Optional[str] = None,
) -> GeneratedPlan:
    """Validate a multi-day plan document, filling missing block metadata first."""
    if not isinstance(document, dict):
        raise GenerationParseError("Workout plan document must be a JSON object", raw_response)
    if not isinstance(document.get("workoutPlan", document.get("workout_plan")), list):
        raise GenerationParseError("Workout plan document is missing a workoutPlan array", raw_response)

    data = dict(document)
    plan_key = "workoutPlan" if "workoutPlan" in data else "workout_plan"
    data[plan_key] = [_normalise_day(day, defaults) for day in data[plan_key]]

    try:
        return GeneratedPlan.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Plan document failed schema validation: {_describe(e)}")
        raise GenerationParseError(f"Workout plan failed schema validation: {_describe(e)}", raw_response) from e


def parse_daily_document(
    document: Any,
    defaults: Optional[BlockDefaults] = None,
    raw_response: Optional[str] = None,
) -> GeneratedDailyWorkout:
    """Validate a single-day document, wrapping a flat exercise list into one block."""
    if not isinstance(document, dict):
        raise GenerationParseError("Daily workout document must be a JSON object", raw_response)

    # Some answers nest the day inside a one-item workoutPlan
    plan = document.get("workoutPlan")
    if "blocks" not in document and "exercises" not in document and isinstance(plan, list) and len(plan) == 1:
        document = {**plan[0], "exercisesToAdd": document.get("exercisesToAdd", [])}

    data = _normalise_day(document, defaults)
    try:
        return GeneratedDailyWorkout.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Daily document failed schema validation: {_describe(e)}")
        raise GenerationParseError(f"Daily workout failed schema validation: {_describe(e)}", raw_response) from e

