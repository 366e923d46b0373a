"""Workout generation and regeneration entry points.

The service compiles prompts from the user's profile, runs the generation
strategies, schedules the generated days onto calendar dates and persists
the workout hierarchy. Per user it tracks a small state machine:

    IDLE -> GENERATING -> SCHEDULING -> COMPLETE | FAILED

No workout rows are written before the model's final document has been
parsed and validated; the previous plan is deactivated in the same
transaction that creates the new one, so a cancelled or failed generation
leaves the current plan active.
"""
import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from workout_planner_api.ai.chat import ChatModel, create_chat_model
from workout_planner_api.ai.client_factory import AIRequestContext
from workout_planner_api.errors import (
    GenerationInProgressError,
    PlanDayNotFoundError,
    ProfileIncompleteError,
    ProfileNotFoundError,
    StoreError,
)
from workout_planner_api.generation.conversation import ConversationStore
from workout_planner_api.generation.orchestrator import ToolCallingOrchestrator
from workout_planner_api.generation.plan_generator import GenerationOutcome, PlanGenerator
from workout_planner_api.generation.scheduler import assign_plan_dates, plan_end_date, resolve_timezone_today
from workout_planner_api.generation.schemas import GeneratedDay, GeneratedExercise, GeneratedPlan
from workout_planner_api.models import (
    ExerciseRow,
    PlanDayExerciseRow,
    PlanDayRow,
    PlanDayWithExercises,
    Profile,
    ProfileUpdate,
    WorkoutRow,
    WorkoutWithDetails,
)
from workout_planner_api.storage.base import ProfileRepository, PromptRepository
from .exercise_catalog import ExerciseCatalog
from .workout_persistence import WorkoutPersistence


logger = logging.getLogger(__name__)

ChatModelFactory = Callable[[Profile, AIRequestContext], ChatModel]


class GenerationState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    SCHEDULING = "scheduling"
    COMPLETE = "complete"
    FAILED = "failed"


class GenerationTracker:
    """
    Per-user generation state and cancel signals for this process.

    In-flight states are kept until the run finishes. Terminal states
    (COMPLETE or FAILED) are kept for the most recent ``max_finished`` users
    only; older ones fall back to IDLE.
    """

    _IN_FLIGHT = (GenerationState.GENERATING, GenerationState.SCHEDULING)

    def __init__(self, max_finished: int = 1000):
        self.max_finished = max_finished
        self._states: Dict[int, GenerationState] = {}
        self._finished: "OrderedDict[int, GenerationState]" = OrderedDict()
        self._cancel_events: Dict[int, asyncio.Event] = {}

    def state(self, user_id: int) -> GenerationState:
        if user_id in self._states:
            return self._states[user_id]
        return self._finished.get(user_id, GenerationState.IDLE)

    def start(self, user_id: int, cancel_event: Optional[asyncio.Event] = None) -> asyncio.Event:
        if self.state(user_id) in self._IN_FLIGHT:
            raise GenerationInProgressError(user_id)
        event = cancel_event or asyncio.Event()
        self._cancel_events[user_id] = event
        self._transition(user_id, GenerationState.GENERATING)
        self._finished.pop(user_id, None)
        return event

    def scheduling(self, user_id: int) -> None:
        self._transition(user_id, GenerationState.SCHEDULING)

    def finish(self, user_id: int, succeeded: bool) -> None:
        state = GenerationState.COMPLETE if succeeded else GenerationState.FAILED
        logger.info(f"Generation state for user {user_id}: {self.state(user_id).value} -> {state.value}")
        self._cancel_events.pop(user_id, None)
        self._states.pop(user_id, None)
        self._finished[user_id] = state
        self._finished.move_to_end(user_id)
        while len(self._finished) > self.max_finished:
            self._finished.popitem(last=False)

    def cancel(self, user_id: int) -> bool:
        """Signal the user's generation to stop; only effective before scheduling starts."""
        event = self._cancel_events.get(user_id)
        if event is None or self.state(user_id) != GenerationState.GENERATING:
            return False
        event.set()
        logger.info(f"Cancelled active generation for user {user_id}")
        return True

    def _transition(self, user_id: int, state: GenerationState) -> None:
        previous = self.state(user_id)
        self._states[user_id] = state
        logger.info(f"Generation state for user {user_id}: {previous.value} -> {state.value}")


def default_chat_model_factory(profile: Profile, context: AIRequestContext) -> ChatModel:
    """Use the provider and model chosen on the profile, else the configured ones."""
    return create_chat_model(profile.ai_provider, profile.ai_model, context)


def _plan_day_items(plan_day: PlanDayRow) -> List[PlanDayExerciseRow]:
    return [item for block in plan_day.blocks for item in block.exercises]


def _exercise_names(days: Iterable[GeneratedDay]) -> List[str]:
    return [exercise.exercise_name for day in days for block in day.blocks for exercise in block.exercises]


def _block_values(block: Any, order: int) -> Dict[str, Any]:
    return {
        "block_type": block.block_type,
        "block_name": block.block_name,
        "block_duration_minutes": block.block_duration_minutes,
        "time_cap_minutes": block.time_cap_minutes,
        "rounds": block.rounds,
        "instructions": block.instructions,
        "order": block.order if block.order is not None else order,
    }


class WorkoutService:
    def __init__(
        self,
        profiles: ProfileRepository,
        catalog: ExerciseCatalog,
        persistence: WorkoutPersistence,
        prompts: PromptRepository,
        conversation_store: ConversationStore,
        chat_model_factory: ChatModelFactory = default_chat_model_factory,
        today: Callable[[Optional[str]], date] = resolve_timezone_today,
        tracker: Optional[GenerationTracker] = None,
    ):
        self.profiles = profiles
        self.catalog = catalog
        self.persistence = persistence
        self.prompts = prompts
        self.conversation_store = conversation_store
        self.chat_model_factory = chat_model_factory
        self.today = today
        self.tracker = tracker or GenerationTracker()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def get_generation_state(self, user_id: int) -> GenerationState:
        return self.tracker.state(user_id)

    def cancel_user_generation(self, user_id: int) -> bool:
        return self.tracker.cancel(user_id)

    # ------------------------------------------------------------------
    # Full plan
    # ------------------------------------------------------------------

    async def generate_workout_plan(
        self,
        user_id: int,
        custom_feedback: Optional[str] = None,
        timezone: Optional[str] = None,
        thread_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> WorkoutWithDetails:
        """
        Generate, schedule and persist a new active workout plan.

        Args:
            user_id: Owner of the plan
            custom_feedback: Free-text feedback forwarded to the model
            timezone: IANA timezone used to decide "today"
            thread_id: Conversation thread; a new one is created when omitted
            cancel_event: Set to abort the generation before anything is written

        Returns:
            The persisted workout with plan days, blocks and exercises

        Raises:
            ProfileNotFoundError, ProfileIncompleteError: Before any model call
            GenerationFailedError: Both generation strategies failed
            GenerationCancelledError: ``cancel_event`` fired during generation
            ActiveWorkoutConflictError: A concurrent generation won the active slot
        """
        event = self.tracker.start(user_id, cancel_event)
        try:
            workout = await self._generate_workout_plan(user_id, custom_feedback, timezone, thread_id, event)
        except Exception:
            self.tracker.finish(user_id, succeeded=False)
            raise
        self.tracker.finish(user_id, succeeded=True)
        return workout

    async def _generate_workout_plan(
        self,
        user_id: int,
        custom_feedback: Optional[str],
        timezone: Optional[str],
        thread_id: Optional[str],
        cancel_event: asyncio.Event,
    ) -> WorkoutWithDetails:
        started = time.monotonic()
        profile = await self._load_profile(user_id)
        thread_id = thread_id or str(uuid.uuid4())

        generator = self._plan_generator(profile, user_id, thread_id)
        outcome = await generator.generate_plan(user_id, profile, thread_id, custom_feedback, cancel_event)

        self.tracker.scheduling(user_id)
        workout = await self._schedule_plan(user_id, profile, outcome, timezone)

        self._log_usage(user_id, outcome, started)
        return self.persistence.transform_workout(workout)

    async def regenerate_workout_plan(
        self,
        user_id: int,
        custom_feedback: Optional[str] = None,
        profile_data: Optional[Union[ProfileUpdate, Dict[str, Any]]] = None,
        thread_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        timezone: Optional[str] = None,
    ) -> WorkoutWithDetails:
        """
        Persist profile changes, then generate a replacement for the active plan.

        The user's generation slot is claimed before the profile is written,
        so a request rejected with GenerationInProgressError changes nothing.
        """
        event = self.tracker.start(user_id, cancel_event)
        try:
            if profile_data:
                update = profile_data if isinstance(profile_data, ProfileUpdate) else ProfileUpdate.model_validate(profile_data)
                await self.profiles.upsert_profile(user_id, update)
                logger.info(f"Updated profile for user {user_id} before regeneration")
            workout = await self._generate_workout_plan(user_id, custom_feedback, timezone, thread_id, event)
        except Exception:
            self.tracker.finish(user_id, succeeded=False)
            raise
        self.tracker.finish(user_id, succeeded=True)
        return workout

    async def _schedule_plan(
        self,
        user_id: int,
        profile: Profile,
        outcome: GenerationOutcome,
        timezone: Optional[str],
    ) -> WorkoutRow:
        plan: GeneratedPlan = outcome.document
        today = self.today(timezone)
        dates = assign_plan_dates(profile.available_days, len(plan.workout_plan), today)

        await self.catalog.add_new_exercises(plan.exercises_to_add)
        resolved = await self.catalog.resolve_names(_exercise_names(plan.workout_plan))

        workout = await self.persistence.create_active_workout(
            {
                "user_id": user_id,
                "prompt_id": outcome.prompt_id,
                "start_date": today,
                "end_date": plan_end_date(today, dates),
                "name": plan.name,
                "description": plan.description,
                "completed": False,
            }
        )
        logger.info(f"Created workout {workout.id} for user {user_id}, scheduling {len(dates)} plan days")

        exercise_count = 0
        for index, (day, scheduled) in enumerate(zip(plan.workout_plan, dates)):
            plan_day = await self.persistence.create_plan_day(
                {
                    "workout_id": workout.id,
                    "date": scheduled,
                    "instructions": day.instructions,
                    "name": day.name,
                    "description": day.description,
                    "day_number": index,
                    "is_complete": False,
                }
            )
            for block_index, block in enumerate(day.blocks):
                block_row = await self.persistence.create_workout_block(
                    {"plan_day_id": plan_day.id, **_block_values(block, block_index + 1)}
                )
                exercise_count += await self._write_exercises(block_row.id, block.exercises, resolved)

        logger.info(f"Persisted workout {workout.id}: {len(dates)} plan days, {exercise_count} exercises")
        persisted = await self.persistence.get_workout(workout.id)
        if persisted is None:
            raise StoreError(f"Workout {workout.id} disappeared while scheduling")
        return persisted

    # ------------------------------------------------------------------
    # Single day
    # ------------------------------------------------------------------

    async def regenerate_daily_workout(
        self,
        user_id: int,
        plan_day_id: int,
        regeneration_reason: Optional[str],
        styles: Optional[Sequence[str]] = None,
        thread_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PlanDayWithExercises:
        """
        Regenerate one plan day in place.

        The plan day and its existing blocks keep their ids; the block
        exercises (and the logs referencing them) are replaced, and the day
        is marked incomplete again.
        """
        event = self.tracker.start(user_id, cancel_event)
        started = time.monotonic()
        try:
            plan_day = await self._regenerate_daily(user_id, plan_day_id, regeneration_reason, styles, thread_id, event, started)
        except Exception as e:
            self.tracker.finish(user_id, succeeded=False)
            logger.error(
                f"Daily workout regeneration failed for user {user_id}, plan day {plan_day_id} "
                f"after {time.monotonic() - started:.1f}s: {e}"
            )
            raise
        self.tracker.finish(user_id, succeeded=True)
        return plan_day

    async def _regenerate_daily(
        self,
        user_id: int,
        plan_day_id: int,
        regeneration_reason: Optional[str],
        styles: Optional[Sequence[str]],
        thread_id: Optional[str],
        cancel_event: asyncio.Event,
        started: float,
    ) -> PlanDayWithExercises:
        existing = await self.persistence.get_plan_day(plan_day_id)
        if existing is None:
            raise PlanDayNotFoundError(plan_day_id)
        owner = await self.persistence.get_workout_owner(existing.workout_id)
        if owner != user_id:
            raise PlanDayNotFoundError(plan_day_id)

        profile = await self._load_profile(user_id)
        thread_id = thread_id or str(uuid.uuid4())
        previous_items = _plan_day_items(existing)
        is_rest_day = "rest day" in (existing.name or "").lower() or not previous_items
        logger.info(
            f"Regenerating plan day {plan_day_id} for user {user_id} "
            f"({len(existing.blocks)} blocks, {len(previous_items)} exercises, rest_day={is_rest_day})"
        )

        generator = self._plan_generator(profile, user_id, thread_id)
        outcome = await generator.generate_daily(
            user_id,
            profile,
            thread_id,
            existing,
            regeneration_reason,
            styles=styles,
            is_rest_day=is_rest_day,
            cancel_event=cancel_event,
        )

        self.tracker.scheduling(user_id)
        daily = outcome.document
        await self.catalog.add_new_exercises(daily.exercises_to_add)
        resolved = await self.catalog.resolve_names(_exercise_names([daily]))

        await self.persistence.remove_plan_day_exercises([item.id for item in previous_items])

        existing_blocks = list(existing.blocks)
        exercise_count = 0
        for index, block in enumerate(daily.blocks):
            values = _block_values(block, index + 1)
            if index < len(existing_blocks):
                block_row = await self.persistence.update_workout_block(existing_blocks[index].id, values)
            else:
                block_row = await self.persistence.create_workout_block({"plan_day_id": plan_day_id, **values})
            exercise_count += await self._write_exercises(block_row.id, block.exercises, resolved)
        await self.persistence.remove_workout_blocks([block.id for block in existing_blocks[len(daily.blocks):]])

        await self.persistence.update_plan_day(
            plan_day_id,
            {
                "name": daily.name or existing.name,
                "description": daily.description or existing.description,
                "instructions": daily.instructions,
                "is_complete": False,
            },
        )

        updated = await self.persistence.get_plan_day(plan_day_id)
        if updated is None:
            raise PlanDayNotFoundError(plan_day_id)

        logger.info(
            f"Regenerated plan day {plan_day_id} with {len(daily.blocks)} blocks and {exercise_count} exercises"
        )
        self._log_usage(user_id, outcome, started)
        return self.persistence.transform_plan_day(updated, index=existing.day_number or 0)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_profile(self, user_id: int) -> Profile:
        profile = await self.profiles.get_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        missing = profile.missing_required_fields()
        if missing:
            raise ProfileIncompleteError(missing)
        return profile

    def _plan_generator(self, profile: Profile, user_id: int, thread_id: str) -> PlanGenerator:
        context = AIRequestContext(
            user_id=str(user_id),
            session_id=thread_id,
            feature_name="workout_generation",
        )
        chat_model = self.chat_model_factory(profile, context)
        orchestrator = ToolCallingOrchestrator(chat_model, self.conversation_store, self.catalog.search)
        return PlanGenerator(orchestrator, self.prompts)

    async def _write_exercises(
        self,
        block_id: int,
        exercises: Sequence[GeneratedExercise],
        resolved: Dict[str, ExerciseRow],
    ) -> int:
        written = 0
        for index, exercise in enumerate(exercises):
            match = resolved.get(exercise.exercise_name)
            if match is None:
                continue
            await self.persistence.create_plan_day_exercise(
                {
                    "workout_block_id": block_id,
                    "exercise_id": match.id,
                    "sets": exercise.sets,
                    "reps": exercise.reps,
                    "weight": exercise.weight,
                    "duration": exercise.duration,
                    "rest_time": exercise.rest_time,
                    "notes": exercise.notes,
                    "order": exercise.order if exercise.order is not None else index + 1,
                }
            )
            written += 1
        return written

    @staticmethod
    def _log_usage(user_id: int, outcome: GenerationOutcome, started: float) -> None:
        usage = outcome.usage
        logger.info(
            f"{outcome.strategy} generation for user {user_id} finished in {time.monotonic() - started:.1f}s: "
            f"{outcome.llm_calls} model calls, {usage.total_tokens} tokens "
            f"({usage.input_tokens} in / {usage.output_tokens} out)"
        )
