"""Generation strategies on top of the tool-calling orchestrator.

Full plans are first generated in chunks of a few days, each chunk a full
exchange on the user's thread; when that fails the whole plan is requested
in one document. Single-shot answers with the wrong number of days get a
bounded number of corrective re-prompts, and so do days whose block
durations miss the session length. Each exchange that yields a JSON
document is recorded as a prompt audit row.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

from workout_planner_api.ai.chat import TokenUsage
from workout_planner_api.config import settings
from workout_planner_api.errors import GenerationCancelledError, GenerationFailedError, GenerationParseError
from workout_planner_api.models import PlanDayRow, Profile
from workout_planner_api.storage.base import PromptRepository
from .block_config import BlockDefaults
from .orchestrator import ExchangeResult, ToolCallingOrchestrator
from .prompts import (
    build_chunk_user_message,
    build_day_count_correction,
    build_duration_correction,
    build_system_prompt,
    build_user_message,
    format_previous_workout,
    plan_chunks,
)
from .schemas import GeneratedDailyWorkout, GeneratedDay, GeneratedPlan, parse_daily_document, parse_plan_document


logger = logging.getLogger(__name__)

Document = Union[GeneratedPlan, GeneratedDailyWorkout]


@dataclass
class GenerationOutcome:
    document: Document
    strategy: str
    prompt_ids: List[int] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    llm_calls: int = 0

    @property
    def prompt_id(self) -> Optional[int]:
        return self.prompt_ids[0] if self.prompt_ids else None


def duration_violations(days: Sequence[GeneratedDay], target: int, tolerance: int) -> List[Tuple[int, int]]:
    """(1-based day, total minutes) for every day outside ``target`` +/- ``tolerance``."""
    if not target:
        return []
    return [
        (index + 1, day.total_block_minutes)
        for index, day in enumerate(days)
        if abs(day.total_block_minutes - target) > tolerance
    ]


def _days_of(document: Document) -> List[GeneratedDay]:
    if isinstance(document, GeneratedPlan):
        return document.workout_plan
    return [document]


class PlanGenerator:
    def __init__(
        self,
        orchestrator: ToolCallingOrchestrator,
        prompt_repository: PromptRepository,
        chunk_size: Optional[int] = None,
        day_count_retries: Optional[int] = None,
        duration_reprompts: Optional[int] = None,
        duration_tolerance: Optional[int] = None,
    ):
        self.orchestrator = orchestrator
        self.prompt_repository = prompt_repository
        self.chunk_size = chunk_size or settings.GENERATION_CHUNK_SIZE
        self.day_count_retries = settings.DAY_COUNT_RETRY_ATTEMPTS if day_count_retries is None else day_count_retries
        self.duration_reprompts = (
            settings.DURATION_REPROMPT_ATTEMPTS if duration_reprompts is None else duration_reprompts
        )
        self.duration_tolerance = (
            settings.DURATION_TOLERANCE_MINUTES if duration_tolerance is None else duration_tolerance
        )

    # ------------------------------------------------------------------
    # Full plans
    # ------------------------------------------------------------------

    async def generate_plan(
        self,
        user_id: int,
        profile: Profile,
        thread_id: str,
        feedback: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationOutcome:
        """Chunked generation with a single-shot fallback."""
        try:
            return await self.generate_chunked(user_id, profile, thread_id, feedback, cancel_event)
        except GenerationCancelledError:
            raise
        except Exception as chunked_error:
            logger.warning(
                f"Chunked workout generation failed for user {user_id}, "
                f"falling back to single-shot generation: {chunked_error}"
            )

        try:
            outcome = await self.generate_single_shot(user_id, profile, thread_id, feedback, cancel_event)
        except GenerationCancelledError:
            raise
        except Exception as fallback_error:
            logger.error(f"Both chunked and single-shot generation failed for user {user_id}: {fallback_error}")
            raise GenerationFailedError(f"Workout generation failed: {fallback_error}") from fallback_error

        logger.info(f"Single-shot fallback generation succeeded for user {user_id}")
        return outcome

    async def generate_chunked(
        self,
        user_id: int,
        profile: Profile,
        thread_id: str,
        feedback: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationOutcome:
        total_days = len(profile.available_days) or 7
        windows = plan_chunks(total_days, self.chunk_size)
        defaults = BlockDefaults.for_styles(profile.preferred_styles, profile.workout_duration)
        logger.info(
            f"Generating {total_days} days in {len(windows)} chunks of {self.chunk_size} days for user {user_id}"
        )

        outcome: Optional[GenerationOutcome] = None
        days: List[GeneratedDay] = []
        exercises_to_add = []
        for window in windows:
            system_prompt = build_system_prompt(
                profile, "chunk", chunk=window, tolerance=self.duration_tolerance
            )
            chunk_outcome = await self._validated_exchange(
                user_id,
                profile,
                thread_id,
                system_prompt,
                build_chunk_user_message(window, feedback),
                parse=lambda result: parse_plan_document(result.document, defaults, result.raw_response),
                expected_days=window.day_count,
                day_count_retries=0,
                strategy="chunked",
                cancel_event=cancel_event,
            )
            chunk_plan = chunk_outcome.document
            days.extend(chunk_plan.workout_plan)
            exercises_to_add.extend(chunk_plan.exercises_to_add)

            if outcome is None:
                outcome = chunk_outcome
            else:
                outcome.prompt_ids.extend(chunk_outcome.prompt_ids)
                outcome.usage = outcome.usage + chunk_outcome.usage
                outcome.llm_calls += chunk_outcome.llm_calls
            logger.info(
                f"Generated chunk {window.chunk_number}/{window.total_chunks} "
                f"(days {window.start_day}-{window.end_day}) for user {user_id}"
            )

        first = outcome.document
        outcome.document = GeneratedPlan(
            name=first.name,
            description=first.description,
            workout_plan=days,
            exercises_to_add=exercises_to_add,
        )
        logger.info(f"Chunked generation produced {len(days)} days for user {user_id}")
        return outcome

    async def generate_single_shot(
        self,
        user_id: int,
        profile: Profile,
        thread_id: str,
        feedback: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationOutcome:
        total_days = len(profile.available_days) or 7
        defaults = BlockDefaults.for_styles(profile.preferred_styles, profile.workout_duration)
        return await self._validated_exchange(
            user_id,
            profile,
            thread_id,
            build_system_prompt(profile, "weekly", tolerance=self.duration_tolerance),
            build_user_message(feedback),
            parse=lambda result: parse_plan_document(result.document, defaults, result.raw_response),
            expected_days=total_days,
            day_count_retries=self.day_count_retries,
            strategy="single_shot",
            cancel_event=cancel_event,
        )

    # ------------------------------------------------------------------
    # Single day
    # ------------------------------------------------------------------

    async def generate_daily(
        self,
        user_id: int,
        profile: Profile,
        thread_id: str,
        plan_day: PlanDayRow,
        regeneration_reason: Optional[str],
        styles: Optional[Sequence[str]] = None,
        is_rest_day: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationOutcome:
        active_styles = list(styles) if styles else profile.preferred_styles
        defaults = BlockDefaults.for_styles(active_styles, profile.workout_duration)
        system_prompt = build_system_prompt(
            profile,
            "daily",
            day_number=plan_day.day_number if plan_day.day_number is not None else 1,
            is_rest_day=is_rest_day,
            previous_workout=format_previous_workout(plan_day),
            styles=active_styles,
            tolerance=self.duration_tolerance,
        )
        return await self._validated_exchange(
            user_id,
            profile,
            thread_id,
            system_prompt,
            build_user_message(regeneration_reason),
            parse=lambda result: parse_daily_document(result.document, defaults, result.raw_response),
            expected_days=None,
            day_count_retries=0,
            strategy="daily",
            cancel_event=cancel_event,
        )

    # ------------------------------------------------------------------
    # Exchange loop
    # ------------------------------------------------------------------

    async def _validated_exchange(
        self,
        user_id: int,
        profile: Profile,
        thread_id: str,
        system_prompt: str,
        user_message: str,
        parse: Callable[[ExchangeResult], Document],
        expected_days: Optional[int],
        day_count_retries: int,
        strategy: str,
        cancel_event: Optional[asyncio.Event],
    ) -> GenerationOutcome:
        outcome = GenerationOutcome(document=None, strategy=strategy)  # type: ignore[arg-type]
        target = profile.workout_duration or 0
        message = user_message
        day_count_attempts = 0
        duration_attempts = 0

        while True:
            result = await self.orchestrator.run(thread_id, system_prompt, message, cancel_event)
            outcome.usage = outcome.usage + result.usage
            outcome.llm_calls += result.llm_calls

            record = await self.prompt_repository.create_prompt(
                user_id=user_id,
                prompt=f"{system_prompt}\n\n{message}",
                response=result.raw_response,
                thread_id=thread_id,
            )
            outcome.prompt_ids.append(record.id)

            document = parse(result)
            days = _days_of(document)

            if expected_days is not None and len(days) != expected_days:
                if day_count_attempts < day_count_retries:
                    day_count_attempts += 1
                    logger.warning(
                        f"AI generated {len(days)} days instead of {expected_days} "
                        f"(attempt {day_count_attempts}/{day_count_retries}, user {user_id})"
                    )
                    message = build_day_count_correction(len(days), expected_days)
                    continue
                raise GenerationParseError(
                    f"Generated {len(days)} days, expected {expected_days}", result.raw_response
                )

            violations = duration_violations(days, target, self.duration_tolerance)
            if violations and duration_attempts < self.duration_reprompts:
                duration_attempts += 1
                logger.warning(
                    f"Days outside {target}+/-{self.duration_tolerance} minutes: {violations} "
                    f"(re-prompt {duration_attempts}/{self.duration_reprompts}, user {user_id})"
                )
                message = build_duration_correction(violations, target, self.duration_tolerance)
                continue
            if violations:
                logger.warning(
                    f"Accepting {strategy} workout for user {user_id} with days outside the "
                    f"duration window: {violations}"
                )

            outcome.document = document
            return outcome
