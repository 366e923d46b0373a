"""Tests for chunked, single-shot and daily generation strategies."""
import asyncio

import pytest

from fakes import HANG, as_json, block, day, make_profile, plan_document
from workout_planner_api.errors import GenerationCancelledError, GenerationFailedError, GenerationParseError
from workout_planner_api.generation.orchestrator import ToolCallingOrchestrator
from workout_planner_api.generation.plan_generator import PlanGenerator, duration_violations
from workout_planner_api.generation.schemas import GeneratedDailyWorkout, parse_plan_document
from workout_planner_api.models import PlanDayRow


def short_plan(day_numbers, minutes=20):
    document = plan_document(day_numbers)
    for generated_day in document["workoutPlan"]:
        generated_day["blocks"] = [block(minutes=minutes)]
    return document


@pytest.fixture
def generator(chat_model, conversation_store, catalog, store):
    orchestrator = ToolCallingOrchestrator(chat_model, conversation_store, catalog.search)
    return PlanGenerator(
        orchestrator,
        store,
        chunk_size=2,
        day_count_retries=2,
        duration_reprompts=1,
        duration_tolerance=5,
    )


class TestDurationViolations:
    def test_days_outside_window(self):
        days = parse_plan_document(short_plan([1, 2])).workout_plan
        days[1].blocks[0].block_duration_minutes = 44

        assert duration_violations(days, 45, 5) == [(1, 20)]

    def test_no_target(self):
        days = parse_plan_document(short_plan([1])).workout_plan
        assert duration_violations(days, 0, 5) == []


@pytest.mark.asyncio
async def test_chunked_generation_shares_one_thread(generator, chat_model, store):
    chat_model.queue(as_json(plan_document([1, 2])), as_json(plan_document([3], name="Ignored")))

    outcome = await generator.generate_plan(1, make_profile(), "thread-1")

    assert outcome.strategy == "chunked"
    assert outcome.document.name == "Strength Builder"
    assert [d.day for d in outcome.document.workout_plan] == [1, 2, 3]
    assert outcome.llm_calls == 2
    assert outcome.prompt_ids == [1, 2]
    assert outcome.prompt_id == 1
    assert len(store.prompts) == 2
    assert all(p.thread_id == "thread-1" for p in store.prompts.values())
    # The second chunk sees the first chunk's exchange
    assert [m.role for m in chat_model.calls[1]] == ["system", "human", "ai", "human"]
    assert "part 2 of 2" in chat_model.calls[1][0].content


@pytest.mark.asyncio
async def test_chunk_failure_falls_back_to_single_shot(generator, chat_model, store):
    chat_model.queue("I cannot do that", as_json(plan_document([1, 2, 3])))

    outcome = await generator.generate_plan(1, make_profile(), "thread-1", feedback="more legs")

    assert outcome.strategy == "single_shot"
    assert len(outcome.document.workout_plan) == 3
    assert len(store.prompts) == 1
    assert "exactly 3 days" in chat_model.calls[1][0].content
    assert chat_model.calls[1][-1].content.startswith('SPECIFIC USER FEEDBACK: "more legs"')


@pytest.mark.asyncio
async def test_wrong_chunk_day_count_falls_back(generator, chat_model):
    chat_model.queue(as_json(plan_document([1])), as_json(plan_document([1, 2, 3])))

    outcome = await generator.generate_plan(1, make_profile(), "thread-1")

    assert outcome.strategy == "single_shot"


@pytest.mark.asyncio
async def test_both_strategies_failing(generator, chat_model):
    chat_model.queue("nope", "still nope")

    with pytest.raises(GenerationFailedError) as exc_info:
        await generator.generate_plan(1, make_profile(), "thread-1")

    assert isinstance(exc_info.value.__cause__, GenerationParseError)


@pytest.mark.asyncio
async def test_cancellation_skips_fallback(generator, chat_model):
    chat_model.queue(HANG)
    cancel_event = asyncio.Event()

    task = asyncio.create_task(generator.generate_plan(1, make_profile(), "thread-1", cancel_event=cancel_event))
    await asyncio.wait_for(chat_model.started.wait(), timeout=1)
    cancel_event.set()

    with pytest.raises(GenerationCancelledError):
        await asyncio.wait_for(task, timeout=1)
    assert len(chat_model.calls) == 1


@pytest.mark.asyncio
async def test_single_shot_day_count_reprompt(generator, chat_model, store):
    chat_model.queue(as_json(plan_document([1, 2])), as_json(plan_document([1, 2, 3])))

    outcome = await generator.generate_single_shot(1, make_profile(), "thread-1")

    assert len(outcome.document.workout_plan) == 3
    assert outcome.llm_calls == 2
    assert outcome.prompt_ids == [1, 2]
    assert "generated 2 days instead of the required 3" in chat_model.calls[1][-1].content


@pytest.mark.asyncio
async def test_single_shot_day_count_retries_are_bounded(generator, chat_model):
    generator.day_count_retries = 1
    chat_model.queue(as_json(plan_document([1])), as_json(plan_document([1])))

    with pytest.raises(GenerationParseError, match="expected 3"):
        await generator.generate_single_shot(1, make_profile(), "thread-1")
    assert len(chat_model.calls) == 2


@pytest.mark.asyncio
async def test_duration_reprompt_then_accept(generator, chat_model):
    chat_model.queue(as_json(short_plan([1, 2, 3])), as_json(plan_document([1, 2, 3])))

    outcome = await generator.generate_single_shot(1, make_profile(), "thread-1")

    assert outcome.document.workout_plan[0].total_block_minutes == 45
    correction = chat_model.calls[1][-1].content
    assert "session length requirement is 45 minutes" in correction
    assert "day 1 totals 20 minutes" in correction


@pytest.mark.asyncio
async def test_duration_reprompts_are_bounded(generator, chat_model):
    chat_model.queue(as_json(short_plan([1, 2, 3])), as_json(short_plan([1, 2, 3], minutes=25)))

    outcome = await generator.generate_single_shot(1, make_profile(), "thread-1")

    # Accepted with a warning after the single re-prompt
    assert outcome.document.workout_plan[0].total_block_minutes == 25
    assert len(chat_model.calls) == 2


@pytest.mark.asyncio
async def test_generate_daily(generator, chat_model, store):
    plan_day = PlanDayRow.model_validate({"id": 4, "workout_id": 1, "date": "2025-01-08", "name": "Legs", "day_number": 2})
    chat_model.queue(as_json(day(2, name="Upper Body")))

    outcome = await generator.generate_daily(
        1, make_profile(), "thread-1", plan_day, "make it harder", styles=["crossfit"]
    )

    assert isinstance(outcome.document, GeneratedDailyWorkout)
    assert outcome.document.name == "Upper Body"
    assert outcome.strategy == "daily"
    system_prompt = chat_model.calls[0][0].content
    assert "day 2 of the user's current plan" in system_prompt
    assert "PREVIOUS VERSION OF THIS DAY" in system_prompt
    assert "Preferred styles: crossfit" in system_prompt
    assert len(store.prompts) == 1
