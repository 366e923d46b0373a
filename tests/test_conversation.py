"""Tests for the in-process conversation store."""
import pytest

from workout_planner_api.ai.chat import ChatMessage
from workout_planner_api.generation.conversation import InMemoryConversationStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def exchange(text: str):
    return [ChatMessage.human(text), ChatMessage.ai(f"answer to {text}")]


@pytest.mark.asyncio
async def test_unknown_thread_is_empty():
    store = InMemoryConversationStore()
    assert await store.get_messages("missing") == []
    assert await store.message_count("missing") == 0


@pytest.mark.asyncio
async def test_append_keeps_order():
    store = InMemoryConversationStore()
    await store.append("t1", exchange("first"))
    await store.append("t1", exchange("second"))

    messages = await store.get_messages("t1")

    assert [m.content for m in messages] == ["first", "answer to first", "second", "answer to second"]
    assert [m.role for m in messages] == ["human", "ai", "human", "ai"]


@pytest.mark.asyncio
async def test_returned_history_is_a_copy():
    store = InMemoryConversationStore()
    await store.append("t1", exchange("first"))

    messages = await store.get_messages("t1")
    messages.clear()

    assert await store.message_count("t1") == 2


@pytest.mark.asyncio
async def test_idle_threads_expire():
    clock = FakeClock()
    store = InMemoryConversationStore(ttl_seconds=60, clock=clock)
    await store.append("t1", exchange("first"))

    clock.now += 61

    assert await store.get_messages("t1") == []
    assert len(store) == 0


@pytest.mark.asyncio
async def test_reads_refresh_idle_time():
    clock = FakeClock()
    store = InMemoryConversationStore(ttl_seconds=60, clock=clock)
    await store.append("t1", exchange("first"))

    clock.now += 40
    assert await store.message_count("t1") == 2
    clock.now += 40

    assert await store.message_count("t1") == 2


@pytest.mark.asyncio
async def test_least_recently_used_thread_is_evicted():
    store = InMemoryConversationStore(max_threads=2)
    await store.append("t1", exchange("one"))
    await store.append("t2", exchange("two"))
    # Touch t1 so t2 becomes the oldest
    await store.get_messages("t1")

    await store.append("t3", exchange("three"))

    assert len(store) == 2
    assert await store.get_messages("t2") == []
    assert await store.message_count("t1") == 2
    assert await store.message_count("t3") == 2


@pytest.mark.asyncio
async def test_clear():
    store = InMemoryConversationStore()
    await store.append("t1", exchange("first"))

    await store.clear("t1")
    await store.clear("never-existed")

    assert await store.get_messages("t1") == []
