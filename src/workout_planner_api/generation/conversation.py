"""Conversation history keyed by thread id.

The orchestrator reads a thread's prior exchanges before each generation
and appends the new (user message, final response) pair afterwards. The
store is injected, so a shared backend can replace the in-process one.
Concurrent writers on the same thread are not supported.
"""
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from workout_planner_api.ai.chat import ChatMessage


logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    @abstractmethod
    async def get_messages(self, thread_id: str) -> List[ChatMessage]:
        """Return the thread's history, oldest first ([] for unknown threads)."""

    @abstractmethod
    async def append(self, thread_id: str, messages: Sequence[ChatMessage]) -> None:
        ...

    @abstractmethod
    async def clear(self, thread_id: str) -> None:
        ...

    async def message_count(self, thread_id: str) -> int:
        return len(await self.get_messages(thread_id))


@dataclass
class _Thread:
    messages: List[ChatMessage] = field(default_factory=list)
    touched_at: float = 0.0


class InMemoryConversationStore(ConversationStore):
    """Process-local store with idle expiry and least-recently-used eviction."""

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_threads: int = 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_threads = max_threads
        self._clock = clock or time.monotonic
        self._threads: "OrderedDict[str, _Thread]" = OrderedDict()

    def __len__(self) -> int:
        self._expire()
        return len(self._threads)

    def _expire(self) -> None:
        cutoff = self._clock() - self.ttl_seconds
        expired = [key for key, thread in self._threads.items() if thread.touched_at < cutoff]
        for key in expired:
            del self._threads[key]
        if expired:
            logger.debug(f"Expired {len(expired)} idle conversation threads")

    async def get_messages(self, thread_id: str) -> List[ChatMessage]:
        self._expire()
        thread = self._threads.get(thread_id)
        if thread is None:
            return []
        thread.touched_at = self._clock()
        self._threads.move_to_end(thread_id)
        return list(thread.messages)

    async def append(self, thread_id: str, messages: Sequence[ChatMessage]) -> None:
        self._expire()
        thread = self._threads.get(thread_id)
        if thread is None:
            thread = _Thread()
            self._threads[thread_id] = thread
        thread.messages.extend(messages)
        thread.touched_at = self._clock()
        self._threads.move_to_end(thread_id)

        while len(self._threads) > self.max_threads:
            evicted, _ = self._threads.popitem(last=False)
            logger.info(f"Evicted conversation thread {evicted} (capacity {self.max_threads})")

    async def clear(self, thread_id: str) -> None:
        if self._threads.pop(thread_id, None) is not None:
            logger.info(f"Cleared conversation thread {thread_id}")
