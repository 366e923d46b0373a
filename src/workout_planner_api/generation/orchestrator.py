"""Two-round tool-calling exchange with the chat model.

Round one sends the system prompt, the thread history and the new user
message. If the answer contains ``EXERCISE_SEARCH_REQUEST: {...}`` lines,
every request is run against the exercise catalog and all result sets go
back to the model in a single follow-up call, whose answer is final.
Otherwise the first answer is final. The final answer must be a JSON
document (optionally wrapped in a Markdown code fence).
"""
import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from pydantic import ValidationError

from workout_planner_api.ai.chat import ChatMessage, ChatModel, ChatResponse, TokenUsage
from workout_planner_api.errors import GenerationCancelledError, GenerationParseError
from workout_planner_api.models import ExerciseMetadata, ExerciseSearchFilters
from .conversation import ConversationStore
from .prompts import SEARCH_REQUEST_MARKER, format_search_results


logger = logging.getLogger(__name__)

SEARCH_REQUEST_PATTERN = re.compile(SEARCH_REQUEST_MARKER + r":\s*(\{[^{}]*\})")
JSON_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?([\s\S]*?)\n?```$")

ExerciseSearch = Callable[[ExerciseSearchFilters], Awaitable[List[ExerciseMetadata]]]


class ExchangeState(str, Enum):
    AWAITING_DESIGN = "awaiting_design"
    AWAITING_FINAL = "awaiting_final"
    COMPLETE = "complete"


@dataclass
class ExchangeResult:
    """Outcome of one exchange: the parsed document plus what produced it."""

    document: Any
    raw_response: str
    system_prompt: str
    user_message: str
    thread_id: str
    search_requests: List[ExerciseSearchFilters] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    llm_calls: int = 0
    state: ExchangeState = ExchangeState.COMPLETE


def extract_search_requests(text: str) -> List[ExerciseSearchFilters]:
    """Parse every search request in a model answer, skipping malformed ones."""
    requests = []
    for match in SEARCH_REQUEST_PATTERN.finditer(text or ""):
        fragment = match.group(1)
        try:
            requests.append(ExerciseSearchFilters.model_validate(json.loads(fragment)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Skipping malformed exercise search request {fragment!r}: {e}")
    return requests


def clean_json_response(text: str) -> str:
    """Strip a surrounding ```json fence; fall back to the trimmed text."""
    trimmed = (text or "").strip()
    match = JSON_FENCE_PATTERN.match(trimmed)
    return match.group(1).strip() if match else trimmed


def parse_json_document(text: str) -> Any:
    cleaned = clean_json_response(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(
            f"Failed to parse model response as JSON: {e} "
            f"(length={len(text or '')}, ends with {(text or '')[-100:]!r})"
        )
        raise GenerationParseError(f"Failed to parse AI response as JSON: {e}", text) from e


class ToolCallingOrchestrator:
    """Runs exchanges for one chat model against one conversation store."""

    def __init__(self, chat_model: ChatModel, conversation_store: ConversationStore, search: ExerciseSearch):
        self.chat_model = chat_model
        self.conversation_store = conversation_store
        self.search = search

    async def run(
        self,
        thread_id: str,
        system_prompt: str,
        user_message: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExchangeResult:
        """
        Execute one exchange and record it on the thread.

        Raises:
            GenerationCancelledError: If ``cancel_event`` fires before the final answer
            GenerationParseError: If the final answer is truncated or not JSON
        """
        started = time.monotonic()
        state = ExchangeState.AWAITING_DESIGN

        history = await self.conversation_store.get_messages(thread_id)
        messages = [ChatMessage.system(system_prompt), *history, ChatMessage.human(user_message)]
        logger.info(
            f"Calling {self.chat_model.provider} model {self.chat_model.model} "
            f"(thread={thread_id}, history={len(history)} messages)"
        )

        first = await self._invoke(messages, cancel_event)
        usage = first.usage
        llm_calls = 1

        requests = extract_search_requests(first.content)
        final = first
        if requests:
            state = ExchangeState.AWAITING_FINAL
            results = []
            for filters in requests:
                self._raise_if_cancelled(cancel_event)
                results.append((filters, await self.search(filters)))
            logger.info(
                f"Answering {len(requests)} exercise search request(s) with "
                f"{sum(len(found) for _, found in results)} exercises (thread={thread_id})"
            )
            follow_up = [
                *messages,
                ChatMessage.ai(first.content),
                ChatMessage.human(format_search_results(results)),
            ]
            final = await self._invoke(follow_up, cancel_event)
            usage = usage + final.usage
            llm_calls += 1

        if final.truncated:
            logger.error(
                f"Model response was truncated at the token limit "
                f"(length={len(final.content)}, last 200 chars {final.content[-200:]!r})"
            )
            raise GenerationParseError(
                "AI response was truncated at the token limit. Please try again with shorter feedback.",
                final.content,
            )

        document = parse_json_document(final.content)

        await self.conversation_store.append(
            thread_id, [ChatMessage.human(user_message), ChatMessage.ai(final.content)]
        )
        state = ExchangeState.COMPLETE

        logger.info(
            f"Exchange complete in {time.monotonic() - started:.1f}s "
            f"(thread={thread_id}, calls={llm_calls}, tokens={usage.total_tokens})"
        )
        return ExchangeResult(
            document=document,
            raw_response=final.content,
            system_prompt=system_prompt,
            user_message=user_message,
            thread_id=thread_id,
            search_requests=requests,
            usage=usage,
            llm_calls=llm_calls,
            state=state,
        )

    @staticmethod
    def _raise_if_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelledError()

    async def _invoke(self, messages: Sequence[ChatMessage], cancel_event: Optional[asyncio.Event]) -> ChatResponse:
        if cancel_event is None:
            return await self.chat_model.invoke(messages)

        self._raise_if_cancelled(cancel_event)
        call = asyncio.ensure_future(self.chat_model.invoke(messages))
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({call, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (call, cancelled):
                if not task.done():
                    task.cancel()

        if call in done:
            return call.result()
        logger.info("Generation cancelled while waiting for the model")
        raise GenerationCancelledError()
