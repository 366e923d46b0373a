"""Provider-neutral chat model used by the generation pipeline.

Messages are role-tagged ``system`` / ``human`` / ``ai`` entries. Each
provider adapter maps them onto its own API and returns a ``ChatResponse``
carrying the text, the token usage of the call, and whether the completion
was cut off by the token limit.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Sequence

from workout_planner_api.config import DEFAULT_MODELS, settings
from .client_factory import AIClientFactory, AIRequestContext
from .retry import retry_async_call


logger = logging.getLogger(__name__)

Role = Literal["system", "human", "ai"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls("system", content)

    @classmethod
    def human(cls, content: str) -> "ChatMessage":
        return cls("human", content)

    @classmethod
    def ai(cls, content: str) -> "ChatMessage":
        return cls("ai", content)


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass
class ChatResponse:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    stop_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.stop_reason == "max_tokens"


class ChatModel(ABC):
    """A chat completion endpoint taking the whole message list per call."""

    provider: str = ""
    model: str = ""

    @abstractmethod
    async def invoke(self, messages: Sequence[ChatMessage]) -> ChatResponse:
        ...


class AnthropicChatModel(ChatModel):
    provider = "anthropic"

    def __init__(
        self,
        model: Optional[str] = None,
        context: Optional[AIRequestContext] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        client: Any = None,
    ):
        self.model = model or DEFAULT_MODELS["anthropic"]
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self._client = client or AIClientFactory.create_anthropic_client(
            context=context, timeout=settings.LLM_TIMEOUT_SECONDS
        )

    async def invoke(self, messages: Sequence[ChatMessage]) -> ChatResponse:
        # Anthropic takes the system prompt as a separate parameter
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        conversation = [
            {"role": "assistant" if m.role == "ai" else "user", "content": m.content}
            for m in messages
            if m.role != "system"
        ]

        message = await retry_async_call(
            self._client.messages.create,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=conversation,
        )

        text = "".join(
            block.text for block in message.content if getattr(block, "type", "text") == "text"
        )
        usage = getattr(message, "usage", None)
        return ChatResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=getattr(usage, "input_tokens", 0) or 0,
                output_tokens=getattr(usage, "output_tokens", 0) or 0,
            ),
            stop_reason=message.stop_reason,
        )


class OpenAIChatModel(ChatModel):
    provider = "openai"

    _ROLES = {"system": "system", "human": "user", "ai": "assistant"}

    def __init__(
        self,
        model: Optional[str] = None,
        context: Optional[AIRequestContext] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        client: Any = None,
    ):
        self.model = model or DEFAULT_MODELS["openai"]
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self._client = client or AIClientFactory.create_openai_client(
            context=context, timeout=settings.LLM_TIMEOUT_SECONDS
        )

    async def invoke(self, messages: Sequence[ChatMessage]) -> ChatResponse:
        response = await retry_async_call(
            self._client.chat.completions.create,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": self._ROLES[m.role], "content": m.content} for m in messages],
        )

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        # "length" is OpenAI's spelling of a token-limit cut-off
        stop_reason = "max_tokens" if choice.finish_reason == "length" else choice.finish_reason
        return ChatResponse(
            content=choice.message.content or "",
            usage=TokenUsage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
            stop_reason=stop_reason,
        )


def create_chat_model(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    context: Optional[AIRequestContext] = None,
) -> ChatModel:
    """
    Build a chat model for a provider, falling back to the configured default.

    Args:
        provider: "anthropic" or "openai"; defaults to LLM_PROVIDER
        model: Model id; defaults to LLM_MODEL when the provider is the
            configured one, otherwise to the provider's default model
        context: Request context forwarded to the client for tracking

    Raises:
        ValueError: For an unknown provider or a missing API key
    """
    provider = (provider or settings.LLM_PROVIDER).lower()
    if not model:
        model = settings.LLM_MODEL if provider == settings.LLM_PROVIDER else DEFAULT_MODELS.get(provider)

    if provider == "anthropic":
        return AnthropicChatModel(model=model, context=context)
    if provider == "openai":
        return OpenAIChatModel(model=model, context=context)
    raise ValueError(f"Unsupported LLM provider: {provider}")
