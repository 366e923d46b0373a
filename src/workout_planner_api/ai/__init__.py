"""AI client management for workout planner API."""
from .chat import (
    AnthropicChatModel,
    ChatMessage,
    ChatModel,
    ChatResponse,
    OpenAIChatModel,
    TokenUsage,
    create_chat_model,
)
from .client_factory import AIClientFactory, AIRequestContext
from .retry import (
    create_retry_decorator,
    is_retryable_error,
    retry_async_call,
)

__all__ = [
    "AIClientFactory",
    "AIRequestContext",
    "AnthropicChatModel",
    "ChatMessage",
    "ChatModel",
    "ChatResponse",
    "OpenAIChatModel",
    "TokenUsage",
    "create_chat_model",
    "create_retry_decorator",
    "is_retryable_error",
    "retry_async_call",
]
