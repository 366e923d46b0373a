"""AI client factory with Helicone integration support."""
import logging
from dataclasses import dataclass, field
from typing import Any

from workout_planner_api.config import settings


logger = logging.getLogger(__name__)

# Helicone proxy URLs (private - implementation detail)
_HELICONE_OPENAI_BASE_URL = "https://oai.helicone.ai/v1"
_HELICONE_ANTHROPIC_BASE_URL = "https://anthropic.helicone.ai"

# Default client timeout
DEFAULT_TIMEOUT = 120.0


@dataclass
class AIRequestContext:
    """Context for AI requests, used for tracking and observability."""

    user_id: str | None = None
    session_id: str | None = None
    feature_name: str | None = None
    request_id: str | None = None
    custom_properties: dict[str, str] = field(default_factory=dict)

    def to_tracking_headers(self) -> dict[str, str]:
        """Convert context to provider-specific tracking headers.

        Currently generates Helicone headers when Helicone is enabled.
        The public API is provider-agnostic to allow future observability
        provider changes without affecting callers.
        """
        headers: dict[str, str] = {}

        if self.user_id:
            headers["Helicone-User-Id"] = self.user_id

        # Conversation threads map onto Helicone sessions
        if self.session_id:
            headers["Helicone-Session-Id"] = self.session_id

        if self.feature_name:
            headers["Helicone-Property-Feature"] = self.feature_name

        if self.request_id:
            headers["Helicone-Request-Id"] = self.request_id

        headers["Helicone-Property-Environment"] = settings.ENVIRONMENT

        for key, value in self.custom_properties.items():
            header_key = f"Helicone-Property-{key.replace('_', '-').title()}"
            headers[header_key] = str(value)

        return headers


def _build_client_kwargs(
    api_key: str,
    timeout: float,
    helicone_base_url: str,
    provider_label: str,
    context: AIRequestContext | None,
) -> dict[str, Any]:
    client_kwargs: dict[str, Any] = {
        "api_key": api_key,
        "timeout": timeout,
    }

    if settings.HELICONE_ENABLED:
        if not settings.HELICONE_API_KEY:
            logger.warning(
                "HELICONE_ENABLED=true but HELICONE_API_KEY not set. "
                f"Falling back to direct {provider_label} API calls."
            )
            return client_kwargs

        client_kwargs["base_url"] = helicone_base_url
        default_headers = {
            "Helicone-Auth": f"Bearer {settings.HELICONE_API_KEY}",
        }
        if context:
            default_headers.update(context.to_tracking_headers())
        client_kwargs["default_headers"] = default_headers
        logger.debug(f"Creating {provider_label} client with Helicone proxy")
    else:
        logger.debug(f"Creating {provider_label} client (direct)")

    return client_kwargs


class AIClientFactory:
    """Factory for creating async AI clients with optional Helicone integration."""

    @staticmethod
    def create_openai_client(
        context: AIRequestContext | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Any:
        """
        Create an async OpenAI client, optionally proxied through Helicone.

        Args:
            context: Request context for tracking and observability
            timeout: Client timeout in seconds

        Returns:
            openai.AsyncOpenAI instance

        Raises:
            ValueError: If the OpenAI API key is not configured
        """
        import openai

        api_key = settings.OPENAI_API_KEY
        if not api_key:
            raise ValueError("OpenAI API key not configured. Set OPENAI_API_KEY environment variable.")

        client_kwargs = _build_client_kwargs(
            api_key, timeout, _HELICONE_OPENAI_BASE_URL, "OpenAI", context
        )
        return openai.AsyncOpenAI(**client_kwargs)

    @staticmethod
    def create_anthropic_client(
        context: AIRequestContext | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Any:
        """
        Create an async Anthropic client, optionally proxied through Helicone.

        Args:
            context: Request context for tracking and observability
            timeout: Client timeout in seconds

        Returns:
            anthropic.AsyncAnthropic instance

        Raises:
            ValueError: If the Anthropic API key is not configured
        """
        from anthropic import AsyncAnthropic

        api_key = settings.ANTHROPIC_API_KEY
        if not api_key:
            raise ValueError("Anthropic API key not configured. Set ANTHROPIC_API_KEY environment variable.")

        client_kwargs = _build_client_kwargs(
            api_key, timeout, _HELICONE_ANTHROPIC_BASE_URL, "Anthropic", context
        )
        return AsyncAnthropic(**client_kwargs)
