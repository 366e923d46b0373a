"""Configuration settings for the workout planner API."""
import os
from typing import Literal


EnvironmentType = Literal["development", "staging", "production"]
ProviderType = Literal["anthropic", "openai"]

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-3-5-sonnet-20241022",
    "openai": "gpt-4o",
}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    """Application settings."""

    # Feature flags
    HELICONE_ENABLED: bool = False

    # Environment
    ENVIRONMENT: EnvironmentType = "development"
    LOG_LEVEL: str = "INFO"

    # API Keys
    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    HELICONE_API_KEY: str | None = None

    # LLM
    LLM_PROVIDER: ProviderType = "anthropic"
    LLM_MODEL: str = DEFAULT_MODELS["anthropic"]
    LLM_MAX_TOKENS: int = 8192
    LLM_TEMPERATURE: float = 0.4
    LLM_TIMEOUT_SECONDS: float = 120.0

    # Store
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None

    # Generation
    GENERATION_CHUNK_SIZE: int = 2
    DAY_COUNT_RETRY_ATTEMPTS: int = 2
    DURATION_REPROMPT_ATTEMPTS: int = 1
    DURATION_TOLERANCE_MINUTES: int = 5
    EXERCISE_SEARCH_DEFAULT_LIMIT: int = 50

    # Conversation memory
    CONVERSATION_TTL_SECONDS: int = 3600
    CONVERSATION_MAX_THREADS: int = 1000

    def __init__(self):
        # Environment
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env in ("development", "staging", "production"):
            self.ENVIRONMENT = env  # type: ignore
        else:
            self.ENVIRONMENT = "development"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        # Feature flags
        self.HELICONE_ENABLED = os.getenv("HELICONE_ENABLED", "false").lower() == "true"

        # API Keys
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
        self.ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
        self.HELICONE_API_KEY = os.getenv("HELICONE_API_KEY")

        # LLM
        provider = os.getenv("LLM_PROVIDER", "anthropic").lower()
        self.LLM_PROVIDER = provider if provider in DEFAULT_MODELS else "anthropic"  # type: ignore
        self.LLM_MODEL = os.getenv("LLM_MODEL") or DEFAULT_MODELS[self.LLM_PROVIDER]
        self.LLM_MAX_TOKENS = _int_env("LLM_MAX_TOKENS", 8192)
        self.LLM_TEMPERATURE = _float_env("LLM_TEMPERATURE", 0.4)
        self.LLM_TIMEOUT_SECONDS = _float_env("LLM_TIMEOUT_SECONDS", 120.0)

        # Store
        self.SUPABASE_URL = os.getenv("SUPABASE_URL")
        self.SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")

        # Generation
        self.GENERATION_CHUNK_SIZE = max(1, _int_env("GENERATION_CHUNK_SIZE", 2))
        self.DAY_COUNT_RETRY_ATTEMPTS = max(0, _int_env("DAY_COUNT_RETRY_ATTEMPTS", 2))
        self.DURATION_REPROMPT_ATTEMPTS = max(0, _int_env("DURATION_REPROMPT_ATTEMPTS", 1))
        self.DURATION_TOLERANCE_MINUTES = max(0, _int_env("DURATION_TOLERANCE_MINUTES", 5))
        self.EXERCISE_SEARCH_DEFAULT_LIMIT = max(1, _int_env("EXERCISE_SEARCH_DEFAULT_LIMIT", 50))

        # Conversation memory
        self.CONVERSATION_TTL_SECONDS = max(1, _int_env("CONVERSATION_TTL_SECONDS", 3600))
        self.CONVERSATION_MAX_THREADS = max(1, _int_env("CONVERSATION_MAX_THREADS", 1000))


settings = Settings()
