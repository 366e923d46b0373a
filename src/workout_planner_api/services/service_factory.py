"""Wires settings, the Supabase store and the conversation store into a WorkoutService."""
import logging
from typing import Any, Optional

from workout_planner_api.config import settings
from workout_planner_api.generation.conversation import InMemoryConversationStore
from workout_planner_api.storage.supabase_store import SupabaseStore, get_supabase_client
from .exercise_catalog import ExerciseCatalog
from .workout_persistence import WorkoutPersistence
from .workout_service import WorkoutService


logger = logging.getLogger(__name__)


async def build_workout_service(client: Optional[Any] = None) -> WorkoutService:
    """
    Build the production service graph.

    Args:
        client: Optional pre-built Supabase client; one is created from settings otherwise

    Raises:
        RuntimeError: Supabase credentials are not configured
    """
    client = client or await get_supabase_client()
    if client is None:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set to run the workout planner")

    store = SupabaseStore(client)
    conversation_store = InMemoryConversationStore(
        ttl_seconds=settings.CONVERSATION_TTL_SECONDS,
        max_threads=settings.CONVERSATION_MAX_THREADS,
    )
    logger.info(
        f"Workout service ready (provider={settings.LLM_PROVIDER}, model={settings.LLM_MODEL}, "
        f"chunk_size={settings.GENERATION_CHUNK_SIZE})"
    )
    return WorkoutService(
        profiles=store,
        catalog=ExerciseCatalog(store, settings.EXERCISE_SEARCH_DEFAULT_LIMIT),
        persistence=WorkoutPersistence(store),
        prompts=store,
        conversation_store=conversation_store,
    )
