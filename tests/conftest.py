"""
Test fixtures for workout-planner-api.

Everything runs against in-memory repositories and a scripted chat model,
so tests are fast, deterministic and offline.
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
TESTS = ROOT / "tests"

# Make src/ importable so tests can do `import workout_planner_api...`
for p in {SRC, TESTS}:
    p_str = str(p)
    if p_str not in sys.path:
        sys.path.insert(0, p_str)

from fakes import (  # noqa: E402
    CATALOG,
    TODAY,
    InMemoryStore,
    ScriptedChatModel,
    make_profile,
)
from workout_planner_api.generation.conversation import InMemoryConversationStore  # noqa: E402
from workout_planner_api.services.exercise_catalog import ExerciseCatalog  # noqa: E402
from workout_planner_api.services.workout_persistence import WorkoutPersistence  # noqa: E402
from workout_planner_api.services.workout_service import WorkoutService  # noqa: E402


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    for row in CATALOG:
        store.add_exercise(**row)
    store.add_profile(make_profile())
    return store


@pytest.fixture
def conversation_store() -> InMemoryConversationStore:
    return InMemoryConversationStore(ttl_seconds=3600, max_threads=100)


@pytest.fixture
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def catalog(store) -> ExerciseCatalog:
    return ExerciseCatalog(store, default_limit=50)


@pytest.fixture
def persistence(store) -> WorkoutPersistence:
    return WorkoutPersistence(store)


@pytest.fixture
def service(store, catalog, persistence, conversation_store, chat_model) -> WorkoutService:
    return WorkoutService(
        profiles=store,
        catalog=catalog,
        persistence=persistence,
        prompts=store,
        conversation_store=conversation_store,
        chat_model_factory=lambda profile, context: chat_model,
        today=lambda timezone=None: TODAY,
    )
