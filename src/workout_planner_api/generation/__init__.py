"""Workout plan generation: prompts, model exchanges, validation and scheduling."""
from .conversation import ConversationStore, InMemoryConversationStore
from .orchestrator import ExchangeResult, ExchangeState, ToolCallingOrchestrator
from .plan_generator import GenerationOutcome, PlanGenerator
from .schemas import GeneratedDailyWorkout, GeneratedPlan, parse_daily_document, parse_plan_document

__all__ = [
    "ConversationStore",
    "ExchangeResult",
    "ExchangeState",
    "GeneratedDailyWorkout",
    "GeneratedPlan",
    "GenerationOutcome",
    "InMemoryConversationStore",
    "PlanGenerator",
    "ToolCallingOrchestrator",
    "parse_daily_document",
    "parse_plan_document",
]
