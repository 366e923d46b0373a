"""Deterministic block metadata used when the model omits it."""
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


# First matching style wins
STYLE_BLOCK_TYPES = {
    "crossfit": "amrap",
    "hiit": "circuit",
    "yoga": "flow",
    "pilates": "flow",
    "strength": "traditional",
    "cardio": "circuit",
    "functional": "circuit",
    "balance": "traditional",
    "mobility": "flow",
    "rehab": "traditional",
}

BLOCK_NAMES = {
    "amrap": "AMRAP",
    "circuit": "Circuit Training",
    "flow": "Flow Session",
    "traditional": "Strength Training",
    "tabata": "Tabata",
    "emom": "EMOM",
}

# The primary (first) style overrides the type-based name
STYLE_BLOCK_NAMES = {
    "crossfit": "CrossFit WOD",
    "hiit": "HIIT Circuit",
    "yoga": "Yoga Flow",
    "pilates": "Pilates Session",
}

DEFAULT_BLOCK_TYPE = "traditional"
DEFAULT_BLOCK_NAME = "Workout Block"
DEFAULT_ROUNDS = 3


def determine_block_type(styles: Optional[Sequence[str]]) -> str:
    """Map the active style list onto a block type."""
    for style in styles or []:
        if not isinstance(style, str):
            continue
        block_type = STYLE_BLOCK_TYPES.get(style.strip().lower())
        if block_type:
            return block_type
    return DEFAULT_BLOCK_TYPE


def generate_block_name(block_type: str, styles: Optional[Sequence[str]] = None) -> str:
    if styles and isinstance(styles[0], str):
        name = STYLE_BLOCK_NAMES.get(styles[0].strip().lower())
        if name:
            return name
    return BLOCK_NAMES.get(block_type, DEFAULT_BLOCK_NAME)


def determine_time_cap(block_type: str, workout_duration: int) -> Optional[int]:
    """Time cap in minutes, or None when the block type is not capped."""
    time_caps = {
        "amrap": math.floor(workout_duration * 0.7),
        "circuit": math.floor(workout_duration * 0.6),
        "tabata": 4,
        "emom": math.floor(workout_duration * 0.8),
    }
    # A zero cap means no cap
    return time_caps.get(block_type) or None


def determine_rounds(block_type: str, workout_duration: int) -> int:
    rounds = {
        "amrap": 1,
        "circuit": max(2, workout_duration // 10),
        "tabata": 8,
        "emom": workout_duration,
        "traditional": max(3, workout_duration // 8),
        "flow": 1,
    }
    return rounds.get(block_type) or DEFAULT_ROUNDS


@dataclass(frozen=True)
class BlockDefaults:
    """Fallback metadata for a block the model left under-specified."""

    block_type: str
    block_name: str
    time_cap_minutes: Optional[int]
    rounds: int
    block_duration_minutes: int
    styles: Tuple[str, ...] = ()

    @classmethod
    def for_styles(cls, styles: Optional[Sequence[str]], workout_duration: Optional[int]) -> "BlockDefaults":
        duration = workout_duration or 0
        block_type = determine_block_type(styles)
        return cls(
            block_type=block_type,
            block_name=generate_block_name(block_type, styles),
            time_cap_minutes=determine_time_cap(block_type, duration),
            rounds=determine_rounds(block_type, duration),
            block_duration_minutes=duration,
            styles=tuple(s for s in styles or [] if isinstance(s, str)),
        )
