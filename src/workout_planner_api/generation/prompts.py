"""Prompt compiler for workout generation.

Builds the system instruction set and the user message for the three
generation contexts:

- ``weekly``: the whole plan in one document,
- ``chunk``: a contiguous slice of plan days, generated on a shared thread,
- ``daily``: one plan day regenerated against its previous version.

The system prompt never lists catalog exercises. The model asks for
candidates through ``EXERCISE_SEARCH_REQUEST`` lines and receives them in a
follow-up message.
"""
import json
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from workout_planner_api.models import (
    AVAILABLE_EQUIPMENT,
    ExerciseMetadata,
    ExerciseSearchFilters,
    PlanDayRow,
    Profile,
)


SEARCH_REQUEST_MARKER = "EXERCISE_SEARCH_REQUEST"

DEFAULT_USER_MESSAGE = "Please generate the workout now using the comprehensive system instructions."

# ---------------------------------------------------------------------------
# Equipment
# ---------------------------------------------------------------------------

COMMERCIAL_GYM_EQUIPMENT = (
    "The user trains in a fully equipped commercial gym: barbells and plates, dumbbells, "
    "kettlebells, cable stations, selectorized and plate-loaded machines, benches and racks, "
    "pull-up bars, cardio machines (treadmill, bike, rower), medicine balls and resistance bands. "
    "Any standard gym exercise is allowed."
)

BODYWEIGHT_ONLY_EQUIPMENT = (
    "The user has NO equipment and trains with bodyweight only. "
    "Do NOT include any exercise that needs equipment (no dumbbells, barbells, kettlebells, bands, "
    "machines, benches or bars). Every exercise must be performable with bodyweight alone."
)

GENERIC_EQUIPMENT = (
    "The user's training environment is not specified. Prefer exercises that need little or no "
    "equipment, and only use common equipment when the user's goals clearly require it."
)


def get_equipment_description(profile: Profile) -> str:
    environment = (profile.environment or "").strip().lower()
    if environment == "commercial_gym":
        return COMMERCIAL_GYM_EQUIPMENT
    if environment == "bodyweight_only":
        return BODYWEIGHT_ONLY_EQUIPMENT
    if environment == "home_gym":
        items = [item.replace("_", " ") for item in profile.equipment]
        if profile.other_equipment and profile.other_equipment.strip():
            items.append(profile.other_equipment.strip())
        listed = ", ".join(items) if items else "no listed equipment (treat as bodyweight)"
        return (
            f"The user trains in a home gym with ONLY the following equipment: {listed}. "
            "Bodyweight exercises are always allowed. Do NOT use any equipment that is not listed."
        )
    return GENERIC_EQUIPMENT


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------

STYLE_GUIDANCE = {
    "hiit": (
        "HIIT: use circuit or tabata blocks of short, explosive work intervals (20-45 seconds) "
        "with short rest (10-30 seconds). Prescribe duration per exercise and rounds per block."
    ),
    "strength": (
        "STRENGTH: use traditional blocks built around compound lifts. 3-5 sets of 3-8 reps for "
        "main lifts, 2-4 sets of 8-12 reps for accessories, 90-180 seconds rest between sets."
    ),
    "cardio": (
        "CARDIO: use circuit blocks of sustained or interval conditioning. Prescribe duration in "
        "seconds rather than reps and keep rest short to hold an elevated heart rate."
    ),
    "rehab": (
        "REHAB: use traditional blocks of controlled, low-load movements. 2-3 sets of 10-15 reps, "
        "slow tempo, generous rest, and respect every listed limitation strictly."
    ),
    "crossfit": (
        "CROSSFIT: combine a traditional strength piece with a metcon written as an amrap, emom "
        "or for_time block. Timed blocks MUST state timeCapMinutes."
    ),
    "functional": (
        "FUNCTIONAL: use circuit blocks of multi-joint movements (squat, hinge, push, pull, carry, "
        "rotate). 2-4 rounds of 8-15 reps with short transitions."
    ),
    "pilates": (
        "PILATES: use flow blocks of controlled core-centred mat movements. 8-12 precise reps per "
        "movement, cue breathing and alignment in notes."
    ),
    "yoga": (
        "YOGA: use flow blocks of linked poses. Prescribe holds as duration in seconds (30-60) and "
        "order poses so each transition is natural."
    ),
    "balance": (
        "BALANCE: use traditional blocks of single-leg and stability work. 2-3 sets of timed holds "
        "or 8-12 controlled reps, progressing from stable to unstable positions."
    ),
    "mobility": (
        "MOBILITY: use flow blocks of dynamic range-of-motion drills and end-range holds. Prescribe "
        "duration per movement and keep intensity low."
    ),
}

BLOCK_TYPE_RULES = """BLOCK TYPES (use exactly one of these values for "blockType"):
- "traditional": straight sets and reps; timeCapMinutes null.
- "amrap": as many rounds as possible; MUST set timeCapMinutes.
- "emom": every minute on the minute; MUST set timeCapMinutes.
- "for_time": complete the work as fast as possible; MUST set timeCapMinutes.
- "circuit": exercises back to back; MUST set rounds.
- "flow": linked movements (yoga, pilates, mobility); MUST set rounds (use 1 for a single pass).
- "tabata": 20s work / 10s rest intervals; MUST set rounds.
- "warmup": preparation block at the start of the session.
- "cooldown": recovery block at the end of the session."""


def build_style_guidance(styles: Sequence[str]) -> str:
    preferred = [s for s in (style.strip().lower() for style in styles) if s]
    lines = ["WORKOUT STYLE PROGRAMMING RULES:"]
    for style, guidance in STYLE_GUIDANCE.items():
        lines.append(f"- {guidance}")
    if preferred:
        lines.append("")
        lines.append(
            "The user's preferred styles are: "
            + ", ".join(preferred)
            + ". Program every session using the rules for these styles."
        )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Duration
# ---------------------------------------------------------------------------


def minimum_block_count(duration: int, include_warmup: bool = True, include_cooldown: bool = True) -> int:
    """Fewest blocks a session of ``duration`` minutes should have."""
    if duration >= 60:
        main_blocks = 5
    elif duration >= 45:
        main_blocks = 4
    elif duration >= 30:
        main_blocks = 2
    else:
        main_blocks = 1
    return main_blocks + int(include_warmup) + int(include_cooldown)


def build_duration_requirements(
    duration: int,
    include_warmup: bool = True,
    include_cooldown: bool = True,
    tolerance: int = 5,
) -> str:
    low = max(duration - tolerance, 1)
    high = duration + tolerance
    min_blocks = minimum_block_count(duration, include_warmup, include_cooldown)

    lines = [
        "DURATION REQUIREMENTS (MANDATORY):",
        f"- Each session MUST last {duration} minutes (+/- {tolerance} minutes), "
        f"i.e. between {low} and {high} minutes.",
        "- Every block MUST state \"blockDurationMinutes\"; the block durations of a day "
        "MUST add up to the session length.",
        f"- Each session MUST contain at least {min_blocks} blocks.",
    ]
    if include_warmup:
        lines.append("- Start every session with a \"warmup\" block (5-10 minutes).")
    else:
        lines.append("- Do NOT include a warmup block.")
    if include_cooldown:
        lines.append("- End every session with a \"cooldown\" block (5-10 minutes).")
    else:
        lines.append("- Do NOT include a cooldown block.")
    lines.append("- Count sets, reps, work intervals, rest and transitions when sizing each block.")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Output format
# ---------------------------------------------------------------------------

_BLOCK_SCHEMA = """{
          "blockType": "traditional | amrap | emom | for_time | circuit | flow | tabata | warmup | cooldown",
          "blockName": "string",
          "blockDurationMinutes": number,
          "timeCapMinutes": number | null,
          "rounds": number | null,
          "instructions": "string",
          "order": number,
          "exercises": [
            {
              "exerciseName": "string",
              "sets": number,
              "reps": number,
              "weight": number,
              "duration": number,
              "restTime": number,
              "notes": "string",
              "order": number
            }
          ]
        }"""

_EXERCISES_TO_ADD_SCHEMA = """"exercisesToAdd": [
    {
      "name": "string",
      "description": "string",
      "equipment": ["string"],
      "muscleGroups": ["string"],
      "difficulty": "low | moderate | high",
      "instructions": "string",
      "link": "string",
      "tag": "string"
    }
  ]"""

OUTPUT_FORMAT_PLAN = f"""OUTPUT FORMAT:
Your final response MUST be a single valid JSON object with exactly this structure:
{{
  "name": "string (very short plan name)",
  "description": "string (10-15 words)",
  "workoutPlan": [
    {{
      "day": number,
      "name": "string",
      "description": "string",
      "instructions": "string",
      "blocks": [
        {_BLOCK_SCHEMA}
      ]
    }}
  ],
  {_EXERCISES_TO_ADD_SCHEMA}
}}"""

OUTPUT_FORMAT_DAILY = f"""OUTPUT FORMAT:
Your final response MUST be a single valid JSON object with exactly this structure:
{{
  "day": number,
  "name": "string",
  "description": "string",
  "instructions": "string",
  "blocks": [
    {_BLOCK_SCHEMA}
  ],
  {_EXERCISES_TO_ADD_SCHEMA}
}}"""

OUTPUT_RULES = f"""OUTPUT RULES:
- Strictly valid JSON, no Markdown, no commentary outside the JSON object.
- Include every key shown above; use 0, null or "" when a value does not apply.
- Every exercise MUST be a concrete movement ("Push-ups", "Goblet Squat"), never a general
  suggestion such as "Warmup" or "Stretching".
- Any exercise that is not in the search results MUST be declared in "exercisesToAdd" with full metadata.
- "equipment" values in "exercisesToAdd" MUST be chosen from: {json.dumps(list(AVAILABLE_EQUIPMENT))}."""

EXERCISE_SEARCH_INSTRUCTIONS = f"""EXERCISE SEARCH:
Before writing the final JSON you may ask for catalog exercises. To do so, reply with one or
more lines of the form

{SEARCH_REQUEST_MARKER}: {{"muscleGroups": ["chest"], "equipment": ["dumbbells"], "difficulty": ["moderate"], "styles": ["strength"], "limit": 20}}

Each request is a flat JSON object on one line; all keys are optional. When you send search
requests, send nothing else in that reply. You will receive the matching exercises and must
then answer with the final JSON only. Prefer exact catalog names in the final plan.
For a bodyweight-only user use "equipment": ["bodyweight_only"]."""


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


def _join(values: Iterable[str], empty: str = "none") -> str:
    items = [str(v) for v in values if v]
    return ", ".join(items) if items else empty


def build_profile_summary(profile: Profile, styles: Optional[Sequence[str]] = None) -> str:
    styles = list(styles) if styles else profile.preferred_styles
    return "\n".join(
        [
            "USER PROFILE:",
            f"- Age: {profile.age if profile.age is not None else 'not specified'}",
            f"- Gender: {profile.gender or 'not specified'}",
            f"- Height: {profile.height if profile.height is not None else 'not specified'} cm",
            f"- Weight: {profile.weight if profile.weight is not None else 'not specified'} kg",
            f"- Goals: {_join(profile.goals)}",
            f"- Physical limitations: {_join(profile.limitations)}",
            f"- Fitness level: {profile.fitness_level or 'not specified'}",
            f"- Environment: {profile.environment or 'not specified'}",
            f"- Preferred styles: {_join(styles)}",
            f"- Available days: {_join(profile.available_days, empty='any')}",
            f"- Session length: {profile.workout_duration} minutes",
            f"- Intensity level: {profile.intensity_level or 'not specified'}",
            f"- Medical notes: {profile.medical_notes or 'none'}",
        ]
    )


# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChunkWindow:
    """Days ``start_day``..``end_day`` (1-based, inclusive) of a chunked plan."""

    chunk_number: int
    total_chunks: int
    start_day: int
    end_day: int
    total_days: int

    @property
    def day_count(self) -> int:
        return self.end_day - self.start_day + 1


def plan_chunks(total_days: int, chunk_size: int) -> List[ChunkWindow]:
    chunk_size = max(1, chunk_size)
    total_chunks = (total_days + chunk_size - 1) // chunk_size
    windows = []
    for index in range(total_chunks):
        start = index * chunk_size + 1
        windows.append(
            ChunkWindow(
                chunk_number=index + 1,
                total_chunks=total_chunks,
                start_day=start,
                end_day=min(start + chunk_size - 1, total_days),
                total_days=total_days,
            )
        )
    return windows


def _task_section(
    context: str,
    total_days: int,
    chunk: Optional[ChunkWindow],
    day_number: Optional[int],
    is_rest_day: bool,
) -> str:
    if context == "daily":
        lines = [
            "TASK:",
            f"Regenerate the workout for day {day_number if day_number is not None else 1} of the user's current plan.",
            "Return a single day (not a weekly plan).",
        ]
        if is_rest_day:
            lines.append(
                "This day is currently a rest day. Design a light active-recovery session "
                "(mobility, easy cardio, stretching) unless the user's feedback asks for more."
            )
        return "\n".join(lines)

    if context == "chunk" and chunk is not None:
        return "\n".join(
            [
                "TASK:",
                f"The user's plan has {chunk.total_days} training days and is generated in "
                f"{chunk.total_chunks} parts. This is part {chunk.chunk_number} of {chunk.total_chunks}.",
                f"Generate ONLY days {chunk.start_day} to {chunk.end_day}: \"workoutPlan\" MUST contain "
                f"exactly {chunk.day_count} day(s), numbered {chunk.start_day} to {chunk.end_day}.",
                "Keep the plan balanced with the days already generated earlier in this conversation "
                "(vary muscle groups and avoid repeating the same session).",
            ]
        )

    return "\n".join(
        [
            "TASK:",
            f"Design a workout plan for exactly {total_days} days.",
            f"\"workoutPlan\" MUST contain exactly {total_days} days, numbered 1 to {total_days}.",
            "Balance muscle groups and intensity across the week.",
        ]
    )


def build_system_prompt(
    profile: Profile,
    context: str = "weekly",
    *,
    chunk: Optional[ChunkWindow] = None,
    day_number: Optional[int] = None,
    is_rest_day: bool = False,
    previous_workout: Optional[str] = None,
    styles: Optional[Sequence[str]] = None,
    tolerance: int = 5,
) -> str:
    """
    Assemble the system instruction set for a generation context.

    Args:
        profile: The (complete) user profile
        context: "weekly", "chunk" or "daily"
        chunk: Day window, required for the "chunk" context
        day_number: Plan day being regenerated ("daily" context)
        is_rest_day: Whether the regenerated day is currently a rest day
        previous_workout: Formatted previous version of the day ("daily" context)
        styles: Style override; defaults to the profile's preferred styles
        tolerance: Allowed deviation from the session length in minutes

    Returns:
        The system prompt text
    """
    if context not in ("weekly", "chunk", "daily"):
        raise ValueError(f"Unknown prompt context: {context}")
    if context == "chunk" and chunk is None:
        raise ValueError("The chunk context needs a chunk window")

    active_styles = list(styles) if styles else profile.preferred_styles
    total_days = len(profile.available_days) or 7

    sections = [
        "You are an experienced personal trainer designing safe, personalised workouts.",
        build_profile_summary(profile, active_styles),
        "EQUIPMENT:\n" + get_equipment_description(profile),
        "CONSTRAINTS:\n- Be strictly compliant with the user's limitations, environment, equipment, "
        "fitness level, intensity level and medical notes. These MUST NOT be violated.",
        _task_section(context, total_days, chunk, day_number, is_rest_day),
        build_style_guidance(active_styles),
        BLOCK_TYPE_RULES,
        build_duration_requirements(
            profile.workout_duration or 0,
            profile.include_warmup,
            profile.include_cooldown,
            tolerance,
        ),
    ]
    if context == "daily" and previous_workout:
        sections.append(
            "PREVIOUS VERSION OF THIS DAY (revise it according to the user's feedback):\n" + previous_workout
        )
    sections.extend(
        [
            EXERCISE_SEARCH_INSTRUCTIONS,
            OUTPUT_FORMAT_DAILY if context == "daily" else OUTPUT_FORMAT_PLAN,
            OUTPUT_RULES,
        ]
    )
    return "\n\n".join(sections)


def build_user_message(feedback: Optional[str] = None) -> str:
    if feedback and feedback.strip():
        return (
            f'SPECIFIC USER FEEDBACK: "{feedback.strip()}"\n\n'
            "Please generate the workout now, addressing this feedback while following all system instructions."
        )
    return DEFAULT_USER_MESSAGE


def build_chunk_user_message(chunk: ChunkWindow, feedback: Optional[str] = None) -> str:
    if chunk.chunk_number == 1:
        return build_user_message(feedback)
    return (
        f"Now generate days {chunk.start_day} to {chunk.end_day} of the plan "
        f"(part {chunk.chunk_number} of {chunk.total_chunks}), following all system instructions."
    )


# ---------------------------------------------------------------------------
# Follow-up messages
# ---------------------------------------------------------------------------


def summarize_previous_workout(plan_day: PlanDayRow) -> dict:
    exercises = []
    for block in plan_day.blocks:
        for item in block.exercises:
            exercises.append(
                {
                    "exerciseName": item.exercise.name if item.exercise else f"exercise #{item.exercise_id}",
                    "sets": item.sets or 0,
                    "reps": item.reps or 0,
                    "weight": item.weight or 0,
                    "duration": item.duration or 0,
                    "restTime": item.rest_time or 0,
                    "notes": item.notes or "",
                }
            )
    return {"day": plan_day.day_number or 1, "name": plan_day.name or "", "exercises": exercises}


def format_previous_workout(plan_day: PlanDayRow) -> str:
    return json.dumps(summarize_previous_workout(plan_day), indent=2)


def format_search_results(results: Sequence[Tuple[ExerciseSearchFilters, Sequence[ExerciseMetadata]]]) -> str:
    """Render every search result set into one follow-up message."""
    sections = ["Here are the results of your exercise searches."]
    for index, (filters, exercises) in enumerate(results, start=1):
        query = json.dumps(filters.model_dump(by_alias=True, exclude_none=True))
        sections.append(f"### Search {index}: {query}")
        if not exercises:
            sections.append("No exercises matched this search.")
            continue
        for exercise in exercises:
            equipment = ", ".join(exercise.equipment) if exercise.equipment else "bodyweight"
            muscles = ", ".join(exercise.muscle_groups) if exercise.muscle_groups else "general"
            sections.append(
                f"- {exercise.name} (equipment: {equipment}; muscles: {muscles}; "
                f"difficulty: {exercise.difficulty or 'moderate'})"
            )
    sections.append(
        "Now produce the final workout as valid JSON only, following the output format exactly. "
        "Do not send further search requests."
    )
    return "\n".join(sections)


def build_day_count_correction(actual: int, expected: int) -> str:
    return (
        f"You generated {actual} days instead of the required {expected}. The workout plan MUST contain "
        f"exactly {expected} days. Please regenerate the COMPLETE workout plan as valid JSON only."
    )


def build_duration_correction(violations: Sequence[Tuple[int, int]], target: int, tolerance: int) -> str:
    """Ask the model to resize days whose block durations miss the target window."""
    details = "; ".join(f"day {day} totals {minutes} minutes" for day, minutes in violations)
    return (
        f"The session length requirement is {target} minutes (+/- {tolerance}). {details}. "
        "Adjust the blocks and their blockDurationMinutes so every day fits the window, and return "
        "the COMPLETE corrected workout as valid JSON only."
    )
