"""Exercise catalog lookups, creation and filtered search."""
import logging
from typing import Dict, Iterable, List, Optional

from workout_planner_api.config import settings
from workout_planner_api.errors import ExerciseNotFoundError, StoreError
from workout_planner_api.models import ExerciseMetadata, ExerciseRow, ExerciseSearchFilters, NewExercise
from workout_planner_api.storage.base import ExerciseRepository


logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _lower_set(values: Optional[Iterable[str]]) -> set:
    return {v.strip().lower() for v in values or [] if v and v.strip()}


def matches_filters(exercise: ExerciseRow, filters: ExerciseSearchFilters) -> bool:
    """
    Whether a catalog row satisfies a search filter set.

    Muscle groups and equipment match on overlap. The bodyweight-only branch
    accepts rows with no equipment or with "bodyweight" among it. Difficulty
    and style tag match on membership.
    """
    muscles = _lower_set(filters.muscle_groups)
    if muscles and not muscles & _lower_set(exercise.muscle_groups):
        return False

    equipment = _lower_set(exercise.equipment)
    if filters.is_bodyweight_only:
        if equipment and "bodyweight" not in equipment:
            return False
    elif filters.equipment and not _lower_set(filters.equipment) & equipment:
        return False

    difficulties = _lower_set(filters.difficulty)
    if difficulties and (exercise.difficulty or "").strip().lower() not in difficulties:
        return False

    styles = _lower_set(filters.styles)
    if styles and (exercise.tag or "").strip().lower() not in styles:
        return False

    return True


class ExerciseCatalog:
    """Resolves model-chosen exercise names to catalog rows."""

    def __init__(self, repository: ExerciseRepository, default_limit: Optional[int] = None):
        self.repository = repository
        self.default_limit = default_limit or settings.EXERCISE_SEARCH_DEFAULT_LIMIT

    async def resolve_by_name(self, name: str) -> Optional[ExerciseRow]:
        name = (name or "").strip()
        if not name:
            return None
        return await self.repository.find_by_name(name)

    async def require_by_name(self, name: str) -> ExerciseRow:
        exercise = await self.resolve_by_name(name)
        if exercise is None:
            raise ExerciseNotFoundError(name)
        return exercise

    async def resolve_names(self, names: Iterable[str]) -> Dict[str, ExerciseRow]:
        """Resolve each distinct name once; unresolved names are left out."""
        resolved: Dict[str, ExerciseRow] = {}
        for name in dict.fromkeys(names):
            try:
                resolved[name] = await self.require_by_name(name)
            except ExerciseNotFoundError:
                logger.warning(f"Exercise '{name}' not found in catalog, it will be omitted")
        return resolved

    async def create_if_absent(self, new_exercise: NewExercise) -> ExerciseRow:
        existing = await self.resolve_by_name(new_exercise.name)
        if existing is not None:
            return existing

        try:
            created = await self.repository.insert_exercise(new_exercise.to_row())
        except StoreError as e:
            if e.code != UNIQUE_VIOLATION:
                raise
            # Another writer created it between the lookup and the insert
            logger.info(f"Exercise '{new_exercise.name}' was created concurrently, reusing it")
            return await self.require_by_name(new_exercise.name)

        logger.info(f"Added exercise '{created.name}' (id={created.id}) to catalog")
        return created

    async def add_new_exercises(self, new_exercises: Iterable[NewExercise]) -> List[ExerciseRow]:
        rows = []
        for new_exercise in new_exercises:
            rows.append(await self.create_if_absent(new_exercise))
        return rows

    async def search(self, filters: ExerciseSearchFilters) -> List[ExerciseMetadata]:
        """Filtered search returning metadata only (name, equipment, muscle groups, difficulty)."""
        limit = filters.limit or self.default_limit
        rows = await self.repository.search_exercises(filters, limit)
        matches = [row for row in rows if matches_filters(row, filters)][:limit]
        logger.debug(f"Exercise search {filters.model_dump(exclude_none=True)} matched {len(matches)} rows")
        return [
            ExerciseMetadata(
                name=row.name,
                equipment=row.equipment or [],
                muscle_groups=row.muscle_groups,
                difficulty=row.difficulty,
            )
            for row in matches
        ]
