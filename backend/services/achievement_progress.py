# =============================================================================
# BODY MANUAL BACKEND - ACHIEVEMENT PROGRESS
# =============================================================================
"""
Per-achievement progress reporting for earned and unearned achievements.
"""

import logging

from database.models import AchievementDefinition, AchievementProgress
from database.store import ProgressStore
from exceptions import AchievementNotFoundError
from services.achievement_engine import AchievementEngine

logger = logging.getLogger(__name__)


class AchievementProgressCalculator:
    """Computes current/target progress towards achievements."""

    def __init__(self, store: ProgressStore, engine: AchievementEngine):
        self.store = store
        self.engine = engine

    async def calculate_progress(self, user_id: str, achievement_id: str) -> AchievementProgress:
        """
        Progress of a user towards one achievement.

        Raises:
            AchievementNotFoundError: If the achievement does not exist
        """
        definition = await self.store.get_definition(achievement_id)
        if definition is None:
            raise AchievementNotFoundError(achievement_id)
        return await self._progress_for(user_id, definition)

    async def get_all_achievements_with_progress(self, user_id: str) -> list[AchievementProgress]:
        """
        Progress for every catalog entry, ordered by category then points.
        Entries that cannot be computed are logged and left out.
        """
        definitions = await self.store.list_definitions(by_category=True)

        progress_list = []
        for definition in definitions:
            try:
                progress_list.append(await self._progress_for(user_id, definition))
            except Exception as e:
                logger.warning(f"Error calculating progress for achievement {definition.id}: {e}")
        return progress_list

    async def _progress_for(
        self,
        user_id: str,
        definition: AchievementDefinition,
    ) -> AchievementProgress:
        target = definition.criteria.target
        current = await self.engine.current_progress(user_id, definition.criteria)

        # Award status is sticky once granted
        award = await self.store.get_award(user_id, definition.id)

        return AchievementProgress(
            achievement_id=definition.id,
            achievement=definition,
            current_progress=current,
            target_progress=target,
            progress_percentage=min(current / target * 100, 100.0),
            is_completed=award is not None,
        )
