# =============================================================================
# BODY MANUAL BACKEND - ACHIEVEMENT ENGINE
# =============================================================================
"""
Achievement criteria evaluation and award management.

Criteria kinds:
- total_sessions: lifetime completions >= target
- streak: current daily streak >= target
- body_area_mastery: lifetime completions in one body area >= target
- consistency: perfect week (7+ completions since Sunday) or all eight
  body areas practiced since Sunday
- milestone: community triggers, not wired yet (never satisfied)
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from database.models import (
    AchievementCheckResult,
    AchievementCount,
    AchievementCriteria,
    AchievementDefinition,
    AchievementRarity,
    AchievementStats,
    AwardedAchievement,
    BodyArea,
    BodyAreaMasteryCriteria,
    CompletionRecord,
    ConsistencyCriteria,
    MilestoneCriteria,
    StreakCriteria,
    StreakType,
    TotalSessionsCriteria,
)
from database.store import ProgressStore
from services.progress_tracker import week_start

logger = logging.getLogger(__name__)

PERFECT_WEEK_SESSIONS = 7
RARE_AWARD_THRESHOLD = 10
RARE_TIERS = (AchievementRarity.EPIC, AchievementRarity.LEGENDARY)


class AchievementEngine:
    """Evaluates achievement criteria and persists awards."""

    def __init__(
        self,
        store: ProgressStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.clock = clock

    async def check_achievements(
        self,
        user_id: str,
        completion: Optional[CompletionRecord] = None,
    ) -> AchievementCheckResult:
        """
        Award every not-yet-earned achievement whose criteria are now met.

        Never raises: a failure during evaluation is logged and reported as
        a failed result with no awards, so a recorded completion is never
        blocked by the achievement check.

        Args:
            user_id: The user to check
            completion: The completion that triggered the check

        Returns:
            Newly earned definitions, or a failed result
        """
        try:
            earned_ids = await self.store.earned_achievement_ids(user_id)
            candidates = await self.store.list_definitions(exclude_ids=earned_ids)

            awarded: list[AchievementDefinition] = []
            snapshot: Optional[dict] = None

            for definition in candidates:
                if not await self.is_satisfied(user_id, definition.criteria):
                    continue

                if snapshot is None:
                    snapshot = await self._progress_snapshot(user_id)

                if await self.store.create_award(user_id, definition.id, snapshot, self.clock()):
                    logger.info(f"Achievement '{definition.name}' awarded to user {user_id}")
                    awarded.append(definition)
                else:
                    # Awarded by a concurrent check
                    logger.debug(f"Achievement {definition.id} already awarded to user {user_id}")

            return AchievementCheckResult(awarded=awarded)

        except Exception as e:
            trigger = completion.id if completion else "manual"
            logger.error(f"Error checking achievements for user {user_id} (trigger {trigger}): {e}")
            return AchievementCheckResult(failed=True, error=str(e))

    async def is_satisfied(self, user_id: str, criteria: AchievementCriteria) -> bool:
        """Whether the user currently meets `criteria`."""
        if isinstance(criteria, TotalSessionsCriteria):
            return await self.store.count_completions(user_id) >= criteria.target

        if isinstance(criteria, StreakCriteria):
            return await self._current_streak(user_id) >= criteria.target

        if isinstance(criteria, BodyAreaMasteryCriteria):
            sessions = await self.store.count_completions(user_id, body_area=criteria.body_area)
            return sessions >= criteria.target

        if isinstance(criteria, ConsistencyCriteria):
            return await self._consistency_met(user_id, criteria)

        if isinstance(criteria, MilestoneCriteria):
            return self._milestone_not_implemented(criteria)

        raise TypeError(f"Unhandled criteria type: {type(criteria).__name__}")

    async def current_progress(self, user_id: str, criteria: AchievementCriteria) -> int:
        """Current value measured against `criteria.target`."""
        if isinstance(criteria, TotalSessionsCriteria):
            return await self.store.count_completions(user_id)

        if isinstance(criteria, StreakCriteria):
            return await self._current_streak(user_id)

        if isinstance(criteria, BodyAreaMasteryCriteria):
            return await self.store.count_completions(user_id, body_area=criteria.body_area)

        if isinstance(criteria, ConsistencyCriteria):
            return 1 if await self._consistency_met(user_id, criteria) else 0

        if isinstance(criteria, MilestoneCriteria):
            return 0

        raise TypeError(f"Unhandled criteria type: {type(criteria).__name__}")

    async def get_user_achievements(self, user_id: str) -> list[AwardedAchievement]:
        """
        All achievements earned by a user, newest first.

        Raises:
            StorageError: Propagated rather than reported as an empty list;
                only check_achievements fails open
        """
        return await self.store.list_awards(user_id)

    async def get_achievement_stats(self) -> AchievementStats:
        """
        Catalog-wide award statistics.

        Raises:
            StorageError: Propagated rather than reported as zeroed stats
        """
        total_definitions = await self.store.count_definitions()
        total_awards = await self.store.count_awards()

        most_awarded = None
        top = await self.store.award_counts(limit=1)
        if top:
            achievement_id, count = top[0]
            definition = await self.store.get_definition(achievement_id)
            if definition:
                most_awarded = AchievementCount(name=definition.name, count=count)

        rare_awards = []
        for achievement_id, count in await self.store.award_counts(below=RARE_AWARD_THRESHOLD):
            definition = await self.store.get_definition(achievement_id)
            if definition and definition.rarity in RARE_TIERS:
                rare_awards.append(AchievementCount(name=definition.name, count=count))

        return AchievementStats(
            total_definitions=total_definitions,
            total_awards=total_awards,
            most_awarded=most_awarded,
            rare_awards=rare_awards,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _current_streak(self, user_id: str) -> int:
        streak = await self.store.get_streak(user_id, StreakType.DAILY)
        return streak.current_count if streak else 0

    async def _consistency_met(self, user_id: str, criteria: ConsistencyCriteria) -> bool:
        since = week_start(self.clock())

        if criteria.conditions.perfect_week:
            sessions = await self.store.count_completions(user_id, since=since)
            return sessions >= PERFECT_WEEK_SESSIONS

        if criteria.conditions.all_body_areas:
            areas = await self.store.distinct_body_areas(user_id, since=since)
            return len(areas) >= len(BodyArea)

        return False

    @staticmethod
    def _milestone_not_implemented(criteria: MilestoneCriteria) -> bool:
        """
        Community milestones (joinedCommunity, sharedProgress) have no
        trigger yet, so they are never satisfied.
        """
        logger.debug(f"Milestone criteria not implemented: {criteria.conditions}")
        return False

    async def _progress_snapshot(self, user_id: str) -> dict:
        """User aggregates stored with an award for historical display."""
        totals = await self.store.body_area_totals(user_id)
        return {
            "totalSessions": await self.store.count_completions(user_id),
            "currentStreak": await self._current_streak(user_id),
            "bodyAreaProgress": {
                area.value: totals[area].sessions if area in totals else 0
                for area in BodyArea
            },
        }
