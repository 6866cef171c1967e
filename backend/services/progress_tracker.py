# =============================================================================
# BODY MANUAL BACKEND - PROGRESS TRACKER
# =============================================================================
"""
Progress aggregation service.
Records exercise completions, maintains the daily streak and computes
per-user and per-body-area statistics.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from database.models import (
    BiometricSnapshot,
    BodyArea,
    BodyAreaStats,
    CompletionRecord,
    ExerciseCompletion,
    MasteryLevel,
    ProgressSnapshot,
    StreakState,
    StreakType,
    TimeRange,
)
from database.store import ProgressStore

logger = logging.getLogger(__name__)

WEEKLY_GOAL = 7
CONSISTENCY_WINDOW_DAYS = 30
RECENT_ACHIEVEMENT_DAYS = 30
RECENT_ACHIEVEMENT_LIMIT = 10
FAVORITE_EXERCISE_COUNT = 3
BIOMETRIC_BACKFILL_WINDOW = timedelta(hours=24)

# Sentinel for "never practiced"
NEVER_PRACTICED = datetime(1970, 1, 1)

# Minimum lifetime sessions per mastery level, highest first
MASTERY_THRESHOLDS = [
    (50, MasteryLevel.EXPERT),
    (25, MasteryLevel.ADVANCED),
    (10, MasteryLevel.INTERMEDIATE),
]


def mastery_level(total_sessions: int) -> MasteryLevel:
    """Mastery tier derived from lifetime sessions in a body area."""
    for threshold, level in MASTERY_THRESHOLDS:
        if total_sessions >= threshold:
            return level
    return MasteryLevel.BEGINNER


def week_start(now: datetime) -> datetime:
    """Most recent Sunday 00:00 at or before `now`."""
    days_since_sunday = (now.weekday() + 1) % 7
    start = now - timedelta(days=days_since_sunday)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def is_streak_active(state: StreakState, today: date) -> bool:
    """A daily streak is active if the last activity was today or yesterday."""
    if state.streak_type != StreakType.DAILY or state.last_activity_date is None:
        return False
    return state.last_activity_date in (today, today - timedelta(days=1))


class ProgressTracker:
    """
    Progress aggregator.

    Streaks:
    - Incremented for each consecutive calendar day with a completion
    - Unchanged by further completions on the same day
    - Reset to 1 after a gap of two or more days
    """

    def __init__(
        self,
        store: ProgressStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.clock = clock

    async def record_completion(
        self,
        user_id: str,
        completion: ExerciseCompletion,
    ) -> CompletionRecord:
        """
        Record a finished exercise and update the daily streak.

        Raises:
            StorageError: If the store write fails
        """
        now = self.clock()
        record = CompletionRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            completed_at=now,
            created_at=now,
            **completion.model_dump(exclude_none=True),
        )
        await self.store.insert_completion(record)

        logger.info(
            f"User {user_id} completed {record.exercise_id} "
            f"({record.body_area.value}, {record.duration_minutes or 0} min)"
        )

        await self.update_daily_streak(user_id, now.date())
        return record

    async def update_daily_streak(self, user_id: str, today: date) -> StreakState:
        """
        Advance the user's daily streak for activity on `today`.

        Returns:
            The streak state after the update
        """
        now = self.clock()
        yesterday = today - timedelta(days=1)

        state = await self.store.get_streak(user_id, StreakType.DAILY)

        if state is None:
            state = StreakState(
                user_id=user_id,
                streak_type=StreakType.DAILY,
                current_count=1,
                best_count=1,
                last_activity_date=today,
                started_at=now,
            )
            if not await self.store.create_streak(state):
                # Created by a concurrent completion
                logger.debug(f"Daily streak for user {user_id} already created")
                return await self.store.get_streak(user_id, StreakType.DAILY)
            logger.info(f"User {user_id} started a daily streak")
            return state

        previous = state.last_activity_date

        # Already logged today
        if previous == today:
            return state

        if previous == yesterday:
            current = state.current_count + 1
            updated = state.model_copy(update={
                "current_count": current,
                "best_count": max(state.best_count, current),
                "last_activity_date": today,
            })
        elif previous is None:
            updated = state.model_copy(update={
                "current_count": 1,
                "best_count": max(state.best_count, 1),
                "last_activity_date": today,
                "started_at": now,
            })
        else:
            # Streak broken - restart
            updated = state.model_copy(update={
                "current_count": 1,
                "last_activity_date": today,
                "started_at": now,
            })

        if not await self.store.compare_and_set_streak(updated, expected_last_activity=previous):
            logger.debug(f"Daily streak for user {user_id} changed concurrently")
            return await self.store.get_streak(user_id, StreakType.DAILY)

        logger.info(
            f"User {user_id} streak updated: {updated.current_count} "
            f"(longest: {updated.best_count})"
        )
        return updated

    async def get_user_progress(
        self,
        user_id: str,
        time_range: Optional[TimeRange] = None,
    ) -> ProgressSnapshot:
        """
        Aggregate progress snapshot.

        Totals and last activity honour `time_range`; streaks, body-area
        statistics, recent achievements and weekly progress do not.
        """
        now = self.clock()
        since = time_range.start if time_range else None
        until = time_range.end if time_range else None

        total_sessions = await self.store.count_completions(user_id, since=since, until=until)
        total_minutes = await self.store.sum_duration(user_id, since=since, until=until)
        last_activity = await self.store.latest_completion_at(user_id, since=since, until=until)

        streak = await self.store.get_streak(user_id, StreakType.DAILY)
        body_area_stats = await self.get_body_area_stats(user_id)
        recent_achievements = await self.store.list_awards(
            user_id,
            since=now - timedelta(days=RECENT_ACHIEVEMENT_DAYS),
            limit=RECENT_ACHIEVEMENT_LIMIT,
        )
        weekly_progress = await self.store.count_completions(user_id, since=week_start(now))

        return ProgressSnapshot(
            user_id=user_id,
            total_sessions=total_sessions,
            total_minutes=total_minutes,
            current_streak=streak.current_count if streak else 0,
            longest_streak=streak.best_count if streak else 0,
            body_area_stats=body_area_stats,
            recent_achievements=recent_achievements,
            weekly_goal=WEEKLY_GOAL,
            weekly_progress=weekly_progress,
            last_activity=last_activity,
        )

    async def get_body_area_stats(self, user_id: str) -> list[BodyAreaStats]:
        """Statistics for all eight body areas, in catalog order."""
        now = self.clock()
        lifetime = await self.store.body_area_totals(user_id)
        recent = await self.store.body_area_totals(
            user_id, since=now - timedelta(days=CONSISTENCY_WINDOW_DAYS)
        )

        stats = []
        for area in BodyArea:
            totals = lifetime.get(area)
            if totals is None or totals.sessions == 0:
                stats.append(BodyAreaStats(body_area=area, last_practiced=NEVER_PRACTICED))
                continue

            recent_sessions = recent[area].sessions if area in recent else 0
            favorites = await self.store.exercise_frequencies(
                user_id, area, limit=FAVORITE_EXERCISE_COUNT
            )

            stats.append(BodyAreaStats(
                body_area=area,
                total_sessions=totals.sessions,
                total_minutes=totals.minutes,
                average_session_duration=(
                    totals.minutes / totals.timed_sessions if totals.timed_sessions else 0.0
                ),
                consistency_score=min(recent_sessions / CONSISTENCY_WINDOW_DAYS, 1.0),
                last_practiced=totals.last_practiced or NEVER_PRACTICED,
                favorite_exercises=[exercise_id for exercise_id, _ in favorites],
                mastery_level=mastery_level(totals.sessions),
            ))
        return stats

    async def get_streak_data(self, user_id: str) -> list[StreakState]:
        """All streaks for a user with `is_active` computed against today."""
        today = self.clock().date()
        streaks = await self.store.list_streaks(user_id)
        return [
            streak.model_copy(update={"is_active": is_streak_active(streak, today)})
            for streak in streaks
        ]

    async def get_progress_entries(
        self,
        user_id: str,
        time_range: Optional[TimeRange] = None,
        body_area: Optional[BodyArea] = None,
        limit: Optional[int] = None,
    ) -> list[CompletionRecord]:
        """Completion history, newest first."""
        return await self.store.list_completions(
            user_id,
            body_area=body_area,
            since=time_range.start if time_range else None,
            until=time_range.end if time_range else None,
            limit=limit,
        )

    async def attach_biometrics(
        self,
        user_id: str,
        exercise_id: str,
        snapshot: BiometricSnapshot,
    ) -> int:
        """
        Backfill biometric readings onto the user's completions of
        `exercise_id` from the last 24 hours.

        Returns:
            Number of completions updated
        """
        since = self.clock() - BIOMETRIC_BACKFILL_WINDOW
        updated = await self.store.attach_biometrics(user_id, exercise_id, snapshot, since)
        logger.info(f"Attached biometrics to {updated} completion(s) of {exercise_id} for user {user_id}")
        return updated
