"""Tests for achievement criteria evaluation and awards."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from database.models import (
    AchievementCheckResult,
    AchievementDefinition,
    BodyArea,
    BodyAreaMasteryCriteria,
    ConsistencyConditions,
    ConsistencyCriteria,
    MilestoneConditions,
    MilestoneCriteria,
    StreakCriteria,
    TotalSessionsCriteria,
)
from exceptions import StorageError


@pytest.fixture
def define(store):
    """Insert a catalog entry and return it."""
    async def _define(achievement_id, criteria, rarity="common", category="milestone", points=10):
        definition = AchievementDefinition(
            id=achievement_id,
            name=achievement_id.replace("-", " ").title(),
            description=f"Test achievement {achievement_id}",
            category=category,
            criteria=criteria,
            points=points,
            rarity=rarity,
        )
        await store.insert_definition(definition)
        return definition
    return _define


async def _complete_days(tracker, clock, make_completion, days, **kwargs):
    """Record one completion per consecutive day."""
    for i in range(days):
        if i:
            clock.advance(days=1)
        await tracker.record_completion("user-1", make_completion(**kwargs))


def _ids(result: AchievementCheckResult) -> list[str]:
    return [definition.id for definition in result.awarded]


# ============================================================================
# Criteria kinds
# ============================================================================

class TestCriteria:

    @pytest.mark.asyncio
    async def test_first_completion_awards_first_session(self, tracker, engine, define, make_completion):
        await define("first-session", TotalSessionsCriteria(target=1))
        await define("sessions-10", TotalSessionsCriteria(target=10))

        completion = await tracker.record_completion("user-1", make_completion())
        result = await engine.check_achievements("user-1", completion)

        assert result.failed is False
        assert _ids(result) == ["first-session"]

    @pytest.mark.asyncio
    async def test_streak_awarded_at_target_not_before(self, tracker, engine, clock, define, make_completion):
        await define("streak-7", StreakCriteria(target=7))

        await _complete_days(tracker, clock, make_completion, 6)
        assert _ids(await engine.check_achievements("user-1")) == []

        clock.advance(days=1)
        completion = await tracker.record_completion("user-1", make_completion())
        assert _ids(await engine.check_achievements("user-1", completion)) == ["streak-7"]

    @pytest.mark.asyncio
    async def test_body_area_mastery_threshold(self, tracker, engine, clock, define, make_completion):
        await define(
            "mastery-nervensystem",
            BodyAreaMasteryCriteria(target=25, body_area=BodyArea.NERVENSYSTEM),
        )

        for _ in range(24):
            await tracker.record_completion("user-1", make_completion(body_area=BodyArea.NERVENSYSTEM))
            clock.advance(hours=6)
        # Other areas do not count
        await tracker.record_completion("user-1", make_completion(body_area=BodyArea.LICHT))
        assert _ids(await engine.check_achievements("user-1")) == []

        await tracker.record_completion("user-1", make_completion(body_area=BodyArea.NERVENSYSTEM))
        assert _ids(await engine.check_achievements("user-1")) == ["mastery-nervensystem"]

    @pytest.mark.asyncio
    async def test_perfect_week(self, tracker, engine, clock, define, make_completion):
        await define("perfect-week", ConsistencyCriteria(
            target=1, conditions=ConsistencyConditions(perfect_week=True)
        ))

        # Saturday of the previous week does not count
        clock.set(datetime(2026, 10, 10, 12, 0))
        await tracker.record_completion("user-1", make_completion())

        clock.set(datetime(2026, 10, 11, 8, 0))
        for _ in range(6):
            await tracker.record_completion("user-1", make_completion())
            clock.advance(hours=20)
        assert _ids(await engine.check_achievements("user-1")) == []

        await tracker.record_completion("user-1", make_completion())
        assert _ids(await engine.check_achievements("user-1")) == ["perfect-week"]

    @pytest.mark.asyncio
    async def test_all_body_areas_this_week(self, tracker, engine, clock, define, make_completion):
        await define("body-explorer", ConsistencyCriteria(
            target=1, conditions=ConsistencyConditions(all_body_areas=True)
        ))

        areas = list(BodyArea)
        for area in areas[:-1]:
            await tracker.record_completion("user-1", make_completion(body_area=area))
        assert _ids(await engine.check_achievements("user-1")) == []

        await tracker.record_completion("user-1", make_completion(body_area=areas[-1]))
        assert _ids(await engine.check_achievements("user-1")) == ["body-explorer"]

    @pytest.mark.asyncio
    async def test_consistency_without_condition_never_met(self, tracker, engine, define, make_completion):
        await define("vague", ConsistencyCriteria(target=1))
        for _ in range(10):
            await tracker.record_completion("user-1", make_completion())

        assert _ids(await engine.check_achievements("user-1")) == []

    @pytest.mark.asyncio
    async def test_milestones_are_never_satisfied(self, tracker, engine, define, make_completion):
        await define("community-joined", MilestoneCriteria(
            target=1, conditions=MilestoneConditions(joined_community=True)
        ))
        await define("progress-shared", MilestoneCriteria(
            target=1, conditions=MilestoneConditions(shared_progress=True)
        ))

        await tracker.record_completion("user-1", make_completion())
        result = await engine.check_achievements("user-1")

        assert result.failed is False
        assert result.awarded == []


# ============================================================================
# Awarding
# ============================================================================

class TestAwarding:

    @pytest.mark.asyncio
    async def test_multiple_awards_in_catalog_order(self, tracker, engine, define, make_completion):
        await define("streak-1", StreakCriteria(target=1))
        await define("first-session", TotalSessionsCriteria(target=1))
        await define("sessions-5", TotalSessionsCriteria(target=5))

        await tracker.record_completion("user-1", make_completion())

        assert _ids(await engine.check_achievements("user-1")) == ["streak-1", "first-session"]

    @pytest.mark.asyncio
    async def test_no_double_award(self, tracker, engine, store, define, make_completion):
        await define("first-session", TotalSessionsCriteria(target=1))
        await tracker.record_completion("user-1", make_completion())

        first = await engine.check_achievements("user-1")
        second = await engine.check_achievements("user-1")

        assert _ids(first) == ["first-session"]
        assert second.awarded == []
        assert second.failed is False
        assert await store.count_awards() == 1

    @pytest.mark.asyncio
    async def test_awards_are_per_user(self, tracker, engine, define, make_completion):
        await define("first-session", TotalSessionsCriteria(target=1))
        await tracker.record_completion("user-1", make_completion())
        await engine.check_achievements("user-1")

        assert _ids(await engine.check_achievements("user-2")) == []
        await tracker.record_completion("user-2", make_completion())
        assert _ids(await engine.check_achievements("user-2")) == ["first-session"]

    @pytest.mark.asyncio
    async def test_award_stores_progress_snapshot(self, tracker, engine, store, clock, define, make_completion):
        await define("sessions-3", TotalSessionsCriteria(target=3))
        await tracker.record_completion("user-1", make_completion())
        clock.advance(days=1)
        await tracker.record_completion("user-1", make_completion(body_area=BodyArea.KAELTE))
        await tracker.record_completion("user-1", make_completion(body_area=BodyArea.KAELTE))

        await engine.check_achievements("user-1")
        award = await store.get_award("user-1", "sessions-3")

        assert award.earned_at == clock.now
        assert award.progress_snapshot["totalSessions"] == 3
        assert award.progress_snapshot["currentStreak"] == 2
        assert award.progress_snapshot["bodyAreaProgress"]["kaelte"] == 2
        assert award.progress_snapshot["bodyAreaProgress"]["nervensystem"] == 1
        assert award.progress_snapshot["bodyAreaProgress"]["licht"] == 0

    @pytest.mark.asyncio
    async def test_concurrent_award_is_not_an_error(self, tracker, engine, store, define, make_completion):
        await define("first-session", TotalSessionsCriteria(target=1))
        await tracker.record_completion("user-1", make_completion())

        # Another check awarded it between the lookup and the insert
        await store.create_award("user-1", "first-session", {}, datetime(2026, 10, 12, 9, 30))
        store.earned_achievement_ids = AsyncMock(return_value=set())

        result = await engine.check_achievements("user-1")

        assert result.failed is False
        assert result.awarded == []
        assert await store.count_awards() == 1

    @pytest.mark.asyncio
    async def test_malformed_definition_is_skipped(self, db, tracker, engine, define, make_completion):
        await define("first-session", TotalSessionsCriteria(target=1))
        await db.execute(
            """INSERT INTO achievements (id, name, description, category, criteria, created_at)
               VALUES ('broken', 'Broken', 'bad criteria', 'special', '{"type": "teleport"}', ?)""",
            (datetime(2026, 1, 1).isoformat(),)
        )
        await db.commit()

        await tracker.record_completion("user-1", make_completion())
        result = await engine.check_achievements("user-1")

        assert result.failed is False
        assert _ids(result) == ["first-session"]


# ============================================================================
# Fail-open
# ============================================================================

class TestFailOpen:

    @pytest.mark.asyncio
    async def test_storage_error_returns_failed_empty_result(self, engine, store, define):
        await define("first-session", TotalSessionsCriteria(target=1))
        store.earned_achievement_ids = AsyncMock(
            side_effect=StorageError("earned achievement ids", RuntimeError("database is locked"))
        )

        result = await engine.check_achievements("user-1")

        assert result.awarded == []
        assert result.failed is True
        assert "Storage operation failed" in result.error

    @pytest.mark.asyncio
    async def test_failure_mid_evaluation_does_not_raise(self, tracker, engine, store, define, make_completion):
        await define("first-session", TotalSessionsCriteria(target=1))
        await tracker.record_completion("user-1", make_completion())
        store.create_award = AsyncMock(side_effect=StorageError("create award"))

        result = await engine.check_achievements("user-1")

        assert result.failed is True
        assert result.awarded == []


# ============================================================================
# Queries
# ============================================================================

class TestQueries:

    @pytest.mark.asyncio
    async def test_user_achievements_newest_first(self, tracker, engine, clock, define, make_completion):
        await define("first-session", TotalSessionsCriteria(target=1))
        await define("streak-2", StreakCriteria(target=2))

        await tracker.record_completion("user-1", make_completion())
        await engine.check_achievements("user-1")
        clock.advance(days=1)
        await tracker.record_completion("user-1", make_completion())
        await engine.check_achievements("user-1")

        awards = await engine.get_user_achievements("user-1")

        assert [a.achievement_id for a in awards] == ["streak-2", "first-session"]
        assert awards[0].achievement.criteria.target == 2

    @pytest.mark.asyncio
    async def test_achievement_stats(self, store, engine, define):
        await define("common-one", TotalSessionsCriteria(target=1))
        await define("epic-one", StreakCriteria(target=30), rarity="epic")
        await define("legendary-popular", StreakCriteria(target=100), rarity="legendary")
        await define("never-earned", StreakCriteria(target=365), rarity="legendary")

        earned_at = datetime(2026, 10, 1)
        for i in range(12):
            await store.create_award(f"user-{i}", "legendary-popular", {}, earned_at)
        for i in range(3):
            await store.create_award(f"user-{i}", "common-one", {}, earned_at)
        await store.create_award("user-0", "epic-one", {}, earned_at + timedelta(hours=1))

        stats = await engine.get_achievement_stats()

        assert stats.total_definitions == 4
        assert stats.total_awards == 16
        assert stats.most_awarded.name == "Legendary Popular"
        assert stats.most_awarded.count == 12
        assert [(r.name, r.count) for r in stats.rare_awards] == [("Epic One", 1)]

    @pytest.mark.asyncio
    async def test_achievement_stats_empty(self, engine):
        stats = await engine.get_achievement_stats()

        assert stats.total_definitions == 0
        assert stats.total_awards == 0
        assert stats.most_awarded is None
        assert stats.rare_awards == []

    @pytest.mark.asyncio
    async def test_query_failures_propagate(self, engine, store):
        store.list_awards = AsyncMock(side_effect=StorageError("list awards"))
        store.count_definitions = AsyncMock(side_effect=StorageError("count achievements"))

        with pytest.raises(StorageError, match="list awards"):
            await engine.get_user_achievements("user-1")
        with pytest.raises(StorageError, match="count achievements"):
            await engine.get_achievement_stats()
